"""LEB128 operand codec.

Instruction operands (constant indices, argument counts, jump offsets) are
variable-length little-endian base-128 integers, so neither the constant pool
nor argument counts are capped by a fixed operand width. Jump offsets use a
padded signed form of fixed length so they can be patched after emission;
padding with continuation bytes is valid LEB128 and decodes normally.
"""
from __future__ import annotations

import logging

from kestrel.errors import KestrelBytecodeError
from kestrel import config

log = logging.getLogger(__name__)

# 10 bytes hold any 64-bit quantity; longer encodings are rejected.
MAX_LEB128_BYTES = 10
# Payload bits of the final byte beyond bit 63 must be zero (or sign copies).
LAST_BYTE_SHIFT = 7 * (MAX_LEB128_BYTES - 1)
# Padded width for patchable jump operands: 5 * 7 = 35 bits, signed.
JUMP_OPERAND_BYTES = 5
JUMP_MAX = (1 << (7 * JUMP_OPERAND_BYTES - 1)) - 1
JUMP_MIN = -(1 << (7 * JUMP_OPERAND_BYTES - 1))


def encode_uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"Unsigned LEB128 cannot encode {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_sleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        done = (value == 0 and not byte & 0x40) or (value == -1 and byte & 0x40)
        if done:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def encode_sleb128_padded(value: int, width: int = JUMP_OPERAND_BYTES) -> bytes:
    """Signed LEB128 padded to exactly `width` bytes."""
    lo = -(1 << (7 * width - 1))
    hi = (1 << (7 * width - 1)) - 1
    if not lo <= value <= hi:
        raise KestrelBytecodeError(f"Jump offset {value} does not fit {width} bytes")
    out = bytearray()
    for i in range(width):
        byte = value & 0x7F
        value >>= 7
        out.append(byte if i == width - 1 else byte | 0x80)
    return bytes(out)


def read_uleb128(code: bytes, pos: int) -> tuple[int, int]:
    """Decode an unsigned operand at `pos`; return (value, next position)."""
    result = 0
    shift = 0
    n = len(code)
    for _ in range(MAX_LEB128_BYTES):
        if pos >= n:
            raise KestrelBytecodeError("Truncated LEB128 operand")
        byte = code[pos]
        pos += 1
        if shift == LAST_BYTE_SHIFT and byte & 0x7E:
            raise KestrelBytecodeError("LEB128 operand exceeds 64 bits")
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
    raise KestrelBytecodeError("LEB128 operand too long")


def read_sleb128(code: bytes, pos: int) -> tuple[int, int]:
    """Decode a signed operand at `pos`; return (value, next position)."""
    result = 0
    shift = 0
    n = len(code)
    for _ in range(MAX_LEB128_BYTES):
        if pos >= n:
            raise KestrelBytecodeError("Truncated LEB128 operand")
        byte = code[pos]
        pos += 1
        if shift == LAST_BYTE_SHIFT and (byte & 0x7F) not in (0x00, 0x7F):
            raise KestrelBytecodeError("LEB128 operand exceeds 64 bits")
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            if byte & 0x40:
                result -= 1 << shift
            return result, pos
    raise KestrelBytecodeError("LEB128 operand too long")


def use_backend(name: str) -> None:
    """Switch the decoders between the pure-Python ('py') and Cython ('cy') versions."""
    global read_uleb128, read_sleb128
    if name == "cy":
        from kestrel.compiler import _leb128_cy
        read_uleb128 = _leb128_cy.read_uleb128
        read_sleb128 = _leb128_cy.read_sleb128
    elif name == "py":
        read_uleb128 = _py_read_uleb128
        read_sleb128 = _py_read_sleb128
    else:
        raise ValueError(f"Unknown codec backend {name!r}")


_py_read_uleb128 = read_uleb128
_py_read_sleb128 = read_sleb128

if config.cython_codec_enabled():
    try:
        use_backend("cy")
    except ImportError:
        log.warning("KESTREL_CY_CODEC is set but kestrel.compiler._leb128_cy is not built; using the Python codec")
