"""Instruction decoding and static max-stack-depth analysis.

The operand-stack capacity of a frame is fixed when its program is emitted.
`max_stack_depth` walks the control-flow graph once per reachable
instruction, tracking the stack depth on entry, and rejects bytecode whose
depth would underflow or disagree where two paths meet.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from kestrel.errors import KestrelBytecodeError
from kestrel.compiler import leb128
from kestrel.compiler.opcodes import (
    Opcode, OPERAND_KIND, UNSIGNED, SIGNED, JUMPS, stack_effect,
)


@dataclass(frozen=True)
class Instruction:
    offset: int
    op: Opcode
    operand: Optional[int]
    next_offset: int

    @property
    def target(self) -> Optional[int]:
        """Absolute jump target, for jump instructions."""
        if self.op in JUMPS:
            return self.next_offset + self.operand
        return None


def decode_at(code: bytes, offset: int) -> Instruction:
    raw = code[offset]
    kind = OPERAND_KIND.get(raw)
    if kind is None:
        raise KestrelBytecodeError(f"Unknown opcode 0x{raw:02X} at offset {offset}")
    pos = offset + 1
    operand = None
    if kind == UNSIGNED:
        operand, pos = leb128.read_uleb128(code, pos)
    elif kind == SIGNED:
        operand, pos = leb128.read_sleb128(code, pos)
    return Instruction(offset, Opcode(raw), operand, pos)


def decode(code: bytes) -> Iterator[Instruction]:
    """Linear decode of the whole stream."""
    offset = 0
    while offset < len(code):
        ins = decode_at(code, offset)
        yield ins
        offset = ins.next_offset


def max_stack_depth(code: bytes, constant_count: Optional[int] = None, arity: Optional[int] = None) -> int:
    """Return the deepest operand stack any path through `code` can reach.

    When `constant_count` / `arity` are given, LOAD_CONSTANT and LOAD_ARGUMENT
    operands are range-checked as well.
    """
    code = bytes(code)
    n = len(code)
    depth_at: dict[int, int] = {}
    worklist: list[tuple[int, int]] = [(0, 0)] if n else []
    deepest = 0

    while worklist:
        offset, depth = worklist.pop()
        seen = depth_at.get(offset)
        if seen is not None:
            if seen != depth:
                raise KestrelBytecodeError(
                    f"Inconsistent stack depth at offset {offset}: {seen} vs {depth}"
                )
            continue
        depth_at[offset] = depth

        ins = decode_at(code, offset)
        if ins.op == Opcode.LOAD_CONSTANT and constant_count is not None and ins.operand >= constant_count:
            raise KestrelBytecodeError(f"Constant index {ins.operand} out of range at offset {offset}")
        if ins.op == Opcode.LOAD_ARGUMENT and arity is not None and ins.operand >= arity:
            raise KestrelBytecodeError(f"Argument index {ins.operand} out of range at offset {offset}")
        if ins.op == Opcode.CALL and ins.operand < 1:
            raise KestrelBytecodeError(f"CALL needs a receiver at offset {offset}")

        pops, pushes = stack_effect(ins.op, ins.operand)
        if depth < pops:
            raise KestrelBytecodeError(f"Stack underflow at offset {offset} ({ins.op.name})")
        after = depth - pops + pushes
        deepest = max(deepest, after, depth)

        if ins.op == Opcode.RETURN:
            continue
        successors = []
        if ins.op in JUMPS:
            target = ins.target
            if not 0 <= target < n:
                raise KestrelBytecodeError(f"Jump target {target} out of range at offset {offset}")
            successors.append(target)
        if ins.op != Opcode.JUMP:
            if ins.next_offset >= n:
                raise KestrelBytecodeError(f"Execution falls off the end after offset {offset}")
            successors.append(ins.next_offset)
        for succ in successors:
            worklist.append((succ, after))

    return deepest
