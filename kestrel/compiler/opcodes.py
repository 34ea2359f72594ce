from __future__ import annotations

from enum import IntEnum


class Opcode(IntEnum):
    # Operands are LEB128 encoded (see kestrel.compiler.leb128).
    NOP = 0x00
    LOAD_CONSTANT = 0x01  # uleb index
    LOAD_GLOBAL = 0x02  # pops name, pushes value
    DEFINE_GLOBAL = 0x03  # pops name, pops value, pushes value
    LOAD_ARGUMENT = 0x04  # uleb index (0 is the receiver)
    POP = 0x05
    DUP = 0x06

    # Control flow
    JUMP = 0x10  # padded sleb, relative to the next instruction
    JUMP_IF_FALSE = 0x11  # padded sleb
    RETURN = 0x12

    # Message sends
    CALL = 0x20  # uleb argc (receiver included), selector on top of the window


# Operand kinds, used by decoders and the stack-depth analysis.
NO_OPERAND = 0
UNSIGNED = 1
SIGNED = 2

OPERAND_KIND: dict[int, int] = {
    Opcode.NOP: NO_OPERAND,
    Opcode.LOAD_CONSTANT: UNSIGNED,
    Opcode.LOAD_GLOBAL: NO_OPERAND,
    Opcode.DEFINE_GLOBAL: NO_OPERAND,
    Opcode.LOAD_ARGUMENT: UNSIGNED,
    Opcode.POP: NO_OPERAND,
    Opcode.DUP: NO_OPERAND,
    Opcode.JUMP: SIGNED,
    Opcode.JUMP_IF_FALSE: SIGNED,
    Opcode.RETURN: NO_OPERAND,
    Opcode.CALL: UNSIGNED,
}

JUMPS = frozenset((Opcode.JUMP, Opcode.JUMP_IF_FALSE))


def stack_effect(op: int, operand: int | None) -> tuple[int, int]:
    """Return (values popped, values pushed) for one instruction."""
    if op == Opcode.NOP:
        return 0, 0
    if op == Opcode.LOAD_CONSTANT or op == Opcode.LOAD_ARGUMENT:
        return 0, 1
    if op == Opcode.LOAD_GLOBAL:
        return 1, 1
    if op == Opcode.DEFINE_GLOBAL:
        return 2, 1
    if op == Opcode.POP:
        return 1, 0
    if op == Opcode.DUP:
        return 1, 2
    if op == Opcode.JUMP:
        return 0, 0
    if op == Opcode.JUMP_IF_FALSE:
        return 1, 0
    if op == Opcode.RETURN:
        return 1, 0
    if op == Opcode.CALL:
        # receiver + arguments + selector in, one result out
        return operand + 1, 1
    raise ValueError(f"Unknown opcode {op}")
