from __future__ import annotations

from kestrel.errors import KestrelBytecodeError
from kestrel.types.objects import CompiledMethod
from kestrel.types.printer import print_value
from kestrel.types.value import Tag

from .opcodes import Opcode, JUMPS
from .program import Program
from .stack_depth import decode_at


def disassemble(program: Program) -> str:
    code = program.code
    consts = program.constants
    out = [f"== {program.name} arity={program.arity} max_stack={program.max_stack} =="]
    i = 0
    while i < len(code):
        try:
            ins = decode_at(code, i)
        except KestrelBytecodeError as ex:
            out.append(f"{i:04d}: <{ex}>")
            break
        line = f"{i:04d}: {ins.op.name}"
        if ins.op == Opcode.LOAD_CONSTANT:
            shown = print_value(consts[ins.operand]) if ins.operand < len(consts) else "?"
            line += f" {ins.operand} ({shown})"
        elif ins.op in JUMPS:
            line += f" {ins.operand:+d} -> {ins.target}"
        elif ins.op == Opcode.CALL:
            line += f" argc={ins.operand}"
        elif ins.op == Opcode.LOAD_ARGUMENT:
            line += f" {ins.operand}"
        out.append(line)
        i = ins.next_offset
    # Append constants info
    out.append("-- constants --")
    for idx, c in enumerate(consts):
        out.append(f"[{idx}] {print_value(c)}")
        if c.tag == Tag.OBJECT and isinstance(c.obj, CompiledMethod):
            out.append(disassemble(c.obj.program))
    return "\n".join(out)
