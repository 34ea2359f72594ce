from __future__ import annotations

from kestrel.types.environment import Environment
from kestrel.types.value import Value

from .chunk import Chunk
from .opcodes import Opcode
from .vm import run_program


def call_method_vm(env: Environment, receiver: Value, selector: Value, args: list[Value],
                   depth_offset: int = 0, reentry: int = 0) -> Value:
    """
    Invoke a compiled handler from outside the VM loop by synthesizing a tiny
    program that pushes the receiver, its arguments and the selector, performs
    a CALL, and RETURNs the result.

    Used by dispatch when a primitive (or host code) re-enters a send whose
    handler is a CompiledMethod.
    """
    chunk = Chunk()
    chunk.emit_constant(receiver)
    for arg in args:
        chunk.emit_constant(arg)
    chunk.emit_constant(selector)
    chunk.emit_call(len(args) + 1)
    chunk.emit_op(Opcode.RETURN)
    program = chunk.finish(name=f"<send {selector}>", arity=0)
    return run_program(program, env, depth_offset, reentry)
