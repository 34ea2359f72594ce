from __future__ import annotations

# Public surface for the compiler package
from .opcodes import Opcode
from .chunk import Chunk
from .program import Program
from .compiler import compile_module, compile_expr
from .vm import VM, execute_bytecode

__all__ = [
    "Opcode",
    "Chunk",
    "Program",
    "VM",
    "compile_module",
    "compile_expr",
    "execute_bytecode",
]
