from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from kestrel.types.value import Value
from kestrel.compiler import leb128
from kestrel.compiler.opcodes import Opcode, JUMPS
from kestrel.compiler.program import Program
from kestrel.compiler.stack_depth import max_stack_depth


@dataclass
class Chunk:
    """A chunk of bytecode under construction, with a constants table and line info.

    Operands are LEB128; jump operands are padded to a fixed width so they can
    be patched once the target is known. `finish` freezes the chunk into a
    Program after computing its operand-stack bound.
    """

    code: bytearray = field(default_factory=bytearray)
    constants: List[Value] = field(default_factory=list)
    lines: list[tuple[int, int, int]] = field(default_factory=list)  # (ip, line, col)

    def add_const(self, value: Value) -> int:
        # Value equality is identity, so equal-looking objects stay distinct.
        try:
            return self.constants.index(value)
        except ValueError:
            self.constants.append(value)
            return len(self.constants) - 1

    # --- Emit helpers ---
    def emit_op(self, op: Opcode) -> int:
        self.code.append(int(op))
        return len(self.code) - 1

    def emit_uleb(self, v: int) -> None:
        self.code.extend(leb128.encode_uleb128(v))

    def mark_line(self, line: int, col: int) -> None:
        ip = len(self.code)
        if self.lines and self.lines[-1][0] == ip:
            self.lines[-1] = (ip, line, col)
        else:
            self.lines.append((ip, line, col))

    # --- high-level convenience ---
    def emit_constant(self, value: Value) -> int:
        idx = self.add_const(value)
        self.emit_op(Opcode.LOAD_CONSTANT)
        self.emit_uleb(idx)
        return idx

    def emit_argument(self, index: int) -> None:
        self.emit_op(Opcode.LOAD_ARGUMENT)
        self.emit_uleb(index)

    def emit_call(self, argc: int) -> None:
        """argc counts the receiver; the selector is expected on top of the arguments."""
        if argc < 1:
            raise ValueError("A message send needs at least a receiver")
        self.emit_op(Opcode.CALL)
        self.emit_uleb(argc)

    def emit_jump(self, op: Opcode) -> int:
        """Emit a jump with a placeholder offset; return the operand position for patch_jump."""
        if op not in JUMPS:
            raise ValueError(f"{op!r} is not a jump")
        self.emit_op(op)
        site = len(self.code)
        self.code.extend(leb128.encode_sleb128_padded(0))
        return site

    def patch_jump(self, site: int, target: int | None = None) -> None:
        """Point the jump whose operand starts at `site` to `target` (default: here)."""
        if target is None:
            target = len(self.code)
        rel = target - (site + leb128.JUMP_OPERAND_BYTES)
        self.code[site:site + leb128.JUMP_OPERAND_BYTES] = leb128.encode_sleb128_padded(rel)

    def finish(self, name: str = "<toplevel>", arity: int = 0, source: str = "<input>") -> Program:
        code = bytes(self.code)
        depth = max_stack_depth(code, len(self.constants), arity)
        return Program(
            code=code,
            constants=tuple(self.constants),
            max_stack=depth,
            arity=arity,
            name=name,
            source=source,
            lines=tuple(self.lines),
        )
