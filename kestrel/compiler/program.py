from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Optional

from kestrel.types.value import Value


@dataclass(frozen=True)
class Program:
    """One compiled unit: opcode stream, constant pool and declared operand-stack depth.

    `arity` counts the receiver, so a method handling `(+ a b)` has arity 2.
    `lines` maps instruction offsets to source positions: sorted (ip, line, col).
    """

    code: bytes
    constants: tuple[Value, ...]
    max_stack: int
    arity: int = 0
    name: str = "<toplevel>"
    source: str = "<input>"
    lines: tuple[tuple[int, int, int], ...] = field(default_factory=tuple)

    def location(self, ip: int) -> Optional[tuple[int, int]]:
        """Return the (line, col) of the instruction at or before `ip`, if known."""
        if not self.lines:
            return None
        i = bisect_right(self.lines, (ip, float("inf"), float("inf")))
        if i == 0:
            return None
        _, line, col = self.lines[i - 1]
        return line, col

    def describe_location(self, ip: int) -> str:
        loc = self.location(ip)
        if loc is None:
            return f"{self.source}: {self.name}@{ip}"
        return f"{self.source}:{loc[0]}:{loc[1]}"
