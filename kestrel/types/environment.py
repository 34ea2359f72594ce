"""Runtime environment for Kestrel.

An environment is a chain of scopes built from pairs. One scope is the pair
`(bindings . parentScope)`; `bindings` is a list of `(symbol . value)` pairs.
`define` always prepends a fresh binding, so several bindings for the same
symbol can coexist in one scope and lookup sees the newest. Keys compare by
symbol identity.
"""

from __future__ import annotations

from io import StringIO
from typing import Iterator, Optional

from kestrel.errors import KestrelInvalidSymbol, KestrelUnboundSymbol
from kestrel.types.objects import Pair, Symbol
from kestrel.types.value import Value, Tag, NIL, make_object
from kestrel.types.pair import cons, iter_pairs
from kestrel.types.printer import print_value
from kestrel.types.symbol import is_symbol


def _key(name: Value | Symbol) -> Symbol:
    if isinstance(name, Symbol):
        return name
    if isinstance(name, Value) and is_symbol(name):
        return name.obj
    raise KestrelInvalidSymbol(f"Cannot bind {name} as a symbol")


class Environment:
    """Hierarchical mapping from Symbols to Values, stored as pair chains."""

    __slots__ = ("scope", "outer")

    def __init__(self, outer: Optional[Environment] = None):
        self.outer: Optional[Environment] = outer
        parent = outer.scope if outer is not None else NIL
        # (bindings . parent)
        self.scope: Value = cons(NIL, parent)

    @property
    def _cell(self) -> Pair:
        return self.scope.obj

    def extend(self) -> Environment:
        """Return a fresh child scope whose parent is this one."""
        return Environment(self)

    def define(self, name: Value | Symbol, value: Value) -> None:
        """Prepend a `(name . value)` binding to the innermost scope.

        Raises KestrelInvalidSymbol if `name` is not a Symbol.
        """
        sym = _key(name)
        cell = self._cell
        cell.head = cons(cons(make_object(sym), value), cell.head)

    def find(self, name: Value | Symbol) -> Optional[Pair]:
        """Return the nearest binding pair for `name`, or None."""
        sym = _key(name)
        scope = self.scope
        while scope.tag == Tag.OBJECT:
            frame: Pair = scope.obj
            for binding_cell in iter_pairs(frame.head):
                binding: Pair = binding_cell.head.obj
                if binding.head.obj is sym:
                    return binding
            scope = frame.tail
        return None

    def lookup(self, name: Value | Symbol) -> Value:
        """Look up the value bound to `name`.

        Raises KestrelUnboundSymbol if not found.
        """
        binding = self.find(name)
        if binding is None:
            raise KestrelUnboundSymbol(f"Cannot lookup unbound symbol {_key(name).text}")
        return binding.tail

    def set(self, name: Value | Symbol, value: Value) -> None:
        """Update the nearest existing binding for `name`.

        Raises KestrelUnboundSymbol if the symbol is not bound anywhere in the chain.
        """
        binding = self.find(name)
        if binding is None:
            raise KestrelUnboundSymbol(f"Cannot set unbound symbol {_key(name).text}")
        binding.tail = value

    def __contains__(self, name: Value | Symbol) -> bool:
        return self.find(name) is not None

    def bindings(self) -> Iterator[tuple[Symbol, Value]]:
        """Iterate the innermost scope's bindings, newest first (shadowed ones included)."""
        for binding_cell in iter_pairs(self._cell.head):
            binding: Pair = binding_cell.head.obj
            yield binding.head.obj, binding.tail

    def _write_vars(self, buffer: StringIO) -> None:
        """Write this scope's bindings into the buffer in a compact form."""
        buffer.write("{")
        first = True
        for k, v in self.bindings():
            if not first:
                buffer.write(", ")
            buffer.write(f"{k.text}: {print_value(v)}")
            first = False
        buffer.write("}")

    def __str__(self) -> str:
        with StringIO() as buffer:
            self._write_vars(buffer)
            if self.outer is not None:
                buffer.write(" -> ...")
            return buffer.getvalue()

    def __repr__(self) -> str:
        with StringIO() as buffer:
            buffer.write("<Environment chain: ")
            env = self
            chain = []
            while env is not None:
                env_buf = StringIO()
                env._write_vars(env_buf)
                chain.append(env_buf.getvalue())
                env = env.outer
            buffer.write(" -> ".join(chain))
            buffer.write(">")
            return buffer.getvalue()
