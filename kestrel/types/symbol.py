"""Symbol interning.

A process-wide table maps text to the one Symbol object for that spelling, so
identity comparison stands in for text comparison everywhere.
"""
from __future__ import annotations

import sys
from typing import Optional

from kestrel.errors import KestrelInvalidSymbol
from kestrel.types.objects import Symbol, Klass
from kestrel.types.value import Value, Tag, make_object


_table: dict[str, Symbol] = {}
_symbol_class: Optional[Klass] = None


def bind_symbol_class(klass: Klass) -> None:
    """Set the class of every symbol (called once by the class bootstrap)."""
    global _symbol_class
    _symbol_class = klass
    for sym in _table.values():
        sym.klass = klass


def intern(text: str) -> Symbol:
    if not isinstance(text, str):
        raise KestrelInvalidSymbol(f"Cannot intern {text!r} as a symbol")
    sym = _table.get(text)
    if sym is None:
        sym = Symbol(_symbol_class, sys.intern(text))
        _table[sym.text] = sym
    return sym


def symbol(text: str) -> Value:
    return make_object(intern(text))


def is_symbol(v: Value) -> bool:
    return v.tag == Tag.OBJECT and isinstance(v.obj, Symbol)


def as_symbol(v: Value) -> Symbol:
    if not is_symbol(v):
        raise KestrelInvalidSymbol(f"Expected a symbol, got {v}")
    return v.obj


def symbol_text(v: Value) -> str:
    return as_symbol(v).text


def interned_count() -> int:
    return len(_table)


# Ensure the Symbol class exists before any symbol escapes this module
import kestrel.types.classes  # noqa: E402,F401
