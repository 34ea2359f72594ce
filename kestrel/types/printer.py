"""Total print dispatch for Values.

Immediates dispatch on their tag, heap objects on their Python type. Anything
unrecognised falls back to an explicit `#<...>` form; printing never raises.
"""
from __future__ import annotations

from io import StringIO
from typing import Callable

from kestrel.types.value import Value, Tag
from kestrel.types.objects import (
    Symbol, Pair, Klass, CompiledMethod, Primitive, Instance,
)

NAMED_CHARS: dict[int, str] = {
    ord(" "): "space",
    ord("\n"): "newline",
    ord("\t"): "tab",
    ord("\r"): "return",
}

# Guards against cyclic pair structures: items per list, and lists per printed value.
MAX_LIST_ITEMS = 10_000
MAX_PRINT_ITEMS = 1_000_000


def _print_char(v: Value) -> str:
    name = NAMED_CHARS.get(v.bits)
    return f"#\\{name}" if name else f"#\\{chr(v.bits)}"


def _is_pair(v: Value) -> bool:
    return v.tag == Tag.OBJECT and isinstance(v.obj, Pair)


def _list_parts(cell: Pair) -> list:
    """One level of a list: literal text plus the element Values still to print."""
    parts: list = ["(", cell.head]
    rest = cell.tail
    count = 1
    while _is_pair(rest):
        if count >= MAX_LIST_ITEMS:
            parts.append(" ...")
            break
        parts.append(" ")
        parts.append(rest.obj.head)
        rest = rest.obj.tail
        count += 1
    else:
        if rest.tag != Tag.NIL:
            parts.append(" . ")
            parts.append(rest)
    parts.append(")")
    return parts


def _print_pair(cell: Pair) -> str:
    # Nested lists go on an explicit work stack; nothing recurses through heads.
    work: list = [cell]
    budget = MAX_PRINT_ITEMS
    with StringIO() as buffer:
        while work:
            item = work.pop()
            if isinstance(item, str):
                buffer.write(item)
                continue
            if isinstance(item, Value):
                if not _is_pair(item):
                    buffer.write(print_value(item))
                    continue
                item = item.obj
            budget -= 1
            if budget < 0:
                buffer.write("...")
                break
            work.extend(reversed(_list_parts(item)))
        return buffer.getvalue()


_IMMEDIATE_PRINTERS: dict[Tag, Callable[[Value], str]] = {
    Tag.INT: lambda v: str(v.bits),
    Tag.CHAR: _print_char,
    Tag.NIL: lambda v: "nil",
    Tag.TRUE: lambda v: "true",
    Tag.FALSE: lambda v: "false",
}

_OBJECT_PRINTERS: dict[type, Callable] = {
    Symbol: lambda o: o.text,
    Pair: _print_pair,
    Klass: lambda o: o.display_name(),
    CompiledMethod: lambda o: f"#<method {o.name}>",
    Primitive: lambda o: f"#<primitive {o.name}>",
    Instance: lambda o: f"#<{o.klass.display_name()}>",
}


def print_value(v: Value) -> str:
    tag = getattr(v, "tag", None)
    if tag == Tag.OBJECT:
        printer = _OBJECT_PRINTERS.get(type(v.obj))
        if printer is None:
            return f"#<object {type(v.obj).__name__}>"
        return printer(v.obj)
    printer = _IMMEDIATE_PRINTERS.get(tag)
    if printer is None:
        return f"#<unknown tag {tag!r}>"
    return printer(v)
