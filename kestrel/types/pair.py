from __future__ import annotations

from typing import Iterable, Iterator

from kestrel.errors import KestrelTypeError
from kestrel.types.objects import Pair
from kestrel.types.value import Value, Tag, NIL, make_object
from kestrel.types.classes import PAIR


def cons(head: Value, tail: Value) -> Value:
    return make_object(Pair(PAIR, head, tail))


def is_pair(v: Value) -> bool:
    return v.tag == Tag.OBJECT and isinstance(v.obj, Pair)


def as_pair(v: Value) -> Pair:
    if not is_pair(v):
        raise KestrelTypeError(f"Expected a pair, got {v}")
    return v.obj


def head(v: Value) -> Value:
    return as_pair(v).head


def tail(v: Value) -> Value:
    return as_pair(v).tail


def iter_pairs(v: Value) -> Iterator[Pair]:
    """Yield each cell of a (possibly improper) list; stops at the first non-pair tail."""
    while is_pair(v):
        cell = v.obj
        yield cell
        v = cell.tail


def from_iterable(items: Iterable[Value], last: Value = NIL) -> Value:
    result = last
    for item in reversed(list(items)):
        result = cons(item, result)
    return result


def to_list(v: Value) -> list[Value]:
    """Convert a proper list to a Python list."""
    out: list[Value] = []
    while is_pair(v):
        out.append(v.obj.head)
        v = v.obj.tail
    if v.tag != Tag.NIL:
        raise KestrelTypeError("Cannot convert an improper list")
    return out
