"""Tagged value handles.

Every runtime datum is a `Value`: a small, immutable record holding a tag and
a payload. Immediate scalars (integers, characters, nil, true, false) keep
their payload in `bits` and never touch the heap; heap objects (symbols,
pairs, classes, methods, instances) are referenced through `obj`.

Layout:

    tag      payload
    INT      bits = signed integer, SMALLINT_BITS wide
    CHAR     bits = unicode code point
    NIL      bits = 0   (canonical singleton NIL)
    TRUE     bits = 1   (canonical singleton TRUE)
    FALSE    bits = 0   (canonical singleton FALSE)
    OBJECT   obj  = HeapObject, bits = 0

Identity (`identical`, `==`) compares tags and then either the payload bits
(immediates) or the object reference (heap objects). Structural equality is
`equal`, a separate operation.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from kestrel.errors import KestrelOverflowError, KestrelTypeError


class Tag(IntEnum):
    INT = 0
    CHAR = 1
    NIL = 2
    TRUE = 3
    FALSE = 4
    OBJECT = 5


# Immediate integers are fixed width; results outside the range are rejected.
SMALLINT_BITS = 62
SMALLINT_MAX = (1 << (SMALLINT_BITS - 1)) - 1
SMALLINT_MIN = -(1 << (SMALLINT_BITS - 1))

CHAR_MAX = 0x10FFFF


class Value:
    __slots__ = ("tag", "bits", "obj")

    def __init__(self, tag: Tag, bits: int = 0, obj: Any = None):
        object.__setattr__(self, "tag", tag)
        object.__setattr__(self, "bits", bits)
        object.__setattr__(self, "obj", obj)

    def __setattr__(self, name, value):
        raise AttributeError("Value is immutable")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Value) and identical(self, other)

    def __hash__(self) -> int:
        if self.tag is Tag.OBJECT:
            return hash((self.tag, id(self.obj)))
        return hash((self.tag, self.bits))

    def __repr__(self) -> str:
        from kestrel.types.printer import print_value
        return f"Value({print_value(self)})"

    def __str__(self) -> str:
        from kestrel.types.printer import print_value
        return print_value(self)


NIL = Value(Tag.NIL, 0)
TRUE = Value(Tag.TRUE, 1)
FALSE = Value(Tag.FALSE, 0)

_IMMEDIATE_TAGS = frozenset((Tag.INT, Tag.CHAR, Tag.NIL, Tag.TRUE, Tag.FALSE))


def identical(x: Value, y: Value) -> bool:
    """Bit/pointer identity: same tag and same bits, or same heap object."""
    if x is y:
        return True
    if x.tag != y.tag:
        return False
    if x.tag == Tag.OBJECT:
        return x.obj is y.obj
    return x.bits == y.bits


def tag_of(v: Value) -> Tag:
    return v.tag


def is_immediate(v: Value) -> bool:
    return v.tag in _IMMEDIATE_TAGS


def fits_smallint(n: int) -> bool:
    return SMALLINT_MIN <= n <= SMALLINT_MAX


def make_int(n: int) -> Value:
    """Box `n` as an immediate integer; values outside the range are rejected."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise KestrelTypeError(f"Cannot encode {n!r} as an integer")
    if not fits_smallint(n):
        raise KestrelOverflowError(
            f"Integer {n} outside immediate range [{SMALLINT_MIN}, {SMALLINT_MAX}]"
        )
    return Value(Tag.INT, n)


def make_char(c: str | int) -> Value:
    cp = ord(c) if isinstance(c, str) else c
    if not 0 <= cp <= CHAR_MAX:
        raise KestrelOverflowError(f"Code point {cp} outside character range")
    return Value(Tag.CHAR, cp)


def make_bool(b: bool) -> Value:
    return TRUE if b else FALSE


def make_object(obj: Any) -> Value:
    if obj is None:
        raise KestrelTypeError("Cannot wrap None as a heap object")
    return Value(Tag.OBJECT, 0, obj)


def as_int(v: Value) -> int:
    if v.tag != Tag.INT:
        raise KestrelTypeError(f"Expected an integer, got {v}")
    return v.bits


def as_char(v: Value) -> str:
    if v.tag != Tag.CHAR:
        raise KestrelTypeError(f"Expected a character, got {v}")
    return chr(v.bits)


def as_object(v: Value) -> Any:
    if v.tag != Tag.OBJECT:
        raise KestrelTypeError(f"Expected a heap object, got {v}")
    return v.obj


def is_truthy(v: Value) -> bool:
    # Only nil and false are falsey
    return v.tag != Tag.NIL and v.tag != Tag.FALSE


def equal(x: Value, y: Value) -> bool:
    """Structural equality: pairs element-wise, everything else by identity."""
    from kestrel.types.objects import Pair
    pending = [(x, y)]
    while pending:
        x, y = pending.pop()
        if identical(x, y):
            continue
        if x.tag != Tag.OBJECT or y.tag != Tag.OBJECT:
            return False
        a, b = x.obj, y.obj
        if not (isinstance(a, Pair) and isinstance(b, Pair)):
            return False
        pending.append((a.tail, b.tail))
        pending.append((a.head, b.head))
    return True
