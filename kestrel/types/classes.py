"""Core class hierarchy, bootstrapped once per process.

    Object
        UndefinedObject      (nil)
        Boolean
            True
            False
        Integer              (immediate INT)
        Character            (immediate CHAR)
        Symbol
        Pair
        Class
        CompiledMethod
        Primitive

Every class is itself an instance of `Class`, including `Class`.
"""
from __future__ import annotations

from typing import Optional

from kestrel.types.objects import Klass, CompiledMethod, Primitive, Instance
from kestrel.types.value import Value, Tag, make_object
from kestrel.types import symbol as _symbol


CLASS = Klass(None, None)
CLASS.klass = CLASS


def _named(text: str, base: Optional[Klass], encoding: Tag = Tag.OBJECT) -> Klass:
    return Klass(CLASS, _symbol.intern(text), base, encoding)


OBJECT = _named("Object", None)
CLASS.base = OBJECT
SYMBOL = _named("Symbol", OBJECT)
_symbol.bind_symbol_class(SYMBOL)
CLASS.name = _symbol.intern("Class")

UNDEFINED = _named("UndefinedObject", OBJECT, Tag.NIL)
BOOLEAN = _named("Boolean", OBJECT)
TRUE_CLASS = _named("True", BOOLEAN, Tag.TRUE)
FALSE_CLASS = _named("False", BOOLEAN, Tag.FALSE)
INTEGER = _named("Integer", OBJECT, Tag.INT)
CHARACTER = _named("Character", OBJECT, Tag.CHAR)
PAIR = _named("Pair", OBJECT)
COMPILED_METHOD = _named("CompiledMethod", OBJECT)
PRIMITIVE = _named("Primitive", OBJECT)

CORE_CLASSES: tuple[Klass, ...] = (
    OBJECT, CLASS, UNDEFINED, BOOLEAN, TRUE_CLASS, FALSE_CLASS, INTEGER,
    CHARACTER, SYMBOL, PAIR, COMPILED_METHOD, PRIMITIVE,
)

_BY_TAG: dict[Tag, Klass] = {
    Tag.INT: INTEGER,
    Tag.CHAR: CHARACTER,
    Tag.NIL: UNDEFINED,
    Tag.TRUE: TRUE_CLASS,
    Tag.FALSE: FALSE_CLASS,
}


def class_of(v: Value) -> Klass:
    """Immediates map through their tag, heap objects through their class slot."""
    if v.tag == Tag.OBJECT:
        k = v.obj.klass
        return k if k is not None else OBJECT
    return _BY_TAG.get(v.tag, OBJECT)


def define_class(name: str, base: Optional[Klass] = OBJECT) -> Klass:
    return _named(name, base)


def make_method(program) -> Value:
    return make_object(CompiledMethod(COMPILED_METHOD, program))


def make_primitive(fn, name: str, arity: Optional[int] = None) -> Primitive:
    return Primitive(PRIMITIVE, fn, name, arity)


def make_instance(klass: Klass) -> Value:
    return make_object(Instance(klass))
