"""Primitive message handlers for the Kestrel core classes.

Every primitive has the signature `fn(vm, args) -> Value` where `args[0]` is
the receiver. Primitives are installed once per process on the shared core
classes; `register(env)` additionally binds the global names (class names,
nil, true, false) into an environment.
"""
from __future__ import annotations

from typing import Callable, Optional

from kestrel.errors import KestrelArithmeticError, KestrelTypeError
from kestrel.types import classes as C
from kestrel.types.classes import class_of, define_class, make_instance, make_primitive
from kestrel.types.environment import Environment
from kestrel.types.objects import Instance, Klass, CompiledMethod, Primitive
from kestrel.types.pair import cons, as_pair, iter_pairs
from kestrel.types.printer import print_value
from kestrel.types.symbol import intern, as_symbol, symbol
from kestrel.types.value import (
    Value, Tag, NIL, TRUE, FALSE, make_int, make_char, make_bool, make_object,
    as_char, identical, equal, is_truthy,
)
from kestrel.evaluation.dispatch import lookup_handler


def _int_arg(v: Value, selector: str) -> int:
    if v.tag != Tag.INT:
        raise KestrelTypeError(f"Argument to Integer>>{selector} must be an integer, got {print_value(v)}")
    return v.bits


def _class_arg(v: Value, selector: str) -> Klass:
    if v.tag != Tag.OBJECT or not isinstance(v.obj, Klass):
        raise KestrelTypeError(f"Receiver of #{selector} must be a class, got {print_value(v)}")
    return v.obj


def _instance_arg(v: Value, selector: str) -> Instance:
    if v.tag != Tag.OBJECT or not isinstance(v.obj, Instance):
        raise KestrelTypeError(f"Receiver of #{selector} must be an instance, got {print_value(v)}")
    return v.obj


# -------------------------------
# Integer
# -------------------------------
def _arith(selector: str, op: Callable[[int, int], int]):
    def prim(vm, args: list[Value]) -> Value:
        a = _int_arg(args[0], selector)
        b = _int_arg(args[1], selector)
        # make_int rejects results outside the immediate range
        return make_int(op(a, b))
    return prim


def _compare(selector: str, op: Callable[[int, int], bool]):
    def prim(vm, args: list[Value]) -> Value:
        return make_bool(op(_int_arg(args[0], selector), _int_arg(args[1], selector)))
    return prim


def int_div(vm, args: list[Value]) -> Value:
    """Floor division; division by zero is an arithmetic error."""
    a, b = _int_arg(args[0], "/"), _int_arg(args[1], "/")
    if b == 0:
        raise KestrelArithmeticError("Division by zero")
    return make_int(a // b)


def int_mod(vm, args: list[Value]) -> Value:
    a, b = _int_arg(args[0], "%"), _int_arg(args[1], "%")
    if b == 0:
        raise KestrelArithmeticError("Modulo by zero")
    return make_int(a % b)


def int_negated(vm, args: list[Value]) -> Value:
    return make_int(-_int_arg(args[0], "negated"))


def int_as_character(vm, args: list[Value]) -> Value:
    return make_char(_int_arg(args[0], "asCharacter"))


def char_code(vm, args: list[Value]) -> Value:
    return make_int(ord(as_char(args[0])))


# -------------------------------
# Object
# -------------------------------
def obj_identical(vm, args: list[Value]) -> Value:
    return make_bool(identical(args[0], args[1]))


def obj_equal(vm, args: list[Value]) -> Value:
    return make_bool(equal(args[0], args[1]))


def obj_not_equal(vm, args: list[Value]) -> Value:
    """Negation of whatever `=` means for the receiver; re-enters dispatch."""
    return make_bool(not is_truthy(vm.send(args[0], symbol("="), [args[1]])))


def obj_class(vm, args: list[Value]) -> Value:
    return make_object(class_of(args[0]))


def obj_is_nil(vm, args: list[Value]) -> Value:
    return make_bool(args[0].tag == Tag.NIL)


def obj_not(vm, args: list[Value]) -> Value:
    return make_bool(not is_truthy(args[0]))


def obj_print(vm, args: list[Value]) -> Value:
    """Write the printed form of the receiver to stdout and return the receiver."""
    print(print_value(args[0]))
    return args[0]


def obj_cons(vm, args: list[Value]) -> Value:
    return cons(args[0], args[1])


def obj_responds_to(vm, args: list[Value]) -> Value:
    return make_bool(lookup_handler(args[0], args[1]) is not None)


def obj_get(vm, args: list[Value]) -> Value:
    inst = _instance_arg(args[0], "get")
    return inst.fields.get(as_symbol(args[1]), NIL)


def obj_set(vm, args: list[Value]) -> Value:
    inst = _instance_arg(args[0], "set")
    inst.fields[as_symbol(args[1])] = args[2]
    return args[2]


# -------------------------------
# Pair
# -------------------------------
def pair_head(vm, args: list[Value]) -> Value:
    return as_pair(args[0]).head


def pair_tail(vm, args: list[Value]) -> Value:
    return as_pair(args[0]).tail


def pair_length(vm, args: list[Value]) -> Value:
    return make_int(sum(1 for _ in iter_pairs(args[0])))


# -------------------------------
# Class
# -------------------------------
def class_new(vm, args: list[Value]) -> Value:
    klass = _class_arg(args[0], "new")
    if klass.encoding != Tag.OBJECT or not klass.is_subclass_of(C.OBJECT) or klass in C.CORE_CLASSES:
        raise KestrelTypeError(f"Cannot instantiate {klass.display_name()} with #new")
    return make_instance(klass)


def class_subclass(vm, args: list[Value]) -> Value:
    base = _class_arg(args[0], "subclass")
    name = as_symbol(args[1])
    return make_object(define_class(name.text, base))


def class_install(vm, args: list[Value]) -> Value:
    """(install Class 'selector method) prepends a handler and returns the selector."""
    klass = _class_arg(args[0], "install")
    selector = as_symbol(args[1])
    target = args[2].obj if args[2].tag == Tag.OBJECT else None
    if not isinstance(target, (CompiledMethod, Primitive)):
        raise KestrelTypeError(f"Cannot install {print_value(args[2])} as a handler")
    klass.install(selector, target)
    return args[1]


def class_name(vm, args: list[Value]) -> Value:
    klass = _class_arg(args[0], "name")
    return make_object(klass.name) if klass.name is not None else NIL


def class_base(vm, args: list[Value]) -> Value:
    klass = _class_arg(args[0], "base")
    return make_object(klass.base) if klass.base is not None else NIL


# selector, function, arity (receiver included)
PRIMITIVES: dict[Klass, list[tuple[str, Callable, Optional[int]]]] = {
    C.INTEGER: [
        ("+", _arith("+", lambda a, b: a + b), 2),
        ("-", _arith("-", lambda a, b: a - b), 2),
        ("*", _arith("*", lambda a, b: a * b), 2),
        ("/", int_div, 2),
        ("%", int_mod, 2),
        ("<", _compare("<", lambda a, b: a < b), 2),
        (">", _compare(">", lambda a, b: a > b), 2),
        ("<=", _compare("<=", lambda a, b: a <= b), 2),
        (">=", _compare(">=", lambda a, b: a >= b), 2),
        ("negated", int_negated, 1),
        ("asCharacter", int_as_character, 1),
    ],
    C.CHARACTER: [
        ("code", char_code, 1),
    ],
    C.OBJECT: [
        ("==", obj_identical, 2),
        ("=", obj_equal, 2),
        ("~=", obj_not_equal, 2),
        ("class", obj_class, 1),
        ("isNil", obj_is_nil, 1),
        ("not", obj_not, 1),
        ("print", obj_print, 1),
        ("cons", obj_cons, 2),
        ("respondsTo", obj_responds_to, 2),
        ("get", obj_get, 2),
        ("set", obj_set, 3),
    ],
    C.PAIR: [
        ("head", pair_head, 1),
        ("tail", pair_tail, 1),
        ("length", pair_length, 1),
    ],
    C.CLASS: [
        ("new", class_new, 1),
        ("subclass", class_subclass, 2),
        ("install", class_install, 3),
        ("name", class_name, 1),
        ("base", class_base, 1),
    ],
}

_installed = False
_default_env: Optional[Environment] = None


def install_primitives() -> None:
    """Install the primitive handlers on the core classes (once per process)."""
    global _installed
    if _installed:
        return
    for klass, entries in PRIMITIVES.items():
        for selector, fn, arity in entries:
            name = f"{klass.display_name()}>>{selector}"
            klass.install(intern(selector), make_primitive(fn, name, arity))
    _installed = True


def register(env: Environment) -> None:
    """Install primitives and bind the global names into `env`."""
    install_primitives()
    for klass in C.CORE_CLASSES:
        env.define(klass.name, make_object(klass))
    env.define(intern("nil"), NIL)
    env.define(intern("true"), TRUE)
    env.define(intern("false"), FALSE)


def default_environment() -> Environment:
    """Process-wide global environment shared by entry points called without one."""
    global _default_env
    if _default_env is None:
        env = Environment()
        register(env)
        _default_env = env
    return _default_env
