import pytest

from kestrel.errors import KestrelOverflowError, KestrelTypeError
from kestrel.types.pair import cons, from_iterable, to_list
from kestrel.types.printer import print_value
from kestrel.types.symbol import symbol
from kestrel.types.value import (
    Value, Tag, NIL, TRUE, FALSE, SMALLINT_MAX, SMALLINT_MIN,
    make_int, make_char, make_bool, make_object, as_int, as_char, as_object,
    identical, equal, tag_of, is_immediate, is_truthy,
)


def test_identical_requires_matching_tags():
    # Same payload bits, different tags: never identical
    assert not identical(make_int(0), NIL)
    assert not identical(make_int(0), FALSE)
    assert not identical(make_int(97), make_char("a"))
    assert not identical(make_int(1), TRUE)


def test_identical_immediates_compare_bits():
    assert identical(make_int(42), make_int(42))
    assert not identical(make_int(42), make_int(43))
    assert make_int(-5) == make_int(-5)
    assert hash(make_int(-5)) == hash(make_int(-5))


def test_identical_objects_compare_pointers():
    a = cons(make_int(1), NIL)
    b = cons(make_int(1), NIL)
    assert identical(a, make_object(a.obj))
    assert not identical(a, b)
    # Structural equality is a separate operation
    assert equal(a, b)


def test_singletons_are_canonical():
    assert make_bool(True) is TRUE
    assert make_bool(False) is FALSE
    assert identical(NIL, Value(Tag.NIL, 0))
    assert NIL is NIL


def test_smallint_range_is_checked():
    assert as_int(make_int(SMALLINT_MAX)) == SMALLINT_MAX
    assert as_int(make_int(SMALLINT_MIN)) == SMALLINT_MIN
    with pytest.raises(KestrelOverflowError):
        make_int(SMALLINT_MAX + 1)
    with pytest.raises(KestrelOverflowError):
        make_int(SMALLINT_MIN - 1)


def test_accessors_check_tags():
    assert tag_of(make_char("x")) == Tag.CHAR
    assert as_char(make_char("x")) == "x"
    assert is_immediate(make_int(3))
    assert not is_immediate(symbol("foo"))
    with pytest.raises(KestrelTypeError):
        as_int(NIL)
    with pytest.raises(KestrelTypeError):
        as_object(make_int(1))
    with pytest.raises(KestrelTypeError):
        make_int(True)


def test_truthiness():
    assert not is_truthy(NIL)
    assert not is_truthy(FALSE)
    assert is_truthy(TRUE)
    assert is_truthy(make_int(0))


def test_values_are_immutable():
    v = make_int(1)
    with pytest.raises(AttributeError):
        v.bits = 2


def test_structural_equality_of_lists():
    xs = from_iterable([make_int(1), make_int(2), symbol("a")])
    ys = from_iterable([make_int(1), make_int(2), symbol("a")])
    zs = from_iterable([make_int(1), make_int(3)])
    assert equal(xs, ys)
    assert not equal(xs, zs)
    assert not equal(xs, NIL)


def test_print_dispatch_is_total():
    assert print_value(make_int(-12)) == "-12"
    assert print_value(NIL) == "nil"
    assert print_value(TRUE) == "true"
    assert print_value(make_char(" ")) == "#\\space"
    assert print_value(from_iterable([make_int(1), make_int(2)])) == "(1 2)"
    assert print_value(cons(make_int(1), make_int(2))) == "(1 . 2)"
    assert print_value(symbol("foo")) == "foo"
    # Unknown tags and unknown heap objects fall back instead of raising
    assert print_value(Value(99)) == "#<unknown tag 99>"
    assert print_value(make_object(object())) == "#<object object>"


def test_to_list_requires_a_proper_list():
    items = [make_int(1), symbol("b")]
    assert to_list(from_iterable(items)) == items
    assert to_list(NIL) == []
    with pytest.raises(KestrelTypeError):
        to_list(cons(make_int(1), make_int(2)))


def _nested_heads(depth):
    v = NIL
    for _ in range(depth):
        v = cons(v, NIL)
    return v


def test_deeply_nested_heads_print_and_compare():
    deep = _nested_heads(5000)
    assert print_value(deep) == "(" * 5000 + "nil" + ")" * 5000
    assert equal(deep, _nested_heads(5000))
    assert not equal(deep, _nested_heads(4999))


def test_mixed_nesting_prints_in_order():
    inner = from_iterable([make_int(2), make_char("x")], last=make_int(3))
    v = from_iterable([make_int(1), inner, symbol("z")])
    assert print_value(v) == "(1 (2 #\\x . 3) z)"
