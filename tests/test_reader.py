import pytest

from kestrel.errors import KestrelSyntaxError
from kestrel.reader.parser import parse, lex, Form
from kestrel.types.symbol import symbol
from kestrel.types.value import make_int, make_char, identical, SMALLINT_MAX


def test_atoms():
    forms = parse("42 -7 foo + #\\a #\\space")
    assert identical(forms[0], make_int(42))
    assert identical(forms[1], make_int(-7))
    assert identical(forms[2], symbol("foo"))
    assert identical(forms[3], symbol("+"))
    assert identical(forms[4], make_char("a"))
    assert identical(forms[5], make_char(" "))


def test_lists_carry_positions():
    (form,) = parse("; comment\n  (+ 1\n     two)")
    assert isinstance(form, Form)
    assert (form.line, form.col) == (2, 3)
    assert form.positions == [(2, 4), (2, 6), (3, 6)]
    assert identical(form[2], symbol("two"))


def test_quote_sugar():
    (form,) = parse("'(a b)")
    assert identical(form[0], symbol("quote"))
    assert [str(x) for x in form[1]] == ["a", "b"]


def test_tokens_skip_whitespace_and_comments():
    kinds = [t.kind for t in lex("(a ; x\n 1)")]
    assert kinds == ["lparen", "symbol", "int", "rparen"]


def test_symbols_with_digits_are_not_integers():
    (a, b) = parse("1+ x2")
    assert identical(a, symbol("1+"))
    assert identical(b, symbol("x2"))


def test_syntax_errors():
    with pytest.raises(KestrelSyntaxError):
        parse("(+ 1 2")
    with pytest.raises(KestrelSyntaxError):
        parse(")")
    with pytest.raises(KestrelSyntaxError):
        parse(str(SMALLINT_MAX + 1))
