import logging

from kestrel.interpreter import Interpreter
from kestrel.types.value import as_int, NIL, TRUE, FALSE


def test_user_classes_and_overrides():
    itp = Interpreter()
    itp.eval("""
    (define Animal (subclass Object 'Animal))
    (define Dog (subclass Animal 'Dog))
    (install Animal 'legs (method (self) 4))
    (install Animal 'sound (method (self) 'generic))
    (install Dog 'sound (method (self) 'woof))
    """)
    assert str(itp.eval("(sound (new Dog))")) == "woof"
    assert str(itp.eval("(sound (new Animal))")) == "generic"
    assert as_int(itp.eval("(legs (new Dog))")) == 4
    assert str(itp.eval("(name (base Dog))")) == "Animal"
    assert str(itp.eval("(class (new Dog))")) == "Dog"


def test_instance_fields():
    itp = Interpreter()
    itp.eval("""
    (define Point (subclass Object 'Point))
    (install Point 'init (method (self x y) (set self 'x x) (set self 'y y) self))
    (install Point 'sum (method (self) (+ (get self 'x) (get self 'y))))
    (define p (init (new Point) 3 4))
    """)
    assert as_int(itp.eval("(sum p)")) == 7
    assert itp.eval("(get p 'z)") is NIL


def test_equality_layers():
    itp = Interpreter()
    assert itp.eval("(== '(1 2) '(1 2))") is FALSE
    assert itp.eval("(= '(1 2) '(1 2))") is TRUE
    assert itp.eval("(~= 1 2)") is TRUE
    assert itp.eval("(== 'a 'a)") is TRUE


def test_pairs():
    itp = Interpreter()
    assert as_int(itp.eval("(head '(1 2 3))")) == 1
    assert str(itp.eval("(tail '(1 2 3))")) == "(2 3)"
    assert str(itp.eval("(cons 0 '(1))")) == "(0 1)"
    assert as_int(itp.eval("(length '(1 2 3))")) == 3


def test_undefined_identifier_reports_location(caplog):
    itp = Interpreter(source="script.k")
    with caplog.at_level(logging.WARNING, logger="kestrel"):
        result = itp.eval("(+ 1\n   missingName)")
    # nil is not an integer: the primitive rejects it and the form yields nil
    assert result is NIL
    assert "script.k:2:4: undefined identifier missingName" in caplog.text


def test_not_understood_does_not_stop_later_forms(caplog):
    itp = Interpreter()
    with caplog.at_level(logging.WARNING, logger="kestrel"):
        results = itp.eval("(quux 1) (+ 1 1)")
    assert results[0] is NIL
    assert as_int(results[1]) == 2
    assert "does not understand #quux" in caplog.text


def test_division_by_zero_aborts_only_that_form(caplog):
    itp = Interpreter()
    with caplog.at_level(logging.ERROR, logger="kestrel"):
        results = itp.eval("(/ 1 0) 5")
    assert results[0] is NIL
    assert as_int(results[1]) == 5
    assert "Division by zero" in caplog.text


def test_print_writes_to_stdout(capsys):
    itp = Interpreter()
    itp.eval("(print '(1 #\\a foo))")
    assert capsys.readouterr().out == "(1 #\\a foo)\n"


def test_responds_to():
    itp = Interpreter()
    assert itp.eval("(respondsTo 1 '+)") is TRUE
    assert itp.eval("(respondsTo 1 'nothingLikeThis)") is FALSE


def test_globals_are_per_interpreter():
    a = Interpreter()
    b = Interpreter()
    a.eval("(define onlyInA 1)")
    assert b.eval("onlyInA") is NIL


def test_lists_nested_by_a_program_print_and_compare():
    itp = Interpreter()
    itp.eval("""
    (install Integer 'nestHeads
      (method (self acc) (if (<= self 0) acc (nestHeads (- self 1) (cons acc nil)))))
    """)
    deep = itp.eval("(nestHeads 3000 nil)")
    assert str(deep) == "(" * 3000 + "nil" + ")" * 3000
    assert itp.eval("(= (nestHeads 3000 nil) (nestHeads 3000 nil))") is TRUE
