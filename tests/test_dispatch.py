import logging

from kestrel.builtin.primitives import install_primitives
from kestrel.compiler.chunk import Chunk
from kestrel.compiler.opcodes import Opcode
from kestrel.evaluation.dispatch import send_message, lookup_handler
from kestrel.types.classes import (
    OBJECT, INTEGER, CLASS, define_class, class_of, make_instance, make_method, make_primitive,
)
from kestrel.types.symbol import intern, symbol
from kestrel.types.value import make_int, as_int, NIL, TRUE, FALSE, make_object


def _const_primitive(value):
    return make_primitive(lambda vm, args: value, f"const-{value}", None)


def test_derived_handler_shadows_base_handler():
    a = define_class("A")
    b = define_class("B", a)
    plus = intern("+")
    a.install(plus, _const_primitive(make_int(1)))
    b.install(plus, _const_primitive(make_int(2)))
    inst_b = make_instance(b)
    inst_a = make_instance(a)
    assert as_int(send_message(inst_b, "+", [make_int(0)])) == 2
    assert as_int(send_message(inst_a, "+", [make_int(0)])) == 1
    assert lookup_handler(inst_b, symbol("+")).owner is b


def test_inherited_handler_found_on_base():
    a = define_class("Base")
    b = define_class("Derived", a)
    a.install(intern("ping"), _const_primitive(make_int(7)))
    assert as_int(send_message(make_instance(b), "ping")) == 7


def test_newest_install_shadows_earlier_at_same_level():
    k = define_class("K")
    sel = intern("answer")
    first = k.install(sel, _const_primitive(make_int(1)))
    k.install(sel, _const_primitive(make_int(2)))
    assert as_int(send_message(make_instance(k), "answer")) == 2
    # Handler list is newest first and keeps the shadowed entry
    assert [h.selector for h in k.handlers] == [sel, sel]
    assert k.handlers[-1] is first
    assert k.own_handler(sel) is k.handlers[0]
    assert define_class("KChild", k).own_handler(sel) is None


def test_unknown_selector_yields_nil_and_diagnostic(caplog):
    with caplog.at_level(logging.WARNING, logger="kestrel"):
        result = send_message(make_int(3), "frobnicateNothing", [])
    assert result is NIL
    assert "does not understand #frobnicateNothing" in caplog.text


def test_send_to_compiled_method():
    install_primitives()
    k = define_class("Doubler")
    body = Chunk()
    body.emit_argument(1)
    body.emit_argument(1)
    body.emit_constant(symbol("+"))
    body.emit_call(2)
    body.emit_op(Opcode.RETURN)
    k.install(intern("double"), make_method(body.finish("double", arity=2)).obj)
    assert as_int(send_message(make_instance(k), "double", [make_int(21)])) == 42


def test_arity_mismatch_yields_nil(caplog):
    install_primitives()
    with caplog.at_level(logging.WARNING, logger="kestrel"):
        assert send_message(make_int(1), "+", []) is NIL
    assert "expects 2 argument(s)" in caplog.text


def test_primitive_reenters_dispatch():
    install_primitives()
    # ~= is a primitive that sends = and negates the answer
    assert send_message(make_int(3), "~=", [make_int(4)]) is TRUE
    assert send_message(make_int(3), "~=", [make_int(3)]) is FALSE


def test_reentry_uses_overridden_equality():
    install_primitives()
    k = define_class("AlwaysEqual")
    k.install(intern("="), _const_primitive(TRUE))
    assert send_message(make_instance(k), "~=", [make_int(1)]) is FALSE


def test_class_of_immediates_and_classes():
    assert class_of(make_int(1)) is INTEGER
    assert class_of(make_object(INTEGER)) is CLASS
    assert class_of(make_object(CLASS)) is CLASS
    assert INTEGER.base is OBJECT
    assert list(define_class("Leaf", INTEGER).ancestors())[1:] == [INTEGER, OBJECT]


def test_overflow_in_primitive_aborts_with_nil(caplog):
    install_primitives()
    from kestrel.types.value import SMALLINT_MAX
    with caplog.at_level(logging.ERROR, logger="kestrel"):
        assert send_message(make_int(SMALLINT_MAX), "+", [make_int(1)]) is NIL
    assert "outside immediate range" in caplog.text


def test_runaway_reentry_aborts_instead_of_exhausting_the_host_stack(caplog):
    from kestrel.interpreter import Interpreter
    itp = Interpreter()
    itp.eval("""
    (define Echo (subclass Object 'Echo))
    (install Echo '= (method (self other) (~= self other)))
    """)
    with caplog.at_level(logging.ERROR, logger="kestrel"):
        assert itp.eval("(~= (new Echo) 1)") is NIL
    assert "Nested sends exceeded 64 levels" in caplog.text
    # The interpreter stays usable afterwards
    assert as_int(itp.eval("(+ 1 2)")) == 3


def test_reentry_limit_is_configurable(monkeypatch, caplog):
    from kestrel.interpreter import Interpreter
    monkeypatch.setenv("KESTREL_MAX_REENTRY", "3")
    itp = Interpreter()
    itp.eval("""
    (define Mirror (subclass Object 'Mirror))
    (install Mirror '= (method (self other) (~= self other)))
    (define m (new Mirror))
    """)
    receiver = itp.eval("m")
    with caplog.at_level(logging.ERROR, logger="kestrel"):
        assert send_message(receiver, "~=", [make_int(1)], env=itp.env) is NIL
    assert "Nested sends exceeded 3 levels" in caplog.text
