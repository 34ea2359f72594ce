from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from kestrel import config
from kestrel.errors import KestrelSyntaxError
from kestrel.types.classes import make_method
from kestrel.types.objects import Symbol
from kestrel.types.pair import from_iterable
from kestrel.types.symbol import intern, is_symbol
from kestrel.types.value import Value, NIL, make_object

from .opcodes import Opcode
from .chunk import Chunk
from .program import Program

QUOTE = intern("quote")
DEFINE = intern("define")
IF = intern("if")
BEGIN = intern("begin")
METHOD = intern("method")

Position = Optional[tuple[int, int]]


@dataclass
class CompileCtx:
    params: dict[Symbol, int] | None = None
    source: str = "<input>"
    name_hint: str | None = None


def compile_module(expr: Any, source: str = "<input>", position: Position = None) -> Program:
    """Compile a single top-level form into a program that returns its value."""
    chunk = Chunk()
    compile_expr(expr, chunk, CompileCtx(source=source), position)
    chunk.emit_op(Opcode.RETURN)
    program = chunk.finish(name="<toplevel>", arity=0, source=source)
    if config.disasm_enabled():
        from .disasm import disassemble
        print("=== DISASM ===")
        print(disassemble(program))
        print("=== END DISASM ===")
    return program


def _where(ctx: CompileCtx, position: Position) -> str:
    if position is None:
        return ctx.source
    return f"{ctx.source}:{position[0]}:{position[1]}"


def _child_position(form, i: int) -> Position:
    positions = getattr(form, "positions", None)
    if positions and i < len(positions):
        return positions[i]
    return None


def compile_expr(expr: Any, chunk: Chunk, ctx: CompileCtx, position: Position = None) -> None:
    if position is not None:
        chunk.mark_line(*position)
    if isinstance(expr, Value):
        if is_symbol(expr):
            _compile_symbol(expr.obj, chunk, ctx)
        else:
            chunk.emit_constant(expr)
        return
    if isinstance(expr, list):
        _compile_list(expr, chunk, ctx, position)
        return
    raise KestrelSyntaxError(f"{_where(ctx, position)}: cannot compile {expr!r}")


def _compile_symbol(sym: Symbol, chunk: Chunk, ctx: CompileCtx) -> None:
    if ctx.params is not None and sym in ctx.params:
        chunk.emit_argument(ctx.params[sym])
        return
    # Globals are resolved at run time: push the name, then LOAD_GLOBAL
    chunk.emit_constant(make_object(sym))
    chunk.emit_op(Opcode.LOAD_GLOBAL)


def _compile_list(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    if not form:
        chunk.emit_constant(NIL)
        return
    head = form[0]
    if not (isinstance(head, Value) and is_symbol(head)):
        raise KestrelSyntaxError(f"{_where(ctx, position)}: a form must start with a selector symbol")
    sym: Symbol = head.obj
    special = _SPECIAL_FORMS.get(sym)
    if special is not None:
        special(form, chunk, ctx, position)
        return
    _compile_send(form, chunk, ctx, position)


def _compile_send(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    """(selector receiver arg...) -> receiver, args, selector, CALL argc."""
    if len(form) < 2:
        raise KestrelSyntaxError(f"{_where(ctx, position)}: send of #{form[0]} has no receiver")
    for i, operand in enumerate(form[1:], start=1):
        compile_expr(operand, chunk, ctx, _child_position(form, i))
    if position is not None:
        chunk.mark_line(*position)
    chunk.emit_constant(form[0])
    chunk.emit_call(len(form) - 1)


def _quote_datum(datum: Any, ctx: CompileCtx, position: Position) -> Value:
    if isinstance(datum, Value):
        return datum
    if isinstance(datum, list):
        return from_iterable(_quote_datum(x, ctx, position) for x in datum)
    raise KestrelSyntaxError(f"{_where(ctx, position)}: cannot quote {datum!r}")


def _compile_quote(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    if len(form) != 2:
        raise KestrelSyntaxError(f"{_where(ctx, position)}: quote takes exactly one datum")
    chunk.emit_constant(_quote_datum(form[1], ctx, position))


def _compile_define(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    if len(form) != 3 or not (isinstance(form[1], Value) and is_symbol(form[1])):
        raise KestrelSyntaxError(f"{_where(ctx, position)}: expected (define name expr)")
    name = form[1]
    inner = CompileCtx(params=ctx.params, source=ctx.source, name_hint=name.obj.text)
    compile_expr(form[2], chunk, inner, _child_position(form, 2))
    chunk.emit_constant(name)
    chunk.emit_op(Opcode.DEFINE_GLOBAL)


def _compile_if(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    if len(form) not in (3, 4):
        raise KestrelSyntaxError(f"{_where(ctx, position)}: expected (if test then [else])")
    compile_expr(form[1], chunk, ctx, _child_position(form, 1))
    to_else = chunk.emit_jump(Opcode.JUMP_IF_FALSE)
    compile_expr(form[2], chunk, ctx, _child_position(form, 2))
    to_end = chunk.emit_jump(Opcode.JUMP)
    chunk.patch_jump(to_else)
    if len(form) == 4:
        compile_expr(form[3], chunk, ctx, _child_position(form, 3))
    else:
        chunk.emit_constant(NIL)
    chunk.patch_jump(to_end)


def _compile_body(form: list, start: int, chunk: Chunk, ctx: CompileCtx) -> None:
    body = form[start:]
    if not body:
        chunk.emit_constant(NIL)
        return
    for i, expr in enumerate(body, start=start):
        compile_expr(expr, chunk, ctx, _child_position(form, i))
        if i != len(form) - 1:
            chunk.emit_op(Opcode.POP)


def _compile_begin(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    _compile_body(form, 1, chunk, ctx)


def _compile_method(form: list, chunk: Chunk, ctx: CompileCtx, position: Position) -> None:
    """(method (self arg...) body...) -> a CompiledMethod constant; arity counts self."""
    if len(form) < 2 or not isinstance(form[1], list):
        raise KestrelSyntaxError(f"{_where(ctx, position)}: expected (method (self args...) body...)")
    params: dict[Symbol, int] = {}
    for p in form[1]:
        if not (isinstance(p, Value) and is_symbol(p)):
            raise KestrelSyntaxError(f"{_where(ctx, position)}: method parameters must be symbols")
        if p.obj in params:
            raise KestrelSyntaxError(f"{_where(ctx, position)}: duplicate parameter {p.obj.text}")
        params[p.obj] = len(params)
    if not params:
        raise KestrelSyntaxError(f"{_where(ctx, position)}: a method needs at least a receiver parameter")

    body = Chunk()
    inner = CompileCtx(params=params, source=ctx.source)
    if position is not None:
        body.mark_line(*position)
    _compile_body(form, 2, body, inner)
    body.emit_op(Opcode.RETURN)
    program = body.finish(name=ctx.name_hint or "<method>", arity=len(params), source=ctx.source)
    chunk.emit_constant(make_method(program))


_SPECIAL_FORMS = {
    QUOTE: _compile_quote,
    DEFINE: _compile_define,
    IF: _compile_if,
    BEGIN: _compile_begin,
    METHOD: _compile_method,
}
