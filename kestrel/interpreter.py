from __future__ import annotations
from typing import Callable

from kestrel import Form, KValue
from kestrel.reader.parser import lex, TokenStream
from kestrel.types.value import NIL
from kestrel.types.environment import Environment
from kestrel.builtin.primitives import register
from kestrel.compiler.compiler import compile_module
from kestrel.compiler.vm import execute_bytecode


class Interpreter:
    """
    Reads Kestrel source, compiles each form to a program and executes it.
    Maintains one global Environment across calls.
    """

    def __init__(self, env: Environment | None = None, source: str = "<input>"):
        if env is None:
            env = Environment()
            register(env)
        self.env: Environment = env
        self.source = source
        self.execute: Callable = execute_bytecode

    def eval_form(self, form: Form, position: tuple[int, int] | None = None) -> KValue:
        program = compile_module(form, self.source, position)
        return self.execute(program, self.env)

    def eval(self, code: str) -> KValue:
        stream = TokenStream(lex(code))
        results: list[KValue] = []
        while (expr := stream.parse_expr()) is not None:
            results.append(self.eval_form(expr, stream.last_position))
        if not results:
            return NIL
        if len(results) == 1:
            return results[0]
        return results
