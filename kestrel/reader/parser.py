"""
  Kestrel Reader: Lexer and Parser

- Streaming, lazy parsing
- Emits Values for atoms and `Form` (a list carrying its source position) for lists:

    - integers      -> immediate INT Value
    - #\\c, #\\space -> immediate CHAR Value
    - symbols       -> interned symbol Value (nil/true/false included; they are globals)
    - ( ... )       -> Form
    - 'x            -> Form [quote, x]
    - ; comment     -> skipped
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from kestrel import Form as FormValue
from kestrel.errors import KestrelSyntaxError, KestrelOverflowError
from kestrel.types.symbol import symbol
from kestrel.types.value import make_int, make_char


TOKEN_RE = re.compile(
    r"(?P<comment>;[^\n]*)"  # single-line comment
    r"|(?P<ws>\s+)"
    r"|(?P<quote>')"
    r"|(?P<lparen>\()"
    r"|(?P<rparen>\))"
    r"|(?P<char>#\\(?:newline|space|tab|return|.))"  # character literals, named or single-char
    r"|(?P<int>[+-]?\d+(?![^\s()';]))"
    r"|(?P<symbol>[^\s()';]+)",  # fallback: symbols
    re.DOTALL,
)

NAMED_CHARS: dict[str, str] = {
    "space": " ",
    "newline": "\n",
    "tab": "\t",
    "return": "\r",
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int
    col: int


class Form(list):
    """A parsed list. `positions[i]` is the (line, col) of element i."""

    def __init__(self, items=(), line: int = 0, col: int = 0, positions=None):
        super().__init__(items)
        self.line = line
        self.col = col
        self.positions: list[tuple[int, int]] = list(positions or [])


def lex(source: str) -> Iterator[Token]:
    """Token generator; lines and columns are 1-based."""
    pos = 0
    line = 1
    line_start = 0
    n = len(source)
    while pos < n:
        match = TOKEN_RE.match(source, pos)
        if not match:
            raise KestrelSyntaxError(f"{line}:{pos - line_start + 1}: unexpected character {source[pos]!r}")
        kind = match.lastgroup
        text = match.group(kind)
        if kind not in ("comment", "ws"):
            yield Token(kind, text, line, pos - line_start + 1)
        newlines = text.count("\n")
        if newlines:
            line += newlines
            line_start = pos + text.rindex("\n") + 1
        pos = match.end()


class TokenStream:
    def __init__(self, tokens: Iterator[Token]):
        self.tokens = tokens
        self.current: Optional[Token] = None
        self.last_position: tuple[int, int] = (0, 0)
        self.advance()

    def advance(self) -> None:
        self.current = next(self.tokens, None)

    def parse_expr(self) -> Optional[FormValue]:
        """Return the next complete form, or None at end of input."""
        token = self.current
        if token is None:
            return None
        self.last_position = (token.line, token.col)
        return self._parse(token)

    def _parse(self, token: Token) -> FormValue:
        kind = token.kind
        self.advance()
        if kind == "lparen":
            return self._parse_list(token)
        if kind == "rparen":
            raise KestrelSyntaxError(f"{token.line}:{token.col}: unexpected ')'")
        if kind == "quote":
            nxt = self.current
            if nxt is None:
                raise KestrelSyntaxError(f"{token.line}:{token.col}: quote at end of input")
            quoted = self._parse(nxt)
            return Form(
                [symbol("quote"), quoted], token.line, token.col,
                [(token.line, token.col), (nxt.line, nxt.col)],
            )
        return self._atom(token)

    def _parse_list(self, open_token: Token) -> Form:
        form = Form(line=open_token.line, col=open_token.col)
        while True:
            token = self.current
            if token is None:
                raise KestrelSyntaxError(f"{open_token.line}:{open_token.col}: unterminated list")
            if token.kind == "rparen":
                self.advance()
                return form
            form.positions.append((token.line, token.col))
            form.append(self._parse(token))

    @staticmethod
    def _atom(token: Token) -> FormValue:
        if token.kind == "int":
            try:
                return make_int(int(token.text))
            except KestrelOverflowError as ex:
                raise KestrelSyntaxError(f"{token.line}:{token.col}: {ex}") from ex
        if token.kind == "char":
            body = token.text[2:]
            return make_char(NAMED_CHARS.get(body, body))
        return symbol(token.text)


def parse(source: str) -> list[FormValue]:
    """Parse every form in `source`."""
    stream = TokenStream(lex(source))
    forms = []
    while (expr := stream.parse_expr()) is not None:
        forms.append(expr)
    return forms
