"""Token cursor over struct specification source.

The struct DSL borrows Python's lexical rules: identifiers, string and bytes
literals, numbers and embedded Python expressions all tokenize the way they
would in a ``.py`` file, so :mod:`tokenize` does the heavy lifting.  The
cursor adds the two-character operators Python has no token for (``=>`` and
``..``) and slices embedded expressions back out of the source for
:func:`compile`.
"""

from __future__ import annotations

import io
import token
import tokenize
from dataclasses import dataclass
from types import CodeType
from typing import Any

from hexstruct.errors import SpecificationError, StructSyntaxError

_TRIVIA = frozenset({
    token.NL, token.NEWLINE, token.INDENT, token.DEDENT, token.COMMENT,
})
_OPENERS = frozenset("([{")
_CLOSERS = frozenset(")]}")


class SourceCursor:
    """Sequential access to the significant tokens of a DSL source string.

    Parameters
    ----------
    source : str
        The struct specification text.
    filename : str
        Name used for compiled expressions in tracebacks.
    """

    def __init__(self, source: str, filename: str = "<hexstruct>"):
        self.source = source
        self.filename = filename
        self._line_starts = [0]
        for line in source.splitlines(keepends=True):
            self._line_starts.append(self._line_starts[-1] + len(line))
        try:
            tokens = list(tokenize.generate_tokens(io.StringIO(source).readline))
        except (tokenize.TokenError, SyntaxError) as exc:
            raise StructSyntaxError(f"cannot tokenize specification: {exc}") from exc
        self.tokens = [t for t in tokens if t.type not in _TRIVIA]
        self.index = 0

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def peek(self, offset: int = 0) -> tokenize.TokenInfo:
        """Return the token *offset* places ahead without consuming it."""
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def next(self) -> tokenize.TokenInfo:
        tok = self.peek()
        if tok.type != token.ENDMARKER:
            self.index += 1
        return tok

    def at_end(self) -> bool:
        return self.peek().type == token.ENDMARKER

    @property
    def location(self) -> tuple[int, int]:
        """``(line, column)`` of the next token."""
        return self.peek().start

    def peek_op(self, op: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok.type == token.OP and tok.string == op

    def peek_name(self, offset: int = 0) -> bool:
        return self.peek(offset).type == token.NAME

    def _peek_pair(self, first: str, second: str) -> bool:
        if not (self.peek_op(first) and self.peek_op(second, 1)):
            return False
        return self.peek().end == self.peek(1).start

    def peek_arrow(self) -> bool:
        """True when the next tokens spell ``=>``."""
        return self._peek_pair("=", ">")

    def peek_rest(self) -> bool:
        """True when the next tokens spell ``..``."""
        return self._peek_pair(".", ".")

    def expect_op(self, op: str, message: str | None = None,
                  error: type[SpecificationError] = StructSyntaxError,
                  hint: str | None = None) -> tokenize.TokenInfo:
        """Consume the operator *op* or raise *error*."""
        if not self.peek_op(op):
            raise self.error(message or f"expected `{op}`", error, hint=hint)
        return self.next()

    def expect_arrow(self, message: str = "expected `=>`",
                     error: type[SpecificationError] = StructSyntaxError,
                     hint: str | None = None) -> None:
        if not self.peek_arrow():
            raise self.error(message, error, hint=hint)
        self.index += 2

    def error(self, message: str,
              error: type[SpecificationError] = StructSyntaxError,
              hint: str | None = None,
              location: tuple[int, int] | None = None) -> SpecificationError:
        """Build an *error* positioned at *location* or the next token."""
        tok = self.peek()
        if location is None:
            location = tok.start
        found = "end of input" if tok.type == token.ENDMARKER else f"`{tok.string}`"
        return error(f"{message}, found {found}", hint=hint, location=location)

    # ------------------------------------------------------------------
    # Embedded expressions
    # ------------------------------------------------------------------

    def offset(self, position: tuple[int, int]) -> int:
        """Convert a tokenize ``(row, col)`` pair to an index into the source."""
        row, col = position
        return self._line_starts[row - 1] + col

    def take_expression(self, stop_at_arrow: bool = False,
                        error: type[SpecificationError] = StructSyntaxError,
                        ) -> tuple[str, tuple[int, int]]:
        """Consume one embedded Python expression.

        The expression ends before the first ``,`` or unmatched closing
        bracket at nesting depth zero (or before ``=>`` when *stop_at_arrow*
        is set).  Returns the expression text and its location.
        """
        first = self.peek()
        depth = 0
        last = None
        while not self.at_end():
            tok = self.peek()
            if tok.type == token.OP:
                if depth == 0 and (tok.string == "," or tok.string in _CLOSERS):
                    break
                if depth == 0 and stop_at_arrow and self.peek_arrow():
                    break
                if tok.string in _OPENERS:
                    depth += 1
                elif tok.string in _CLOSERS:
                    depth -= 1
            last = self.next()
        if last is None:
            raise self.error("expected an expression", error)
        text = self.source[self.offset(first.start):self.offset(last.end)]
        return text, first.start

    def compile_expression(self, text: str, location: tuple[int, int],
                           error: type[SpecificationError] = StructSyntaxError,
                           ) -> CodeType:
        return compile_expression(text, self.filename, location, error)

    def take_compiled(self, stop_at_arrow: bool = False,
                      error: type[SpecificationError] = StructSyntaxError,
                      ) -> Expression:
        """Consume and compile one embedded expression."""
        text, location = self.take_expression(stop_at_arrow, error)
        return Expression(text.strip(), self.compile_expression(text, location, error), location)


@dataclass(frozen=True)
class Expression:
    """A Python expression from DSL source, compiled once and evaluated per parse."""

    source: str
    code: CodeType
    location: tuple[int, int] | None = None

    def evaluate(self, scope: dict[str, Any]) -> Any:
        return eval(self.code, scope)

    def __str__(self) -> str:
        return self.source


def compile_expression(text: str, filename: str = "<hexstruct>",
                       location: tuple[int, int] | None = None,
                       error: type[SpecificationError] = StructSyntaxError) -> CodeType:
    """Compile *text* in ``eval`` mode, mapping syntax errors to *error*.

    The text is parenthesized so expressions may span lines.
    """
    try:
        return compile(f"(\n{text}\n)", filename, "eval")
    except SyntaxError as exc:
        raise error(f"invalid expression `{text}`: {exc.msg}", location=location) from exc
