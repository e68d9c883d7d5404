"""Exception types raised while compiling and running struct plans.

Two families are kept apart:

* :class:`SpecificationError` subclasses are raised while a pattern or
  struct specification is being compiled.  They are fatal: no plan is
  produced.
* :class:`ParseError` subclasses describe a failed parse of actual data.
  Plans never raise them; they are returned inside a
  :class:`~hexstruct.plan.ParseResult`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class HexStructError(Exception):
    """Base class for every error raised by hexstruct."""


# ---------------------------------------------------------------------------
# Compile-time errors
# ---------------------------------------------------------------------------

class SpecificationError(HexStructError, ValueError):
    """A pattern or struct specification could not be compiled.

    Parameters
    ----------
    message : str
        Human readable description of the problem.
    hint : str, optional
        Remediation shown after the message.
    location : tuple[int, int], optional
        ``(line, column)`` in the struct source, 1-based line and 0-based
        column as reported by :mod:`tokenize`.
    """

    def __init__(self, message: str, hint: str | None = None,
                 location: tuple[int, int] | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.location = location

    def __str__(self) -> str:
        text = self.message
        if self.location is not None:
            line, col = self.location
            text = f"line {line}, column {col}: {text}"
        if self.hint:
            text = f"{text}\nhelp: {self.hint}"
        return text


class LexRole(Enum):
    """What the hex lexer was waiting for when it hit a bad character."""

    EXPECTED_DOT = "expected-dot"
    EXPECTED_UNDERSCORE = "expected-underscore"
    EXPECTED_HEX_DIGIT = "expected-hex-digit"
    INVALID_CHARACTER = "invalid-character"


class HexLexError(SpecificationError):
    """A hex literal contains an invalid or unpaired character."""

    def __init__(self, message: str, char: str, role: LexRole, position: int,
                 location: tuple[int, int] | None = None):
        super().__init__(message, location=location)
        self.char = char
        self.role = role
        self.position = position


class PatternSyntaxError(SpecificationError):
    """A byte pattern is malformed or uses a construct it may not use."""


class FieldSyntaxError(SpecificationError):
    """A struct field entry does not follow the field grammar."""


class StructSyntaxError(SpecificationError):
    """The struct form around the fields is malformed."""


class LayoutError(SpecificationError):
    """The field list as a whole breaks a layout rule."""


# ---------------------------------------------------------------------------
# Run-time errors
# ---------------------------------------------------------------------------

class ParseError(HexStructError):
    """Parsing data with a compiled plan failed."""

    def __init__(self, message: str, field: Any = None):
        super().__init__(message)
        self.field = field


class ReadError(ParseError):
    """The reader failed or ran out of data before a field was filled.

    ``cause`` is the exception raised by the reader, or *None* when the
    reader simply reported end of stream.
    """

    def __init__(self, message: str, requested: int, received: int,
                 cause: BaseException | None = None, field: Any = None):
        super().__init__(message, field)
        self.requested = requested
        self.received = received
        self.cause = cause


class MismatchError(ParseError):
    """The bytes read for a field do not match its pattern."""

    def __init__(self, expected: str, observed: bytes, field: Any = None):
        self.expected = expected
        self.observed = bytes(observed)
        super().__init__(
            f"expected `{expected}`, got `{format_bytes(self.observed)}`", field,
        )


def format_bytes(data: bytes) -> str:
    """Render bytes as ``[48, 45, 59]``."""
    return "[" + ", ".join(f"{b:02X}" for b in data) + "]"
