"""Lexer for hex literals such as ``"48 45 58 __ .."``.

Characters come in pairs: two hex digits form one exact byte, ``__`` is a
single-byte wildcard and ``..`` an open-ended range.  ASCII whitespace
(space, ``\\r``, ``\\n``, ``\\t``) is ignored between pairs but may not split
one.

The lexer is a small finite-state machine::

    IDLE --hex--> AWAIT_HEX --hex--> IDLE   (emit Exact)
    IDLE --'_'--> AWAIT_UNDERSCORE --'_'--> IDLE   (emit Wildcard)
    IDLE --'.'--> AWAIT_DOT --'.'--> IDLE   (emit OpenRange)

Any other character in a pending state, or ending the input in one, is a
:class:`~hexstruct.errors.HexLexError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from hexstruct.errors import HexLexError, LexRole

WHITESPACE = frozenset(" \r\n\t")
_HEX_VALUES = {c: int(c, 16) for c in "0123456789abcdefABCDEF"}


# ---------------------------------------------------------------------------
# Byte matchers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Exact:
    """Matches one specific byte value."""

    value: int

    def accepts(self, byte: int, namespace: Mapping[str, Any] | None = None) -> bool:
        return byte == self.value

    def __str__(self) -> str:
        return f"{self.value:02X}"


@dataclass(frozen=True)
class Wildcard:
    """Matches any single byte."""

    def accepts(self, byte: int, namespace: Mapping[str, Any] | None = None) -> bool:
        return True

    def __str__(self) -> str:
        return "__"


@dataclass(frozen=True)
class OpenRange:
    """Matches any number of bytes.  Only valid outside field patterns."""

    def accepts(self, byte: int, namespace: Mapping[str, Any] | None = None) -> bool:
        return True

    def __str__(self) -> str:
        return ".."


HexToken = Union[Exact, Wildcard, OpenRange]


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class LexState(Enum):
    IDLE = "idle"
    AWAIT_HEX = "await-hex"
    AWAIT_UNDERSCORE = "await-underscore"
    AWAIT_DOT = "await-dot"


_PARTNER_ROLES = {
    LexState.AWAIT_HEX: (LexRole.EXPECTED_HEX_DIGIT, "expected a matching hex digit"),
    LexState.AWAIT_UNDERSCORE: (LexRole.EXPECTED_UNDERSCORE, "expected a matching `_`"),
    LexState.AWAIT_DOT: (LexRole.EXPECTED_DOT, "expected a second `.`"),
}


class HexLexer:
    """Single-use lexer over one hex literal.

    Parameters
    ----------
    text : str
        The literal's value, without quotes.
    """

    def __init__(self, text: str):
        self.text = text
        self.state = LexState.IDLE
        self.tokens: list[HexToken] = []
        self._nibble = 0
        self._pending_at = 0

    def run(self) -> list[HexToken]:
        """Lex the whole literal and return its tokens in input order."""
        for position, char in enumerate(self.text):
            self.feed(char, position)
        if self.state is not LexState.IDLE:
            orphan = self.text[self._pending_at]
            role, expectation = _PARTNER_ROLES[self.state]
            raise HexLexError(
                f"{expectation} for `{orphan}` at position {self._pending_at}, "
                f"got end of input",
                char="", role=role, position=self._pending_at,
            )
        return self.tokens

    def feed(self, char: str, position: int) -> None:
        """Advance the state machine by one character."""
        if self.state is LexState.IDLE:
            self._idle(char, position)
        elif self.state is LexState.AWAIT_HEX:
            if char not in _HEX_VALUES:
                self._unpaired(char, position)
            self.tokens.append(Exact((self._nibble << 4) | _HEX_VALUES[char]))
            self.state = LexState.IDLE
        elif self.state is LexState.AWAIT_UNDERSCORE:
            if char != "_":
                self._unpaired(char, position)
            self.tokens.append(Wildcard())
            self.state = LexState.IDLE
        else:
            if char != ".":
                self._unpaired(char, position)
            self.tokens.append(OpenRange())
            self.state = LexState.IDLE

    def _idle(self, char: str, position: int) -> None:
        if char in WHITESPACE:
            return
        if char in _HEX_VALUES:
            self._nibble = _HEX_VALUES[char]
            self.state = LexState.AWAIT_HEX
        elif char == "_":
            self.state = LexState.AWAIT_UNDERSCORE
        elif char == ".":
            self.state = LexState.AWAIT_DOT
        else:
            raise HexLexError(
                f"invalid character: `{char}` at position {position}",
                char=char, role=LexRole.INVALID_CHARACTER, position=position,
            )
        self._pending_at = position

    def _unpaired(self, char: str, position: int) -> None:
        orphan = self.text[self._pending_at]
        role, expectation = _PARTNER_ROLES[self.state]
        raise HexLexError(
            f"{expectation} for `{orphan}` at position {self._pending_at}, "
            f"got `{char}` at position {position}",
            char=char, role=role, position=self._pending_at,
        )


def tokenize_hex(text: str) -> list[HexToken]:
    """Lex *text* into :class:`Exact`, :class:`Wildcard` and :class:`OpenRange` tokens.

    >>> [str(t) for t in tokenize_hex("7d2b __ ..")]
    ['7D', '2B', '__', '..']
    """
    return HexLexer(text).run()
