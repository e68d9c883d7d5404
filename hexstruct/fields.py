"""Struct field entries.

Grammar of one entry::

    member ":" [binding "@"] pattern ["=>" expression]

``member`` is ``_`` for a skip-only field, an identifier, or a non-negative
integer for positional members.  A binding names the matched bytes inside
the expression; it is only allowed together with ``=>``.  Skip-only fields
take neither.
"""

from __future__ import annotations

import keyword
import token
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from hexstruct.errors import FieldSyntaxError, PatternSyntaxError
from hexstruct.patterns import RANGE_HINT, RANGE_MESSAGE, BytePattern, coerce_pattern, parse_pattern
from hexstruct.syntax import Expression, SourceCursor

SKIP_ONLY_MESSAGE = "binding/transform not allowed on a match-only field"
MISSING_ARROW_MESSAGE = "expected `=>` followed by an expression"
MISSING_ARROW_HINT = "remove the `@` binding to only match bytes"


class FieldKind(Enum):
    BOUND = "bound"
    SKIP_ONLY = "skip-only"


Transform = Union[Expression, Callable[[bytes], Any]]


@dataclass(frozen=True)
class FieldSpec:
    """One declared field of a struct plan.

    Use :meth:`bound` and :meth:`skip` rather than the constructor when
    building fields by hand; both accept any pattern form understood by
    :func:`~hexstruct.patterns.coerce_pattern`.
    """

    member: str | int | None
    pattern: BytePattern
    binding: str | None = None
    transform: Transform | None = None
    location: tuple[int, int] | None = None

    def __post_init__(self):
        if self.pattern.has_ranges:
            raise FieldSyntaxError(RANGE_MESSAGE, hint=RANGE_HINT, location=self.location)
        if self.member is None:
            if self.binding is not None or self.transform is not None:
                raise FieldSyntaxError(SKIP_ONLY_MESSAGE, location=self.location)
        elif isinstance(self.member, bool) or not isinstance(self.member, (str, int)):
            raise FieldSyntaxError(f"invalid member {self.member!r}", location=self.location)
        elif isinstance(self.member, int) and self.member < 0:
            raise FieldSyntaxError(f"positional member {self.member} is negative",
                                   location=self.location)
        elif isinstance(self.member, str) and not _is_identifier(self.member):
            raise FieldSyntaxError(f"member name {self.member!r} is not an identifier",
                                   location=self.location)
        if self.binding is not None:
            if not _is_identifier(self.binding):
                raise FieldSyntaxError(f"binding {self.binding!r} is not an identifier",
                                       location=self.location)
            if self.transform is None:
                raise FieldSyntaxError(MISSING_ARROW_MESSAGE, hint=MISSING_ARROW_HINT,
                                       location=self.location)

    @classmethod
    def bound(cls, member: str | int, pattern: Any, transform: Transform | None = None,
              binding: str | None = None) -> FieldSpec:
        """A field whose value (raw bytes or *transform* result) is stored."""
        if member is None or member == "_":
            raise FieldSyntaxError("a bound field needs a member name or position")
        return cls(member, _coerce(pattern), binding, transform)

    @classmethod
    def skip(cls, pattern: Any) -> FieldSpec:
        """A field that is matched and then discarded."""
        return cls(None, _coerce(pattern))

    @property
    def kind(self) -> FieldKind:
        return FieldKind.SKIP_ONLY if self.member is None else FieldKind.BOUND

    @property
    def is_struct_member(self) -> bool:
        return self.member is not None

    def __str__(self) -> str:
        text = f"{'_' if self.member is None else self.member}: "
        if self.binding:
            text += f"{self.binding} @ "
        text += str(self.pattern)
        if self.transform is not None:
            name = getattr(self.transform, "__name__", None) or str(self.transform)
            text += f" => {name}"
        return text

    def evaluate(self, raw: bytes, scope: dict[str, Any]) -> Any:
        """Compute the stored value from the matched bytes.

        Expression transforms run with *scope* as globals and the binding,
        if any, bound to *raw*.  Callable transforms receive *raw*.
        """
        if self.transform is None:
            return raw
        if isinstance(self.transform, Expression):
            if self.binding is not None:
                scope = {**scope, self.binding: raw}
            return self.transform.evaluate(scope)
        return self.transform(raw)


def _is_identifier(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def _coerce(pattern: Any) -> BytePattern:
    try:
        return coerce_pattern(pattern)
    except PatternSyntaxError as exc:
        raise FieldSyntaxError(exc.message, hint=exc.hint) from exc


# ---------------------------------------------------------------------------
# DSL source
# ---------------------------------------------------------------------------

def parse_field(cursor: SourceCursor) -> FieldSpec:
    """Parse one field entry starting at the cursor."""
    location = cursor.location
    member = _parse_member(cursor)
    cursor.expect_op(":", "expected `:` after the field name", FieldSyntaxError)

    binding = None
    if cursor.peek_name():
        if not cursor.peek_op("@", 1):
            raise cursor.error("expected a byte array pattern, a byte string, or a hex string",
                               FieldSyntaxError,
                               hint="follow a binding name with `@` and the pattern")
        if member is None:
            raise FieldSyntaxError(SKIP_ONLY_MESSAGE, location=cursor.location)
        binding = cursor.next().string
        cursor.next()

    pattern = parse_pattern(cursor)

    transform = None
    if binding is not None or cursor.peek_arrow():
        if member is None:
            raise FieldSyntaxError(SKIP_ONLY_MESSAGE, location=cursor.location)
        cursor.expect_arrow(MISSING_ARROW_MESSAGE, FieldSyntaxError, hint=MISSING_ARROW_HINT)
        transform = cursor.take_compiled(error=FieldSyntaxError)

    return FieldSpec(member, pattern, binding, transform, location)


def _parse_member(cursor: SourceCursor) -> str | int | None:
    tok = cursor.peek()
    if tok.type == token.NAME:
        cursor.next()
        return None if tok.string == "_" else tok.string
    if tok.type == token.NUMBER and tok.string.isdigit():
        cursor.next()
        return int(tok.string)
    raise cursor.error("expected a field name, a position or `_`", FieldSyntaxError)
