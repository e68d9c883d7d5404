"""Struct plans: compile a field list into a linear read/validate/bind procedure.

Source form::

    [READER =>] TYPE_PATH {
        FIELD,
        ...
        [..REST]
    }

For example::

    Data {
        _: "48 45 58",
        a: [0x01, _],
        b: buf @ "AABB ____" => int.from_bytes(buf, "little"),
    }

Every field reads exactly ``len(pattern)`` bytes, in declaration order, into
a scratch buffer sized for the longest pattern.  The bytes are validated and
then either discarded (``_`` fields) or stored as the member's value.  A
failed read or match ends the parse; the error is returned in a
:class:`ParseResult`, never raised.
"""

from __future__ import annotations

import builtins
import dataclasses
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Mapping

from hexstruct.errors import (
    FieldSyntaxError,
    LayoutError,
    MismatchError,
    ParseError,
    PatternSyntaxError,
    ReadError,
    StructSyntaxError,
)
from hexstruct.fields import FieldSpec, parse_field
from hexstruct.patterns import Deferred
from hexstruct.syntax import Expression, SourceCursor

logger = logging.getLogger(__name__)

CONSECUTIVE_SKIP_MESSAGE = "consecutive match-only fields are not allowed"
CONSECUTIVE_SKIP_HINT = "merge them into one pattern"


@dataclass
class ParseResult:
    """Outcome of running a plan: a value or a :class:`ParseError`."""

    value: Any = None
    error: ParseError | None = None
    consumed: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the parsed value, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def as_reader(source: Any) -> BinaryIO:
    """Wrap bytes-like *source* in a stream; pass stream objects through."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    if hasattr(source, "readinto") or hasattr(source, "read"):
        return source
    raise TypeError(f"expected a bytes-like object or a binary stream, got {type(source).__name__}")


def read_exact(reader: BinaryIO, view: memoryview, field: FieldSpec | None = None) -> None:
    """Fill *view* completely from *reader*.

    Short reads are retried until the reader reports end of stream.  Reader
    failures and running out of data both raise :class:`ReadError`.
    """
    requested = len(view)
    filled = 0
    readinto = getattr(reader, "readinto", None)
    try:
        while filled < requested:
            if readinto is not None:
                count = readinto(view[filled:])
            else:
                chunk = reader.read(requested - filled)
                count = len(chunk) if chunk else 0
                view[filled:filled + count] = chunk[:count]
            if not count:
                break
            filled += count
    except (OSError, EOFError) as exc:
        raise ReadError(
            f"read failed after {filled} of {requested} bytes: {exc}",
            requested, filled, cause=exc, field=field,
        ) from exc
    if filled < requested:
        raise ReadError(
            f"unexpected end of stream: needed {requested} bytes, got {filled}",
            requested, filled, field=field,
        )


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

class StructPlan:
    """A compiled, reusable parse procedure for one record layout.

    Parameters
    ----------
    target : callable
        Builds the record.  Positional members are passed as positional
        arguments, named members as keyword arguments, in declaration order.
    fields : iterable of FieldSpec
        The fields, in stream order.
    rest : optional
        Supplies members not listed in *fields*: a mapping of keyword
        arguments, a dataclass or namedtuple instance to copy, or an
        :class:`~hexstruct.syntax.Expression` evaluated at parse time to one
        of those.
    namespace : mapping, optional
        Globals for expressions (transforms, array elements, reader, rest).
    reader : Expression, optional
        Expression producing the reader when :meth:`parse` is called without
        one.
    name : str, optional
        Name used in log messages.  Defaults to the target's name.
    """

    def __init__(
        self,
        target: Callable[..., Any],
        fields: Iterable[FieldSpec],
        rest: Any = None,
        namespace: Mapping[str, Any] | None = None,
        reader: Expression | None = None,
        name: str | None = None,
    ):
        self.target = target
        self.fields: tuple[FieldSpec, ...] = tuple(fields)
        self.rest = rest
        self.namespace: dict[str, Any] = dict(namespace or {})
        self.reader = reader
        self.name = name or getattr(target, "__qualname__", None) or repr(target)
        check_layout(self.fields)
        check_symbols(self.fields, self.namespace)
        self.buffer_size = max((len(f.pattern) for f in self.fields), default=0)
        logger.debug("compiled plan %s: %d fields, %d byte buffer, %d bytes per record",
                     self.name, len(self.fields), self.buffer_size, self.size)

    def __repr__(self) -> str:
        return f"<StructPlan {self.name} fields={len(self.fields)} size={self.size}>"

    @property
    def size(self) -> int:
        """Number of bytes a successful parse consumes."""
        return sum(len(f.pattern) for f in self.fields)

    @property
    def members(self) -> list[str | int]:
        return [f.member for f in self.fields if f.is_struct_member]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def parse(self, reader: Any = None,
              namespace: Mapping[str, Any] | None = None) -> ParseResult:
        """Run the plan against *reader*.

        Parameters
        ----------
        reader : binary stream or bytes-like, optional
            Source of the record.  When omitted, the plan's reader
            expression is evaluated.
        namespace : mapping, optional
            Extra globals for this parse, layered over the plan's namespace.

        Returns
        -------
        ParseResult
            The record, or the :class:`ReadError` / :class:`MismatchError`
            that stopped the parse.

        Raises
        ------
        PatternSyntaxError
            If *namespace* rebinds a symbolic byte array element to a value
            that is not a byte.
        """
        scope = {**self.namespace, **(namespace or {})}
        if reader is None:
            if self.reader is None:
                raise TypeError(f"plan {self.name} has no reader expression; pass a reader")
            reader = self.reader.evaluate(scope)
        stream = as_reader(reader)

        view = memoryview(bytearray(self.buffer_size))
        values: dict[str | int, Any] = {}
        consumed = 0
        for field in self.fields:
            length = len(field.pattern)
            try:
                read_exact(stream, view[:length], field)
            except ReadError as exc:
                return self._failed(exc, consumed + exc.received)
            raw = bytes(view[:length])
            consumed += length
            if not field.pattern.matches(raw, scope):
                return self._failed(MismatchError(str(field.pattern), raw, field), consumed)
            if field.is_struct_member:
                values[field.member] = field.evaluate(raw, scope)

        return ParseResult(value=self._assemble(values, scope), consumed=consumed)

    def parse_bytes(self, data: bytes,
                    namespace: Mapping[str, Any] | None = None) -> ParseResult:
        """Parse a record from the start of *data*."""
        return self.parse(io.BytesIO(bytes(data)), namespace)

    def parse_file(self, path: str | Path,
                   namespace: Mapping[str, Any] | None = None) -> ParseResult:
        """Parse a record from the start of a file on disk."""
        with open(Path(path), "rb") as fh:
            return self.parse(fh, namespace)

    def _failed(self, error: ParseError, consumed: int) -> ParseResult:
        logger.debug("plan %s failed at byte %d: %s", self.name, consumed, error)
        return ParseResult(error=error, consumed=consumed)

    def _assemble(self, values: dict[str | int, Any], scope: dict[str, Any]) -> Any:
        args = [values[m] for m in sorted(m for m in values if isinstance(m, int))]
        kwargs = {m: v for m, v in values.items() if isinstance(m, str)}
        if self.rest is None:
            return self.target(*args, **kwargs)
        rest = self.rest.evaluate(scope) if isinstance(self.rest, Expression) else self.rest
        return _fill_from_rest(self.target, rest, args, kwargs)


def _fill_from_rest(target: Callable[..., Any], rest: Any,
                    args: list[Any], kwargs: dict[str, Any]) -> Any:
    if isinstance(rest, Mapping):
        return target(*args, **{**rest, **kwargs})
    if dataclasses.is_dataclass(rest) and not isinstance(rest, type):
        names = [f.name for f in dataclasses.fields(rest)]
        return dataclasses.replace(rest, **dict(zip(names, args)), **kwargs)
    if hasattr(rest, "_replace") and hasattr(rest, "_fields"):
        return rest._replace(**dict(zip(rest._fields, args)), **kwargs)
    raise TypeError(
        f"cannot fill remaining members from {type(rest).__name__}; "
        "use a mapping, a dataclass instance or a namedtuple",
    )


def check_layout(fields: tuple[FieldSpec, ...]) -> None:
    """Enforce the rules that span more than one field.

    * no two adjacent skip-only fields;
    * no member declared twice;
    * positional members numbered ``0..n-1``.
    """
    for previous, current in zip(fields, fields[1:]):
        if not previous.is_struct_member and not current.is_struct_member:
            raise LayoutError(CONSECUTIVE_SKIP_MESSAGE, hint=CONSECUTIVE_SKIP_HINT,
                              location=current.location)
    seen: set[str | int] = set()
    for field in fields:
        if not field.is_struct_member:
            continue
        if field.member in seen:
            raise LayoutError(f"member `{field.member}` specified more than once",
                              location=field.location)
        seen.add(field.member)
    positional = [f for f in fields if f.is_struct_member and isinstance(f.member, int)]
    for field in positional:
        if field.member >= len(positional):
            raise LayoutError(
                f"positional members must be numbered 0 to {len(positional) - 1} without gaps, "
                f"got {sorted(f.member for f in positional)}",
                location=field.location,
            )


def check_symbols(fields: tuple[FieldSpec, ...], namespace: Mapping[str, Any]) -> None:
    """Resolve every symbolic byte array element once against *namespace*.

    Unknown names and values that are not bytes are specification errors,
    reported before any data is read.
    """
    for field in fields:
        for matcher in field.pattern:
            if not isinstance(matcher, Deferred):
                continue
            try:
                matcher.resolve(namespace)
            except PatternSyntaxError as exc:
                if exc.location is None:
                    exc.location = field.location
                raise


# ---------------------------------------------------------------------------
# DSL source
# ---------------------------------------------------------------------------

def compile_struct(source: str, namespace: Mapping[str, Any] | None = None,
                   filename: str = "<hexstruct>") -> StructPlan:
    """Compile a struct specification into a :class:`StructPlan`.

    Parameters
    ----------
    source : str
        ``[READER =>] TYPE_PATH { FIELD, ... [, ..REST] }``.
    namespace : mapping, optional
        Names visible to the type path and to every embedded expression.
    filename : str
        Name shown in tracebacks from embedded expressions.

    Raises
    ------
    SpecificationError
        For any lexical, grammar or layout problem.
    """
    namespace = dict(namespace or {})
    cursor = SourceCursor(source, filename)

    reader = None
    start = cursor.index
    if not cursor.at_end():
        cursor.take_expression(stop_at_arrow=True)
        if cursor.peek_arrow():
            cursor.index = start
            reader = cursor.take_compiled(stop_at_arrow=True)
            cursor.expect_arrow()
        else:
            cursor.index = start

    path, location = _parse_path(cursor)
    target = _resolve_path(path, namespace, location)

    cursor.expect_op("{", f"expected `{{` after `{path}`")
    fields: list[FieldSpec] = []
    rest = None
    while not cursor.peek_op("}"):
        if cursor.peek_rest():
            cursor.index += 2
            rest = cursor.take_compiled()
            break
        fields.append(parse_field(cursor))
        if cursor.peek_op("}"):
            break
        cursor.expect_op(",", "expected `,` or `}` after a field", FieldSyntaxError)
    cursor.expect_op("}", "expected `}` to close the struct")
    if not cursor.at_end():
        raise cursor.error("unexpected input after the struct")

    return StructPlan(target, fields, rest=rest, namespace=namespace, reader=reader, name=path)


def parse_struct(reader: Any, source: str,
                 namespace: Mapping[str, Any] | None = None) -> ParseResult:
    """Compile *source* and run it once against *reader*."""
    return compile_struct(source, namespace).parse(reader)


def _parse_path(cursor: SourceCursor) -> tuple[str, tuple[int, int]]:
    location = cursor.location
    if not cursor.peek_name():
        raise cursor.error("expected a type path")
    parts = [cursor.next().string]
    while cursor.peek_op("."):
        cursor.next()
        if not cursor.peek_name():
            raise cursor.error("expected a name after `.`")
        parts.append(cursor.next().string)
    return ".".join(parts), location


def _resolve_path(path: str, namespace: Mapping[str, Any],
                  location: tuple[int, int]) -> Callable[..., Any]:
    head, *tail = path.split(".")
    if head in namespace:
        obj = namespace[head]
    elif hasattr(builtins, head):
        obj = getattr(builtins, head)
    else:
        raise StructSyntaxError(f"cannot resolve type `{path}`: `{head}` is not defined",
                                location=location)
    for part in tail:
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise StructSyntaxError(f"cannot resolve type `{path}`: no attribute `{part}`",
                                    location=location) from None
    if not callable(obj):
        raise StructSyntaxError(f"type `{path}` is not callable", location=location)
    return obj
