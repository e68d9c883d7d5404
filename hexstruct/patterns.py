"""Byte patterns: one fixed-length matcher sequence from three surface syntaxes.

A pattern can be written as

* a hex literal, ``"48 45 58 __"``;
* a bytes literal, ``b"HEX"``;
* a byte array, ``[0x48, _, MAGIC]``, whose elements are byte values,
  ``_`` wildcards or arbitrary expressions evaluated when matching.

All three normalize to :class:`BytePattern`.
"""

from __future__ import annotations

import ast
import token
from dataclasses import dataclass
from enum import Enum
from types import CodeType
from typing import Any, Callable, Iterable, Iterator, Union

from hexstruct.errors import HexLexError, PatternSyntaxError
from hexstruct.lexer import Exact, OpenRange, Wildcard, tokenize_hex
from hexstruct.syntax import SourceCursor

RANGE_MESSAGE = "ranges are not allowed in byte patterns"
RANGE_HINT = "try using `_` to specify the exact number of bytes to match"

#: Marker accepted by :meth:`BytePattern.from_array` for a wildcard position.
WILDCARD = Wildcard()


@dataclass(frozen=True)
class Deferred:
    """A byte position whose expected value is computed at matching time.

    Either *code* (an expression compiled from DSL source, evaluated in the
    plan's namespace) or *func* (a zero-argument callable) supplies the value.
    """

    source: str
    code: CodeType | None = None
    func: Callable[[], int] | None = None
    location: tuple[int, int] | None = None

    def resolve(self, namespace: dict[str, Any] | None = None) -> int:
        """Evaluate the element to its byte value.

        Raises :class:`PatternSyntaxError` when the expression cannot be
        evaluated or does not produce an int in ``0..255``.
        """
        try:
            if self.code is not None:
                value = eval(self.code, dict(namespace) if namespace is not None else {})
            else:
                value = self.func()
        except Exception as exc:
            raise PatternSyntaxError(f"cannot evaluate byte array element `{self.source}`: {exc}",
                                     location=self.location) from exc
        if isinstance(value, bool) or not isinstance(value, int):
            raise PatternSyntaxError(
                f"byte array element `{self.source}` evaluated to {value!r}, expected an int",
                location=self.location,
            )
        if not 0 <= value <= 0xFF:
            raise PatternSyntaxError(
                f"byte array element `{self.source}` evaluated to {value}, out of range 0..255",
                location=self.location,
            )
        return value

    def accepts(self, byte: int, namespace: dict[str, Any] | None = None) -> bool:
        return byte == self.resolve(namespace)

    def __str__(self) -> str:
        return self.source


Matcher = Union[Exact, Wildcard, OpenRange, Deferred]


class PatternSyntax(Enum):
    """Surface syntax a pattern was written in."""

    HEX = "hex"
    BYTES = "bytes"
    ARRAY = "array"


@dataclass(frozen=True)
class BytePattern:
    """An ordered, fixed-length sequence of byte matchers."""

    matchers: tuple[Matcher, ...]
    syntax: PatternSyntax = PatternSyntax.HEX

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_hex(cls, text: str, allow_ranges: bool = False) -> BytePattern:
        """Build a pattern from a hex literal.

        Parameters
        ----------
        text : str
            Hex literal such as ``"AABB ____"``.
        allow_ranges : bool
            Accept a single ``..`` range.  Only free-standing patterns may
            contain one; field patterns must have a fixed length.
        """
        matchers = tuple(tokenize_hex(text))
        ranges = sum(isinstance(m, OpenRange) for m in matchers)
        if ranges and not allow_ranges:
            raise PatternSyntaxError(RANGE_MESSAGE, hint=RANGE_HINT)
        if ranges > 1:
            raise PatternSyntaxError("`..` can only be used once per pattern")
        return cls(matchers, PatternSyntax.HEX)

    @classmethod
    def from_bytes(cls, data: bytes) -> BytePattern:
        """Build an all-exact pattern from a byte string."""
        return cls(tuple(Exact(b) for b in bytes(data)), PatternSyntax.BYTES)

    @classmethod
    def from_array(cls, elements: Iterable[Any]) -> BytePattern:
        """Build a pattern from a sequence of array elements.

        ``int`` values are exact bytes; ``None``, ``"_"`` and
        :data:`WILDCARD` are wildcards; callables and :class:`Deferred`
        objects are evaluated when matching.  Range-like values
        (``...``, ``".."``, :class:`range`, :class:`slice`) are rejected.
        """
        return cls(tuple(_array_element(e) for e in elements), PatternSyntax.ARRAY)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.matchers)

    def __iter__(self) -> Iterator[Matcher]:
        return iter(self.matchers)

    def __str__(self) -> str:
        return "[" + ", ".join(str(m) for m in self.matchers) + "]"

    @property
    def has_ranges(self) -> bool:
        return any(isinstance(m, OpenRange) for m in self.matchers)

    @property
    def is_literal(self) -> bool:
        """True when every position is an exact byte."""
        return all(isinstance(m, Exact) for m in self.matchers)

    def to_bytes(self) -> bytes:
        """Return the byte string of an all-exact pattern."""
        if not self.is_literal:
            raise PatternSyntaxError(
                f"pattern {self} contains wildcards and has no single byte value",
            )
        return bytes(m.value for m in self.matchers)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def matches(self, data: bytes, namespace: dict[str, Any] | None = None) -> bool:
        """Return True if *data* matches this pattern.

        Without a range the lengths must be equal.  With a range the
        matchers before it must match the head of *data* and those after it
        the tail.
        """
        for index, matcher in enumerate(self.matchers):
            if isinstance(matcher, OpenRange):
                head, tail = self.matchers[:index], self.matchers[index + 1:]
                if len(head) + len(tail) > len(data):
                    return False
                return (_match_all(head, data[:len(head)], namespace)
                        and _match_all(tail, data[len(data) - len(tail):], namespace))
        return len(data) == len(self.matchers) and _match_all(self.matchers, data, namespace)


def _match_all(matchers: Iterable[Matcher], data: bytes,
               namespace: dict[str, Any] | None) -> bool:
    return all(m.accepts(b, namespace) for m, b in zip(matchers, data))


def _array_element(element: Any) -> Matcher:
    if isinstance(element, (Exact, Wildcard, Deferred)):
        return element
    if element is None or element == "_":
        return WILDCARD
    if element is Ellipsis or element == ".." or isinstance(element, (range, slice, OpenRange)):
        raise PatternSyntaxError(RANGE_MESSAGE, hint=RANGE_HINT)
    if isinstance(element, bool):
        raise PatternSyntaxError(f"invalid byte value {element!r}")
    if isinstance(element, int):
        return _exact(element)
    if callable(element):
        return Deferred(getattr(element, "__name__", repr(element)), func=element)
    raise PatternSyntaxError(
        f"invalid byte array element {element!r}",
        hint="use an int between 0 and 255, `_`, or a callable",
    )


def _exact(value: int) -> Exact:
    if not 0 <= value <= 0xFF:
        raise PatternSyntaxError(f"byte value {value} out of range 0..255")
    return Exact(int(value))


def coerce_pattern(value: Any) -> BytePattern:
    """Turn a pattern given in any supported Python form into a :class:`BytePattern`.

    ``str`` is a hex literal, ``bytes``/``bytearray`` a byte string and any
    list or tuple a byte array.
    """
    if isinstance(value, BytePattern):
        if value.has_ranges:
            raise PatternSyntaxError(RANGE_MESSAGE, hint=RANGE_HINT)
        return value
    if isinstance(value, str):
        return BytePattern.from_hex(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytePattern.from_bytes(bytes(value))
    if isinstance(value, (list, tuple)):
        return BytePattern.from_array(value)
    raise PatternSyntaxError(
        f"expected a byte array pattern, a byte string, or a hex string, got {value!r}",
    )


# ---------------------------------------------------------------------------
# DSL source
# ---------------------------------------------------------------------------

def parse_pattern(cursor: SourceCursor) -> BytePattern:
    """Parse one field pattern from *cursor*.

    Lexical errors inside a hex literal keep their type and gain the
    literal's location.
    """
    tok = cursor.peek()
    if tok.type == token.STRING:
        cursor.next()
        try:
            value = ast.literal_eval(tok.string)
        except (ValueError, SyntaxError) as exc:
            raise PatternSyntaxError(f"unsupported string literal {tok.string}",
                                     location=tok.start) from exc
        if isinstance(value, bytes):
            return BytePattern.from_bytes(value)
        try:
            return BytePattern.from_hex(value)
        except (HexLexError, PatternSyntaxError) as exc:
            exc.location = tok.start
            raise
    if cursor.peek_op("["):
        text, location = cursor.take_expression(stop_at_arrow=True, error=PatternSyntaxError)
        return _parse_array_source(cursor, text, location)
    raise cursor.error(
        "expected a byte array pattern, a byte string, or a hex string",
        PatternSyntaxError,
    )


def _parse_array_source(cursor: SourceCursor, text: str,
                        location: tuple[int, int]) -> BytePattern:
    text = text.strip()
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise PatternSyntaxError(f"invalid byte array `{text}`: {exc.msg}",
                                 location=location) from exc
    if not isinstance(tree.body, ast.List):
        raise PatternSyntaxError(
            f"expected a byte array pattern, a byte string, or a hex string, found `{text}`",
            location=location,
        )
    matchers: list[Matcher] = []
    for node in tree.body.elts:
        source = ast.get_source_segment(text, node) or ast.unparse(node)
        if _is_range_node(node):
            raise PatternSyntaxError(RANGE_MESSAGE, hint=RANGE_HINT, location=location)
        if isinstance(node, ast.Name) and node.id == "_":
            matchers.append(WILDCARD)
        elif isinstance(node, ast.Starred):
            raise PatternSyntaxError(f"unpacking `{source}` would change the pattern length",
                                     location=location)
        elif _is_literal_node(node):
            try:
                value = ast.literal_eval(node)
            except ValueError:
                value = None
            if isinstance(value, bool) or not isinstance(value, int):
                raise PatternSyntaxError(f"invalid byte value `{source}`", location=location)
            try:
                matchers.append(_exact(value))
            except PatternSyntaxError as exc:
                exc.location = location
                raise
        else:
            code = cursor.compile_expression(source, location, PatternSyntaxError)
            matchers.append(Deferred(source, code=code, location=location))
    return BytePattern(tuple(matchers), PatternSyntax.ARRAY)


def _is_literal_node(node: ast.AST) -> bool:
    # -1 and +1 are UnaryOp nodes around a constant
    while isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        node = node.operand
    return isinstance(node, ast.Constant)


def _is_range_node(node: ast.AST) -> bool:
    if isinstance(node, ast.Constant) and node.value is Ellipsis:
        return True
    return (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
            and node.func.id == "range")


def hex_literal(text: str) -> bytes:
    """Compile a hex literal to bytes.

    >>> hex_literal("DEAD AF")
    b'\\xde\\xad\\xaf'

    Wildcards and ranges have no byte value and are rejected; use
    :func:`hex_pattern` for those.
    """
    return hex_pattern(text).to_bytes()


def hex_pattern(text: str) -> BytePattern:
    """Compile a free-standing hex pattern, where one ``..`` range is allowed.

    >>> hex_pattern("01..04").matches(bytes([1, 2, 3, 4]))
    True
    """
    return BytePattern.from_hex(text, allow_ranges=True)
