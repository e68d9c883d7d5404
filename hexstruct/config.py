"""Configuration system for record format definitions.

Loads YAML-based format definitions that describe a record as an ordered
list of fields, each with a byte pattern and an optional transform
expression, and compiles them into :class:`~hexstruct.plan.StructPlan`
objects that produce plain dictionaries.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from hexstruct.errors import PatternSyntaxError, SpecificationError
from hexstruct.fields import FieldSpec
from hexstruct.patterns import BytePattern, Deferred, coerce_pattern
from hexstruct.plan import StructPlan
from hexstruct.syntax import Expression, compile_expression


@dataclass
class FieldDefinition:
    """A single field within a record format."""

    pattern: BytePattern
    member: str | int | None = None
    binding: str | None = None
    transform: str | None = None
    description: str = ""

    @property
    def size(self) -> int:
        """Number of bytes this field consumes."""
        return len(self.pattern)


@dataclass
class FormatConfig:
    """Complete definition of a record format."""

    name: str
    extensions: list[str] = field(default_factory=list)
    fields: list[FieldDefinition] = field(default_factory=list)
    rest: dict[str, Any] | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        """Number of bytes a record of this format occupies."""
        return sum(f.size for f in self.fields)

    def compile(self, namespace: Mapping[str, Any] | None = None) -> StructPlan:
        """Build the :class:`StructPlan` for this format.

        Records are returned as dictionaries keyed by member name, or by
        index for positional members; ``rest`` supplies constant entries.
        Transform expressions see :mod:`struct` in addition to *namespace*.
        """
        namespace = {"struct": struct, **(namespace or {})}
        filename = f"<format {self.name}>"
        specs = []
        for f in self.fields:
            transform = None
            if f.transform is not None:
                transform = Expression(f.transform, compile_expression(f.transform, filename))
            specs.append(FieldSpec(f.member, f.pattern, f.binding, transform))
        return StructPlan(_record, specs, rest=self.rest, namespace=namespace, name=self.name)


def _record(*values: Any, **members: Any) -> dict[str | int, Any]:
    """Build a record dict; positional members are keyed by their index."""
    return {**dict(enumerate(values)), **members}


def _parse_pattern(value: Any) -> BytePattern:
    """Parse a pattern from a config value.

    Accepts a hex string like ``"44 53 __ 42"``, a list of ints, ``"_"``
    wildcards and expression strings, or a mapping ``{bytes: "DSBB"}`` /
    ``{hex: "4453"}``.
    """
    if isinstance(value, Mapping):
        if "bytes" in value:
            data = value["bytes"]
            return BytePattern.from_bytes(data.encode("latin-1") if isinstance(data, str) else data)
        if "hex" in value:
            return BytePattern.from_hex(value["hex"])
        raise PatternSyntaxError(f"pattern mapping needs a `bytes` or `hex` key, got {dict(value)}")
    if isinstance(value, list):
        return BytePattern.from_array(_array_element(e) for e in value)
    return coerce_pattern(value)


def _array_element(value: Any) -> Any:
    if isinstance(value, str) and value not in ("_", ".."):
        return Deferred(value, code=compile_expression(value, "<config>", error=PatternSyntaxError))
    return value


def _parse_member(value: Any) -> str | int | None:
    if value is None or value == "_":
        return None
    return value


def _parse_field(data: dict) -> FieldDefinition:
    """Build a :class:`FieldDefinition` from a dictionary."""
    return FieldDefinition(
        pattern=_parse_pattern(data["pattern"]),
        member=_parse_member(data.get("member")),
        binding=data.get("binding"),
        transform=data.get("transform"),
        description=data.get("description", ""),
    )


def _parse_format(data: dict) -> FormatConfig:
    """Build a :class:`FormatConfig` from a dictionary."""
    name = data["name"]
    try:
        fields = [_parse_field(f) for f in data.get("fields", [])]
    except SpecificationError as exc:
        exc.message = f"format {name!r}: {exc.message}"
        raise
    return FormatConfig(
        name=name,
        extensions=data.get("extensions", []),
        fields=fields,
        rest=data.get("rest"),
        description=data.get("description", ""),
        metadata=data.get("metadata", {}),
    )


def load_config(path: str | Path | None = None) -> list[FormatConfig]:
    """Load format configurations from a YAML file.

    Parameters
    ----------
    path : str or Path, optional
        Path to a YAML configuration file.  When *None* the built-in
        ``default_formats.yaml`` shipped with the package is used.

    Returns
    -------
    list[FormatConfig]
        Parsed format definitions.
    """
    if path is None:
        path = Path(__file__).parent / "configs" / "default_formats.yaml"
    else:
        path = Path(path)

    with open(path, "r") as fh:
        data = yaml.safe_load(fh)

    formats = data.get("formats", [])
    return [_parse_format(f) for f in formats]
