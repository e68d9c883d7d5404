"""hexstruct - Compile declarative byte patterns into binary record parsers."""

__version__ = "0.1.0"

from hexstruct.errors import (
    HexStructError,
    SpecificationError,
    HexLexError,
    PatternSyntaxError,
    FieldSyntaxError,
    StructSyntaxError,
    LayoutError,
    ParseError,
    ReadError,
    MismatchError,
)
from hexstruct.lexer import Exact, Wildcard, OpenRange, tokenize_hex
from hexstruct.patterns import BytePattern, Deferred, WILDCARD, hex_literal, hex_pattern
from hexstruct.fields import FieldKind, FieldSpec
from hexstruct.plan import ParseResult, StructPlan, compile_struct, parse_struct
from hexstruct.config import FormatConfig, load_config
from hexstruct.identifier import FileIdentifier

__all__ = [
    "HexStructError",
    "SpecificationError",
    "HexLexError",
    "PatternSyntaxError",
    "FieldSyntaxError",
    "StructSyntaxError",
    "LayoutError",
    "ParseError",
    "ReadError",
    "MismatchError",
    "Exact",
    "Wildcard",
    "OpenRange",
    "tokenize_hex",
    "BytePattern",
    "Deferred",
    "WILDCARD",
    "hex_literal",
    "hex_pattern",
    "FieldKind",
    "FieldSpec",
    "ParseResult",
    "StructPlan",
    "compile_struct",
    "parse_struct",
    "FormatConfig",
    "load_config",
    "FileIdentifier",
]
