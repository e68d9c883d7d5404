"""Command-line interface for hexstruct."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from hexstruct.config import FormatConfig, load_config
from hexstruct.errors import SpecificationError
from hexstruct.patterns import hex_pattern


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hexstruct",
        description="Compile byte patterns and parse binary records.",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- hex ---
    hex_p = sub.add_parser("hex", help="Compile a hex literal")
    hex_p.add_argument("literal", help='Hex literal, e.g. "DEAD AF" or "01 __ .."')
    hex_p.add_argument("--pattern", action="store_true",
                       help="Print the canonical pattern instead of the bytes")

    # --- check ---
    check_p = sub.add_parser("check", help="Compile every format in a config file")
    check_p.add_argument("-c", "--config", default=None,
                         help="Path to a YAML format config file")

    # --- parse ---
    parse_p = sub.add_parser("parse", help="Parse the start of a file with one format")
    parse_p.add_argument("file", help="File to parse")
    parse_p.add_argument("-f", "--format", dest="format_name", required=True,
                         help="Name of the format to apply")
    parse_p.add_argument("-c", "--config", default=None)
    parse_p.add_argument("--json", dest="output_json", action="store_true",
                         help="Output the record as JSON")

    # --- identify ---
    id_p = sub.add_parser("identify", help="Identify a file by parsing its header")
    id_p.add_argument("file", help="File to identify")
    id_p.add_argument("-c", "--config", default=None)

    return parser


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.hex(" ")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _find_format(configs: list[FormatConfig], name: str) -> FormatConfig | None:
    for cfg in configs:
        if cfg.name.lower() == name.lower():
            return cfg
    return None


def cmd_hex(args) -> int:
    """Execute the ``hex`` subcommand."""
    try:
        pattern = hex_pattern(args.literal)
        print(pattern if args.pattern else pattern.to_bytes().hex(" "))
    except SpecificationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def cmd_check(args) -> int:
    """Execute the ``check`` subcommand."""
    try:
        configs = load_config(args.config)
    except SpecificationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    failures = 0
    for cfg in configs:
        try:
            plan = cfg.compile()
        except SpecificationError as exc:
            failures += 1
            print(f"  FAIL {cfg.name}: {exc}")
            continue
        print(f"  ok   {cfg.name} ({len(plan.fields)} fields, {plan.size} bytes)")
    return 1 if failures else 0


def cmd_parse(args) -> int:
    """Execute the ``parse`` subcommand."""
    configs = load_config(args.config)
    cfg = _find_format(configs, args.format_name)
    if cfg is None:
        print(f"Error: unknown format {args.format_name!r}", file=sys.stderr)
        return 1

    target = Path(args.file)
    if not target.is_file():
        print(f"Error: {args.file} is not a valid file", file=sys.stderr)
        return 1

    result = cfg.compile().parse_file(target)
    if not result.ok:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    if args.output_json:
        print(json.dumps(result.value, indent=2, default=_json_default))
    else:
        print(f"Parsed as: {cfg.name} ({result.consumed} bytes)")
        for k, v in result.value.items():
            if isinstance(v, (bytes, bytearray)):
                v = v.hex(" ")
            print(f"  {k}: {v}")
    return 0


def cmd_identify(args) -> int:
    """Execute the ``identify`` subcommand."""
    from hexstruct.identifier import FileIdentifier

    identifier = FileIdentifier(load_config(args.config))
    matches = identifier.identify_file(args.file)
    if matches:
        for m in matches:
            print(f"  {m.name} ({m.size} byte header)")
    else:
        ext_matches = identifier.identify_by_extension(args.file)
        if ext_matches:
            print("No header match.  Extension matches:")
            for m in ext_matches:
                print(f"  {m.name}")
        else:
            print("Unknown format")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    dispatch = {
        "hex": cmd_hex,
        "check": cmd_check,
        "parse": cmd_parse,
        "identify": cmd_identify,
    }
    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
