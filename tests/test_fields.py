"""Tests for hexstruct.fields."""

import pytest

from hexstruct.errors import FieldSyntaxError, HexLexError, PatternSyntaxError
from hexstruct.fields import (
    MISSING_ARROW_MESSAGE,
    SKIP_ONLY_MESSAGE,
    FieldKind,
    FieldSpec,
    parse_field,
)
from hexstruct.patterns import hex_pattern
from hexstruct.syntax import Expression, SourceCursor, compile_expression


def _expr(text):
    return Expression(text, compile_expression(text))


class TestFieldSpec:
    def test_skip(self):
        field = FieldSpec.skip("48 45 58")
        assert field.kind is FieldKind.SKIP_ONLY
        assert not field.is_struct_member
        assert str(field) == "_: [48, 45, 58]"

    def test_bound_raw(self):
        field = FieldSpec.bound("a", [0x01, None])
        assert field.kind is FieldKind.BOUND
        assert field.evaluate(b"\x01\x02", {}) == b"\x01\x02"

    def test_bound_callable_transform(self):
        def little(raw):
            return int.from_bytes(raw, "little")

        field = FieldSpec.bound("b", "____", little)
        assert field.evaluate(b"\x01\x02", {}) == 0x0201
        assert str(field) == "b: [__, __] => little"

    def test_expression_sees_binding_and_scope(self):
        field = FieldSpec.bound("n", "__", _expr("raw[0] + OFFSET"), binding="raw")
        assert field.evaluate(b"\x05", {"OFFSET": 10}) == 15

    def test_expression_does_not_leak_binding(self):
        scope = {"OFFSET": 1}
        FieldSpec.bound("n", "__", _expr("raw[0] + OFFSET"), binding="raw").evaluate(b"\x01", scope)
        assert "raw" not in scope

    def test_positional_member(self):
        assert FieldSpec.bound(0, "__").member == 0

    @pytest.mark.parametrize("member", [None, "_"])
    def test_bound_needs_member(self, member):
        with pytest.raises(FieldSyntaxError):
            FieldSpec.bound(member, "__")

    @pytest.mark.parametrize("member", [-1, True, 1.0, "not-a-name", "class"])
    def test_invalid_members(self, member):
        with pytest.raises(FieldSyntaxError):
            FieldSpec.bound(member, "__")

    def test_binding_without_transform(self):
        with pytest.raises(FieldSyntaxError) as info:
            FieldSpec.bound("a", "__", binding="raw")
        assert info.value.message == MISSING_ARROW_MESSAGE

    def test_skip_with_transform(self):
        with pytest.raises(FieldSyntaxError) as info:
            FieldSpec(None, hex_pattern("00"), transform=_expr("1"))
        assert info.value.message == SKIP_ONLY_MESSAGE

    def test_range_pattern_rejected(self):
        with pytest.raises(FieldSyntaxError) as info:
            FieldSpec.skip("AA ..")
        assert "ranges are not allowed" in info.value.message
        with pytest.raises(FieldSyntaxError):
            FieldSpec(None, hex_pattern("AA .."))


class TestParseField:
    def test_skip_field(self):
        field = parse_field(SourceCursor('_: "48 45 58"'))
        assert field.member is None
        assert str(field.pattern) == "[48, 45, 58]"
        assert field.location == (1, 0)

    def test_bound_with_transform(self):
        field = parse_field(SourceCursor('b: buf @ "AABB ____" => int.from_bytes(buf, "little")'))
        assert field.member == "b"
        assert field.binding == "buf"
        assert str(field.transform) == 'int.from_bytes(buf, "little")'
        assert field.evaluate(b"\xaa\xbb\x01\x00", {}) == 0x0001BBAA

    def test_transform_without_binding(self):
        field = parse_field(SourceCursor('tag: b"ID" => "constant"'))
        assert field.binding is None
        assert field.evaluate(b"ID", {}) == "constant"

    def test_array_pattern(self):
        field = parse_field(SourceCursor("a: [0x01, _]"))
        assert len(field.pattern) == 2
        assert field.transform is None

    def test_positional_member(self):
        assert parse_field(SourceCursor('0: "__"')).member == 0

    def test_stops_before_comma(self):
        cursor = SourceCursor('a: x @ "00" => (x, 1), b: "01"')
        field = parse_field(cursor)
        assert str(field.transform) == "(x, 1)"
        assert cursor.peek_op(",")

    @pytest.mark.parametrize("source", [
        '_: x @ "00" => x',
        '_: "00" => 1',
    ])
    def test_skip_only_rejects_binding_and_transform(self, source):
        with pytest.raises(FieldSyntaxError) as info:
            parse_field(SourceCursor(source))
        assert info.value.message == SKIP_ONLY_MESSAGE

    def test_binding_requires_arrow(self):
        with pytest.raises(FieldSyntaxError) as info:
            parse_field(SourceCursor('a: x @ "00"'))
        assert "expected `=>`" in info.value.message
        assert "remove the `@` binding" in info.value.hint

    def test_name_without_at(self):
        with pytest.raises(FieldSyntaxError) as info:
            parse_field(SourceCursor('a: x "00"'))
        assert "`@`" in info.value.hint

    def test_missing_colon(self):
        with pytest.raises(FieldSyntaxError):
            parse_field(SourceCursor('a "00"'))

    @pytest.mark.parametrize("source", ['"a": "00"', '1.5: "00"'])
    def test_bad_member(self, source):
        with pytest.raises(FieldSyntaxError):
            parse_field(SourceCursor(source))

    def test_range_rejected(self):
        with pytest.raises(PatternSyntaxError) as info:
            parse_field(SourceCursor('a: "00 .."'))
        assert "ranges are not allowed" in str(info.value)

    def test_invalid_transform(self):
        with pytest.raises(FieldSyntaxError):
            parse_field(SourceCursor('a: x @ "00" => x +'))

    def test_lex_error_location(self):
        with pytest.raises(HexLexError) as info:
            parse_field(SourceCursor('a: "0G"'))
        assert info.value.location == (1, 3)
