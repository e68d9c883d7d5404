"""Tests for hexstruct.lexer."""

import pytest

from hexstruct.errors import HexLexError, LexRole, SpecificationError
from hexstruct.lexer import Exact, HexLexer, LexState, OpenRange, Wildcard, tokenize_hex


class TestTokens:
    def test_exact_pairs(self):
        assert tokenize_hex("7d2b") == [Exact(0x7D), Exact(0x2B)]

    def test_mixed_case(self):
        assert tokenize_hex("aA aa aA Aa aa") == [Exact(0xAA)] * 5

    def test_wildcard(self):
        assert tokenize_hex("01__FF__") == [Exact(1), Wildcard(), Exact(0xFF), Wildcard()]

    def test_open_range(self):
        assert tokenize_hex("01..04") == [Exact(1), OpenRange(), Exact(4)]

    def test_empty(self):
        assert tokenize_hex("") == []
        assert tokenize_hex("  \t\r\n ") == []

    def test_whitespace_between_tokens_is_ignored(self):
        assert tokenize_hex("AA BB") == tokenize_hex("AABB")
        assert tokenize_hex("\tAA\r\n BB ") == tokenize_hex("AABB")
        assert tokenize_hex("__ .. 00") == tokenize_hex("__..00")

    def test_display(self):
        assert [str(t) for t in tokenize_hex("7d2b __ ..")] == ["7D", "2B", "__", ".."]

    def test_every_byte_value(self):
        text = "".join(f"{v:02x}" for v in range(256))
        assert tokenize_hex(text) == [Exact(v) for v in range(256)]


class TestLexErrors:
    def test_trailing_hex_digit(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("ABC")
        assert info.value.role is LexRole.EXPECTED_HEX_DIGIT
        assert info.value.position == 2
        assert info.value.char == ""
        assert "end of input" in str(info.value)

    def test_whitespace_splits_pair(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("A B")
        assert info.value.role is LexRole.EXPECTED_HEX_DIGIT
        assert info.value.position == 0
        assert info.value.char == " "

    def test_unpaired_underscore(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("00 _A")
        assert info.value.role is LexRole.EXPECTED_UNDERSCORE
        assert info.value.position == 3
        assert info.value.char == "A"

    def test_trailing_underscore(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("___")
        assert info.value.role is LexRole.EXPECTED_UNDERSCORE
        assert info.value.position == 2

    def test_unpaired_dot(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex(".a")
        assert info.value.role is LexRole.EXPECTED_DOT
        assert info.value.position == 0

    def test_trailing_dot(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("00 .")
        assert info.value.role is LexRole.EXPECTED_DOT
        assert info.value.position == 3

    def test_underscore_inside_hex_pair(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("A_")
        assert info.value.role is LexRole.EXPECTED_HEX_DIGIT
        assert info.value.char == "_"

    def test_invalid_character(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("AAG0")
        assert info.value.role is LexRole.INVALID_CHARACTER
        assert info.value.char == "G"
        assert info.value.position == 2
        assert "invalid character" in str(info.value)

    def test_hex_prefix_rejected(self):
        with pytest.raises(HexLexError) as info:
            tokenize_hex("0x01")
        assert info.value.char == "x"

    def test_is_specification_error(self):
        with pytest.raises(SpecificationError):
            tokenize_hex("1")
        with pytest.raises(ValueError):
            tokenize_hex("1")


class TestHexLexer:
    def test_state_after_run(self):
        lexer = HexLexer("AB __")
        lexer.run()
        assert lexer.state is LexState.IDLE
        assert len(lexer.tokens) == 2

    def test_feed_tracks_pending_state(self):
        lexer = HexLexer("A")
        lexer.feed("A", 0)
        assert lexer.state is LexState.AWAIT_HEX
        lexer.feed("5", 1)
        assert lexer.state is LexState.IDLE
        assert lexer.tokens == [Exact(0xA5)]
