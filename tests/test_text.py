"""Tests for position translation."""

from __future__ import annotations

import pytest

from lspc.protocol.types import Position, Range
from lspc.text import UTF8, UTF16, UTF32, LineIndex, count_units


def pos(line: int, character: int) -> Position:
    return Position(line=line, character=character)


class TestCountUnits:
    """Tests for code unit counting."""

    def test_ascii(self) -> None:
        for encoding in (UTF8, UTF16, UTF32):
            assert count_units("abc", encoding) == 3

    def test_astral(self) -> None:
        """Characters outside the BMP take two UTF-16 units."""
        assert count_units("a😀", UTF16) == 3
        assert count_units("a😀", UTF32) == 2
        assert count_units("a😀", UTF8) == 5

    def test_two_byte(self) -> None:
        assert count_units("é", UTF8) == 2
        assert count_units("é", UTF16) == 1


class TestLineIndex:
    """Tests for LineIndex."""

    def test_lines(self) -> None:
        index = LineIndex("ab\ncd\r\nef")
        assert index.line_count == 3
        assert [index.line_start(i) for i in range(3)] == [0, 3, 7]
        assert index.line_text(1) == "cd"
        assert index.line_end(1) == 5

    def test_line_of(self) -> None:
        index = LineIndex("ab\ncd\n")
        assert [index.line_of(o) for o in range(7)] == [0, 0, 0, 1, 1, 1, 2]

    def test_position_to_offset_utf16(self) -> None:
        """UTF-16 characters after an astral character are shifted by one."""
        index = LineIndex("x\n😀b = 1\n", UTF16)
        assert index.position_to_offset(pos(1, 0)) == 2
        assert index.position_to_offset(pos(1, 2)) == 3
        assert index.position_to_offset(pos(1, 3)) == 4

    def test_position_to_offset_utf32(self) -> None:
        index = LineIndex("x\n😀b = 1\n", UTF32)
        assert index.position_to_offset(pos(1, 1)) == 3

    def test_position_to_offset_utf8(self) -> None:
        index = LineIndex("été", UTF8)
        assert index.position_to_offset(pos(0, 2)) == 1
        assert index.position_to_offset(pos(0, 3)) == 2

    def test_clamping(self) -> None:
        index = LineIndex("abc\r\ndef")
        assert index.position_to_offset(pos(0, 99)) == 3
        assert index.position_to_offset(pos(5, 0)) == 8
        assert index.position_to_offset(pos(-1, 0)) == 0

    def test_offset_to_position(self) -> None:
        index = LineIndex("x\n😀b\n", UTF16)
        assert index.offset_to_position(4) == pos(1, 3)
        assert index.offset_to_position(100) == pos(2, 0)

    @pytest.mark.parametrize("encoding", [UTF8, UTF16, UTF32])
    def test_offsets_survive_translation(self, encoding: str) -> None:
        text = "def f(ä):\n    return '😀'\n"
        index = LineIndex(text, encoding)
        for offset in range(len(text) + 1):
            assert index.position_to_offset(index.offset_to_position(offset)) == offset

    def test_range_to_span_orders(self) -> None:
        index = LineIndex("hello world")
        span = index.range_to_span(Range(start=pos(0, 6), end=pos(0, 0)))
        assert span == (0, 6)

    def test_span_to_range(self) -> None:
        index = LineIndex("ab\ncd")
        assert index.span_to_range(1, 4) == Range(start=pos(0, 1), end=pos(1, 1))

    def test_column(self) -> None:
        index = LineIndex("😀x", UTF16)
        assert index.column(pos(0, 2)) == 1

    def test_unknown_encoding(self) -> None:
        with pytest.raises(ValueError, match="Unsupported position encoding"):
            LineIndex("", "latin-1")
