"""Translation between LSP positions and document offsets.

Documents are addressed by character offsets into a Python string. LSP
addresses text by 0-based line and character, where "character" counts
code units of the negotiated position encoding:

- utf-16: UTF-16 code units (the protocol default)
- utf-32: Unicode code points, i.e. Python string indices
- utf-8: bytes

LineIndex keeps a table of line start offsets so both directions are a
binary search plus a scan of a single line.
"""

from __future__ import annotations

from bisect import bisect_right

from lspc.protocol.types import Position, Range

UTF8 = "utf-8"
UTF16 = "utf-16"
UTF32 = "utf-32"

ENCODINGS = (UTF8, UTF16, UTF32)


def _units(char: str, encoding: str) -> int:
    code = ord(char)
    if encoding == UTF16:
        return 2 if code > 0xFFFF else 1
    if encoding == UTF8:
        if code < 0x80:
            return 1
        if code < 0x800:
            return 2
        if code < 0x10000:
            return 3
        return 4
    return 1


def count_units(text: str, encoding: str = UTF16) -> int:
    """Length of text in code units of encoding."""
    if encoding == UTF32:
        return len(text)
    return sum(_units(c, encoding) for c in text)


class LineIndex:
    """Line start table for one snapshot of a document's text.

    Out-of-range lines clamp to the end of the document and characters
    clamp to the length of their line (excluding the line terminator).
    """

    def __init__(self, text: str, encoding: str = UTF16) -> None:
        if encoding not in ENCODINGS:
            raise ValueError(f"Unsupported position encoding: {encoding}")
        self.text = text
        self.encoding = encoding
        self._starts = [0]
        start = text.find("\n")
        while start != -1:
            self._starts.append(start + 1)
            start = text.find("\n", start + 1)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_start(self, line: int) -> int:
        if line >= len(self._starts):
            return len(self.text)
        return self._starts[max(line, 0)]

    def line_end(self, line: int) -> int:
        """Offset of the end of line, before its terminator."""
        if line >= len(self._starts):
            return len(self.text)
        line = max(line, 0)
        if line + 1 < len(self._starts):
            end = self._starts[line + 1] - 1
            if end > self._starts[line] and self.text[end - 1] == "\r":
                end -= 1
            return end
        return len(self.text)

    def line_text(self, line: int) -> str:
        return self.text[self.line_start(line) : self.line_end(line)]

    def line_of(self, offset: int) -> int:
        offset = min(max(offset, 0), len(self.text))
        return bisect_right(self._starts, offset) - 1

    def position_to_offset(self, position: Position) -> int:
        """Convert an LSP position into a document offset."""
        if position.line >= len(self._starts):
            return len(self.text)
        if position.line < 0:
            return 0

        start = self._starts[position.line]
        end = self.line_end(position.line)
        if self.encoding == UTF32:
            return start + min(max(position.character, 0), end - start)

        remaining = position.character
        offset = start
        while offset < end and remaining > 0:
            remaining -= _units(self.text[offset], self.encoding)
            offset += 1
        return offset

    def offset_to_position(self, offset: int) -> Position:
        """Convert a document offset into an LSP position."""
        offset = min(max(offset, 0), len(self.text))
        line = bisect_right(self._starts, offset) - 1
        start = self._starts[line]
        return Position(
            line=line,
            character=count_units(self.text[start:offset], self.encoding),
        )

    def range_to_span(self, lsp_range: Range) -> tuple[int, int]:
        """Convert an LSP range into a (start, end) offset pair, start <= end."""
        start = self.position_to_offset(lsp_range.start)
        end = self.position_to_offset(lsp_range.end)
        if end < start:
            start, end = end, start
        return start, end

    def span_to_range(self, start: int, end: int) -> Range:
        return Range(start=self.offset_to_position(start), end=self.offset_to_position(end))

    def column(self, position: Position) -> int:
        """Code point column of position within its (clamped) line."""
        offset = self.position_to_offset(position)
        return offset - self.line_start(self.line_of(offset))
