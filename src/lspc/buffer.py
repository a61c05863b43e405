"""In-memory document and view used headless and in tests."""

from __future__ import annotations

import itertools
from pathlib import Path

from lspc.logging import get_logger

log = get_logger("buffer")

_view_ids = itertools.count(1)


class TextBuffer:
    """A mutable text buffer with position marks.

    Marks follow the text they were set on:

    - inserting at p moves marks at offsets >= p past the inserted text
    - deleting [p, q) moves marks inside (p, q] to p and shifts later
      marks back by q - p
    """

    def __init__(self, text: str = "", path: str | None = None) -> None:
        self.path = path
        self._text = text
        self._marks: dict[int, int] = {}
        self._next_mark = 0
        self.modified = False

    @classmethod
    def load(cls, path: str) -> TextBuffer:
        """Read a UTF-8 file into a buffer."""
        text = Path(path).read_text(encoding="utf-8")
        return cls(text, path=str(Path(path).absolute()))

    @property
    def content(self) -> str:
        return self._text

    @property
    def size(self) -> int:
        return len(self._text)

    def insert(self, offset: int, text: str) -> None:
        offset = min(max(offset, 0), len(self._text))
        if not text:
            return
        self._text = self._text[:offset] + text + self._text[offset:]
        for mark, pos in self._marks.items():
            if pos >= offset:
                self._marks[mark] = pos + len(text)
        self.modified = True

    def delete(self, offset: int, length: int) -> None:
        start = min(max(offset, 0), len(self._text))
        end = min(start + max(length, 0), len(self._text))
        if end == start:
            return
        self._text = self._text[:start] + self._text[end:]
        for mark, pos in self._marks.items():
            if pos > end:
                self._marks[mark] = pos - (end - start)
            elif pos > start:
                self._marks[mark] = start
        self.modified = True

    def mark_set(self, offset: int) -> int:
        mark = self._next_mark
        self._next_mark += 1
        self._marks[mark] = min(max(offset, 0), len(self._text))
        return mark

    def mark_get(self, mark: int) -> int | None:
        return self._marks.get(mark)

    def mark_release(self, mark: int) -> None:
        self._marks.pop(mark, None)

    @property
    def mark_count(self) -> int:
        return len(self._marks)

    def save(self) -> None:
        if self.path is None:
            raise ValueError("Buffer has no path")
        Path(self.path).write_text(self._text, encoding="utf-8")
        log.debug("Saved %s", self.path)
        self.modified = False

    def __repr__(self) -> str:
        return f"TextBuffer(path={self.path!r}, size={self.size})"


class BufferView:
    """A view on a TextBuffer."""

    def __init__(
        self,
        document: TextBuffer,
        syntax: str | None = None,
        tab_width: int = 8,
        expand_tab: bool = False,
    ) -> None:
        self.view_id = next(_view_ids)
        self.document = document
        self.syntax = syntax
        self.tab_width = tab_width
        self.expand_tab = expand_tab
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @cursor.setter
    def cursor(self, offset: int) -> None:
        self._cursor = min(max(offset, 0), self.document.size)
