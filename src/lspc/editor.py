"""Protocols the host editor implements for the engine.

The engine never holds editor objects across callbacks. Views are
referenced by ``view_id`` and resolved through ``Editor.view`` when a
response arrives; a view that no longer exists resolves to None.

Offsets are character offsets into the document content. Lines and
columns passed to ``open_location`` are 0-based, with columns counted in
characters.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class Document(Protocol):
    """A text buffer, possibly backed by a file."""

    path: str | None

    @property
    def size(self) -> int: ...

    @property
    def content(self) -> str: ...

    @property
    def modified(self) -> bool: ...

    def insert(self, offset: int, text: str) -> None: ...

    def delete(self, offset: int, length: int) -> None: ...

    def mark_set(self, offset: int) -> int:
        """Create a mark tracking offset across later edits."""
        ...

    def mark_get(self, mark: int) -> int | None:
        """Current offset of a mark, or None if it is unknown."""
        ...

    def mark_release(self, mark: int) -> None:
        """Forget a mark; unknown marks are ignored."""
        ...

    def save(self) -> None: ...


class View(Protocol):
    """A window showing a document."""

    view_id: int
    syntax: str | None
    cursor: int
    tab_width: int
    expand_tab: bool

    @property
    def document(self) -> Document: ...


class Editor(Protocol):
    """Host editor services used by the engine."""

    def active_view(self) -> View | None: ...

    def views(self) -> Iterable[View]: ...

    def view(self, view_id: int) -> View | None: ...

    def document(self, path: str) -> Document | None:
        """The open document for path, if any."""
        ...

    def open_location(self, path: str, line: int, column: int, mode: str) -> View | None:
        """Show path at line/column.

        mode "e" replaces the active view, other modes (e.g. "vsplit",
        "hsplit") open a new one.
        """
        ...

    def open_transient(self, path: str) -> View:
        """Open path in a view the engine closes again with close_transient."""
        ...

    def close_transient(self, view: View) -> None:
        """Save and close a view opened with open_transient."""
        ...

    def select(self, choices: list[str]) -> str | None: ...

    def confirm(self, prompt: str) -> bool: ...

    def show_message(self, text: str, header: str | None = None, syntax: str | None = None) -> None: ...

    def close_message(self) -> None: ...

    def info(self, message: str) -> None:
        """Show a short status line message."""
        ...
