"""Applying server-proposed text edits to documents.

Multi-edit transactions translate every range before touching the
document and anchor each start with a document mark. Each edit resolves
its mark when it is applied, so edits at other, non-overlapping locations
applied earlier do not invalidate it.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lspc.errors import LSPCError
from lspc.logging import get_logger
from lspc.protocol.types import TextDocumentEdit, TextEdit, WorkspaceEdit
from lspc.protocol.uri import uri_to_path
from lspc.text import UTF16, LineIndex

if TYPE_CHECKING:
    from lspc.editor import Document, Editor, View

log = get_logger("edits")

SUMMARY_HEADER = "--- workspace edit summary ---"


@dataclass
class PendingEdit:
    """One edit of a transaction, anchored by a document mark."""

    mark: int
    length: int
    new_text: str


def apply_text_edit(view: View, edit: TextEdit, encoding: str = UTF16) -> None:
    """Replace the edit's range and put the cursor after the new text."""
    document = view.document
    start, end = LineIndex(document.content, encoding).range_to_span(edit.range)
    document.delete(start, end - start)
    document.insert(start, edit.new_text)
    view.cursor = start + len(edit.new_text)


def prepare_text_edits(
    document: Document, edits: Iterable[TextEdit], encoding: str = UTF16
) -> list[PendingEdit]:
    """Translate all ranges against the current text and set their marks."""
    index = LineIndex(document.content, encoding)
    pending = []
    for edit in edits:
        start, end = index.range_to_span(edit.range)
        pending.append(PendingEdit(document.mark_set(start), end - start, edit.new_text))
    return pending


def apply_pending_edits(document: Document, pending: Iterable[PendingEdit]) -> None:
    """Apply prepared edits and release their marks."""
    pending = list(pending)
    try:
        for edit in pending:
            pos = document.mark_get(edit.mark)
            if pos is None:
                raise LSPCError("Edit anchor lost while applying edits")
            document.delete(pos, edit.length)
            document.insert(pos, edit.new_text)
            document.mark_release(edit.mark)
    finally:
        # Marks of edits not applied after a failure
        for edit in pending:
            document.mark_release(edit.mark)


def apply_text_edits(document: Document, edits: Iterable[TextEdit], encoding: str = UTF16) -> None:
    """Apply a list of edits as one transaction."""
    apply_pending_edits(document, prepare_text_edits(document, edits, encoding))


def normalize_workspace_edit(edit: WorkspaceEdit) -> dict[str, list[TextEdit]]:
    """Collect a workspace edit's text edits by document URI.

    ``changes`` is used when present. Otherwise the TextDocumentEdits of
    ``documentChanges`` are converted; resource operations (create, rename,
    delete) are skipped.
    """
    if edit.changes is not None:
        return {uri: list(edits) for uri, edits in edit.changes.items()}

    file_edits: dict[str, list[TextEdit]] = {}
    for change in edit.document_changes or []:
        if isinstance(change, TextDocumentEdit):
            file_edits.setdefault(change.text_document.uri, []).extend(change.edits)
        else:
            log.warning("Skipping unsupported resource operation %s", change.get("kind"))
    return file_edits


def summarize_workspace_edit(changes: dict[str, list[TextEdit]]) -> str:
    """Human readable listing of the edits per file."""
    lines = [SUMMARY_HEADER]
    for uri, edits in changes.items():
        lines.append(f"{uri_to_path(uri)}:")
        for i, edit in enumerate(edits, 1):
            lines.append(f"\t{i}.: {json.dumps(edit.to_wire())}")
    return "\n".join(lines) + "\n"


def apply_workspace_edit(
    editor: Editor,
    edit: WorkspaceEdit,
    remember_cursor: bool = True,
    encoding: str = UTF16,
) -> bool:
    """Show a summary, ask for confirmation and apply a workspace edit.

    Documents without a view are opened transiently, edited, saved and
    closed again.

    Returns:
        True if the edit was applied, False if the user declined.
    """
    changes = normalize_workspace_edit(edit)
    if not changes:
        editor.info("Workspace edit contains no changes")
        return False

    editor.show_message(summarize_workspace_edit(changes))
    confirmed = editor.confirm("apply changes:")
    editor.close_message()
    if not confirmed:
        return False

    for uri, edits in changes.items():
        path = uri_to_path(uri)
        view = next((v for v in editor.views() if v.document.path == path), None)
        transient = view is None
        if view is None:
            view = editor.open_transient(path)

        old_cursor = view.cursor
        apply_text_edits(view.document, edits, encoding)
        if remember_cursor:
            view.cursor = old_cursor

        if transient:
            editor.close_transient(view)
        log.debug("Applied %d edits to %s", len(edits), path)

    return True
