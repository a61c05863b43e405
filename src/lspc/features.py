"""Handlers for responses to editor-facing requests.

Each handler receives the engine, the answering session, the original
request, the view the request was issued from and the validated result.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from lspc.edits import apply_text_edit, apply_text_edits, apply_workspace_edit
from lspc.logging import get_logger
from lspc.protocol.methods import GOTO_REQUESTS, ClientRequest
from lspc.protocol.types import (
    CompletionItem,
    CompletionList,
    Hover,
    Location,
    LocationLink,
    Position,
    SignatureHelp,
    TextEdit,
    WorkspaceEdit,
)
from lspc.protocol.uri import path_to_uri, uri_to_path
from lspc.text import UTF32, LineIndex

if TYPE_CHECKING:
    from lspc.editor import Editor, View
    from lspc.engine import Engine
    from lspc.rpc import InFlightRequest
    from lspc.session import ServerSession

log = get_logger("features")

_WORD_CHAR = re.compile(r"\w")


@dataclass(frozen=True)
class GotoContext:
    """How to open the location a goto request answers with."""

    open_mode: str = "e"


@dataclass(frozen=True)
class CursorContext:
    """Cursor offset at the time a request was issued."""

    offset: int


def text_document_position(view: View, encoding: str) -> dict[str, Any]:
    """TextDocumentPositionParams for the view's cursor."""
    document = view.document
    position = LineIndex(document.content, encoding).offset_to_position(view.cursor)
    return {
        "textDocument": {"uri": path_to_uri(document.path or "")},
        "position": position.to_wire(),
    }


def read_text(editor: Editor, path: str) -> str:
    """Content of path from its open document, else from disk."""
    document = editor.document(path)
    if document is not None:
        return document.content
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.debug("Cannot read %s: %s", path, e)
        return ""


def _relative(path: str) -> str:
    try:
        return os.path.relpath(path)
    except ValueError:
        return path


def location_target(location: Location | LocationLink) -> tuple[str, Position]:
    if isinstance(location, LocationLink):
        return uri_to_path(location.target_uri), location.target_selection_range.start
    return uri_to_path(location.uri), location.range.start


def select_location(
    editor: Editor, locations: list[Location | LocationLink], encoding: str
) -> tuple[str, int, int] | None:
    """Let the user choose one of several locations.

    Choices read ``relpath:line:column:text`` with 1-based line and column.

    Returns:
        Path, 0-based line and column of the choice, or None.
    """
    by_path: dict[str, list[Position]] = {}
    for location in locations:
        path, position = location_target(location)
        by_path.setdefault(path, []).append(position)

    choices: dict[str, tuple[str, int, int]] = {}
    for path, positions in by_path.items():
        index = LineIndex(read_text(editor, path), encoding)
        rel_path = _relative(path)
        for position in sorted(positions, key=lambda p: p.line):
            column = index.column(position)
            text = index.line_text(position.line)
            label = f"{rel_path}:{position.line + 1}:{column + 1}:{text}"
            choices.setdefault(label, (path, position.line, column))

    choice = editor.select(list(choices))
    if choice is None:
        return None
    return choices[choice]


def handle_goto(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: Location | list[Location | LocationLink] | None,
) -> None:
    if not result:
        engine.report(f"{request.method} found no results", logging.WARNING)
        return

    locations = result if isinstance(result, list) else [result]
    if len(locations) > 1:
        target = select_location(engine.editor, locations, session.encoding)
        if target is None:
            return
    else:
        path, position = location_target(locations[0])
        index = LineIndex(read_text(engine.editor, path), session.encoding)
        target = (path, position.line, index.column(position))

    context = request.context if isinstance(request.context, GotoContext) else GotoContext()
    engine.open_location(*target, mode=context.open_mode, view=view)


def word_at(text: str, offset: int) -> tuple[int, int] | None:
    """Span of the word containing the character at offset."""
    if offset < 0 or offset >= len(text) or not _WORD_CHAR.match(text[offset]):
        return None
    start = offset
    while start > 0 and _WORD_CHAR.match(text[start - 1]):
        start -= 1
    end = offset + 1
    while end < len(text) and _WORD_CHAR.match(text[end]):
        end += 1
    return start, end


def handle_completion(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: CompletionList | list[CompletionItem] | None,
) -> None:
    items = result.items if isinstance(result, CompletionList) else result
    if not items or view is None:
        engine.report("no completion available", logging.WARNING)
        return

    by_label: dict[str, CompletionItem] = {}
    for item in items:
        by_label.setdefault(item.label, item)

    choice = engine.editor.select(list(by_label))
    if choice is None:
        return
    completion = by_label[choice]

    if completion.text_edit is not None:
        apply_text_edit(view, completion.text_edit, session.encoding)
        return

    old_pos = request.context.offset if isinstance(request.context, CursorContext) else view.cursor
    if view.cursor != old_pos:
        engine.report("cursor moved since completion was requested", logging.WARNING)

    new_word = completion.insert_text or completion.label
    document = view.document
    content = document.content

    # Replace the word under the cursor, or just before it, if it is a
    # prefix of the completion
    start = old_pos
    for candidate in (old_pos, old_pos - 1):
        span = word_at(content, candidate)
        if span is not None and new_word.startswith(content[span[0] : span[1]]):
            document.delete(span[0], span[1] - span[0])
            start = span[0]
            break

    document.insert(start, new_word)
    view.cursor = start + len(new_word)


def _cursor_label(view: View, offset: int) -> str:
    index = LineIndex(view.document.content, UTF32)
    position = index.offset_to_position(offset)
    return f"{view.document.path or ''}: {position.line + 1}, {position.character + 1}"


def _markup_text(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("value", ""))
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def handle_hover(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: Hover | None,
) -> None:
    if result is None or not result.contents or view is None:
        engine.report("no hover available", logging.WARNING)
        return

    contents = result.contents
    syntax = "markdown"
    if isinstance(contents, list):
        message = "\n---\n".join(_markup_text(c) for c in contents)
    else:
        message = _markup_text(contents)
        if isinstance(contents, dict) and contents.get("kind") == "plaintext":
            syntax = "text"

    offset = request.context.offset if isinstance(request.context, CursorContext) else view.cursor
    header = f"--- hover: {_cursor_label(view, offset)} ---"
    engine.editor.show_message(message, header=header, syntax=syntax)


def handle_signature_help(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: SignatureHelp | None,
) -> None:
    if result is None or not result.signatures or view is None:
        engine.report("no signature help available", logging.WARNING)
        return

    parts = []
    for signature in result.signatures:
        text = signature.label
        if signature.documentation is not None:
            text += f"\n\tdocumentation: {_markup_text(signature.documentation)}"
        parts.append(text)

    offset = request.context.offset if isinstance(request.context, CursorContext) else view.cursor
    header = f"--- signature help: {_cursor_label(view, offset)} ---"
    engine.editor.show_message("\n".join(parts), header=header)


def handle_rename(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: WorkspaceEdit | None,
) -> None:
    if result is None:
        engine.report("rename produced no changes", logging.WARNING)
        return
    apply_workspace_edit(
        engine.editor,
        result,
        remember_cursor=engine.config.workspace_edit_remember_cursor,
        encoding=session.encoding,
    )


def handle_formatting(
    engine: Engine,
    session: ServerSession,
    request: InFlightRequest,
    view: View | None,
    result: list[TextEdit] | None,
) -> None:
    # TextEdit[] | null
    if result and view is not None:
        apply_text_edits(view.document, result, session.encoding)


ResponseHandler = Callable[
    ["Engine", "ServerSession", "InFlightRequest", "View | None", Any], None
]

RESPONSE_HANDLERS: dict[ClientRequest, ResponseHandler] = {
    **{method: handle_goto for method in GOTO_REQUESTS},
    ClientRequest.COMPLETION: handle_completion,
    ClientRequest.HOVER: handle_hover,
    ClientRequest.SIGNATURE_HELP: handle_signature_help,
    ClientRequest.RENAME: handle_rename,
    ClientRequest.FORMATTING: handle_formatting,
}
