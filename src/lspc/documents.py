"""Documents open in language servers and their diagnostics.

A document is open once per path. Each session holding it is recorded by
name in ``OpenDocument.sessions``; the handle is released when the last
session closes it. Diagnostics are kept per session and every publish
replaces that session's previous list.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, NamedTuple

from lspc.config.servers import language_id_for
from lspc.errors import LSPCError
from lspc.logging import get_logger
from lspc.protocol.capabilities import wants_save_notifications
from lspc.protocol.methods import ClientNotification
from lspc.protocol.types import (
    Diagnostic,
    DiagnosticSeverity,
    PublishDiagnosticsParams,
    Range,
)
from lspc.protocol.uri import path_to_uri, uri_to_path
from lspc.text import UTF16, LineIndex

if TYPE_CHECKING:
    from lspc.editor import Document, View
    from lspc.session import ServerSession

log = get_logger("documents")

HighlightMode = Literal["range", "line"]


class SpanHighlight(NamedTuple):
    start: int
    end: int
    severity: DiagnosticSeverity


class LineHighlight(NamedTuple):
    line: int
    severity: DiagnosticSeverity


@dataclass
class TrackedDiagnostic:
    """A published diagnostic with its document span.

    ``start``/``end`` are the document offsets computed when the diagnostic
    was published and ``snapshot`` the text they covered at that time.
    ``encoding`` is the position encoding of the publishing session.
    """

    session: str
    diagnostic: Diagnostic
    start: int
    end: int
    snapshot: str
    encoding: str = UTF16

    @property
    def range(self) -> Range:
        return self.diagnostic.range

    @property
    def message(self) -> str:
        return self.diagnostic.message

    @property
    def severity(self) -> int | None:
        return self.diagnostic.severity

    @property
    def code(self) -> int | str | None:
        return self.diagnostic.code

    @property
    def level(self) -> DiagnosticSeverity:
        """Severity, taking a missing or unknown one as an error."""
        try:
            return DiagnosticSeverity(self.diagnostic.severity)
        except ValueError:
            return DiagnosticSeverity.ERROR

    def is_current(self, content: str) -> bool:
        """True while the text at the span still equals the snapshot."""
        return content[self.start : self.end] == self.snapshot


@dataclass
class OpenDocument:
    path: str
    revision: int = 0
    sessions: set[str] = field(default_factory=set)
    diagnostics: dict[str, list[TrackedDiagnostic]] = field(default_factory=dict)

    @property
    def uri(self) -> str:
        return path_to_uri(self.path)

    def merged_diagnostics(self) -> list[TrackedDiagnostic]:
        """Diagnostics of all sessions ordered by start position."""
        merged = [d for diagnostics in self.diagnostics.values() for d in diagnostics]
        merged.sort(key=lambda d: (d.range.start.line, d.range.start.character))
        return merged


class DocumentRegistry:
    """Open documents keyed by path.

    Args:
        sessions: Live mapping of running sessions by name, used to resolve
            the session names recorded on documents.
    """

    def __init__(self, sessions: Mapping[str, ServerSession]) -> None:
        self._sessions = sessions
        self._documents: dict[str, OpenDocument] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def get(self, path: str) -> OpenDocument | None:
        return self._documents.get(path)

    def is_open(self, session_name: str, path: str | None) -> bool:
        doc = self._documents.get(path) if path else None
        return doc is not None and session_name in doc.sessions

    def _holders(self, doc: OpenDocument) -> list[ServerSession]:
        return [self._sessions[name] for name in sorted(doc.sessions) if name in self._sessions]

    # -- synchronization --

    def open(self, session: ServerSession, view: View) -> OpenDocument:
        """Open the view's document in session.

        Raises:
            LSPCError: If the document has no path or is already open there.
        """
        document = view.document
        path = document.path
        if path is None:
            raise LSPCError("Cannot open a document without a path")
        if self.is_open(session.name, path):
            raise LSPCError(f"{path} already open in {session.name}")

        doc = self._documents.get(path)
        if doc is None:
            doc = OpenDocument(path=path)
            self._documents[path] = doc
        doc.sessions.add(session.name)

        session.send(
            ClientNotification.DID_OPEN,
            {
                "textDocument": {
                    "uri": doc.uri,
                    "languageId": language_id_for(view.syntax or session.config.syntax),
                    "version": doc.revision,
                    "text": document.content,
                }
            },
        )
        log.debug("Opened %s in %s", path, session.name)
        return doc

    def close(self, session: ServerSession, path: str | None) -> None:
        """Close a document in one session.

        Raises:
            LSPCError: If the document is not open in session.
        """
        if path is None or not self.is_open(session.name, path):
            raise LSPCError(f"{path or '[No Name]'} not open in {session.name}")

        session.send(ClientNotification.DID_CLOSE, {"textDocument": {"uri": path_to_uri(path)}})
        self._release(self._documents[path], session.name)
        log.debug("Closed %s in %s", path, session.name)

    def _release(self, doc: OpenDocument, session_name: str) -> None:
        doc.sessions.discard(session_name)
        doc.diagnostics.pop(session_name, None)
        if not doc.sessions:
            del self._documents[doc.path]

    def resync(self, session: ServerSession, document: Document) -> int:
        """Send the whole document content as a new revision.

        Returns:
            The new revision number.
        """
        path = document.path
        doc = self._documents.get(path) if path else None
        if doc is None:
            raise LSPCError(f"{path or '[No Name]'} not open in {session.name}")

        doc.revision += 1
        session.send(
            ClientNotification.DID_CHANGE,
            {
                "textDocument": {"uri": doc.uri, "version": doc.revision},
                "contentChanges": [{"text": document.content}],
            },
        )
        return doc.revision

    def document_closed(self, path: str) -> None:
        """Close path in every session still holding it."""
        doc = self._documents.get(path)
        if doc is None:
            return
        for session in self._holders(doc):
            self.close(session, path)
        # Sessions that stopped meanwhile
        self._documents.pop(path, None)

    def document_saved(self, document: Document) -> None:
        """Resync a saved document and notify sessions interested in saves."""
        doc = self._documents.get(document.path) if document.path else None
        if doc is None:
            return
        for session in self._holders(doc):
            self.resync(session, document)
            if wants_save_notifications(session.capabilities):
                session.send(ClientNotification.DID_SAVE, {"textDocument": {"uri": doc.uri}})

    def forget_session(self, session_name: str) -> None:
        """Drop all state of a session that stopped."""
        for doc in list(self._documents.values()):
            if session_name in doc.sessions:
                self._release(doc, session_name)

    # -- diagnostics --

    def publish(
        self,
        session_name: str,
        params: PublishDiagnosticsParams,
        document: Document | None,
        encoding: str,
    ) -> list[TrackedDiagnostic] | None:
        """Replace the diagnostics a session published for a document.

        Returns:
            The stored diagnostics, or None if the document is not open.
        """
        path = uri_to_path(params.uri)
        doc = self._documents.get(path)
        if doc is None or session_name not in doc.sessions or document is None:
            log.debug("Diagnostics for not opened file %s", path)
            return None

        content = document.content
        index = LineIndex(content, encoding)
        tracked = []
        for diagnostic in params.diagnostics:
            start, end = index.range_to_span(diagnostic.range)
            if start == end:
                # Caret-sized range: cover one character
                end = min(end + 1, len(content))
            tracked.append(
                TrackedDiagnostic(
                    session=session_name,
                    diagnostic=diagnostic,
                    start=start,
                    end=end,
                    snapshot=content[start:end],
                    encoding=encoding,
                )
            )

        doc.diagnostics[session_name] = tracked
        log.debug("Remembered %d diagnostics for %s from %s", len(tracked), path, session_name)
        return tracked

    def has_diagnostics(self, path: str | None) -> bool:
        doc = self._documents.get(path) if path else None
        return doc is not None and any(doc.diagnostics.values())

    def next_diagnostic(
        self, path: str, document: Document, offset: int, reverse: bool = False
    ) -> TrackedDiagnostic | None:
        """Find the diagnostic after (or before) offset, wrapping around.

        Diagnostic positions are resolved against the current text of
        document, so edits since the publish do not shift the comparison.
        """
        doc = self._documents.get(path)
        if doc is None:
            return None
        diagnostics = doc.merged_diagnostics()
        if not diagnostics:
            return None
        starts = list(zip(diagnostics, diagnostic_offsets(diagnostics, document.content)))

        if reverse:
            before = [d for d, start in starts if start < offset]
            return before[-1] if before else diagnostics[-1]

        for diagnostic, start in starts:
            if start > offset:
                return diagnostic
        return diagnostics[0]

    def diagnostics_on_line(self, path: str, line: int) -> list[TrackedDiagnostic]:
        """Diagnostics whose range starts on line."""
        doc = self._documents.get(path)
        if doc is None:
            return []
        return [d for d in doc.merged_diagnostics() if d.range.start.line == line]

    def highlights(
        self, path: str, document: Document, mode: HighlightMode = "range"
    ) -> list[SpanHighlight] | list[LineHighlight]:
        """Spans or lines to highlight for up-to-date diagnostics.

        A line covered by several diagnostics takes the most severe one.
        """
        doc = self._documents.get(path)
        if doc is None:
            return []
        content = document.content
        current = [d for d in doc.merged_diagnostics() if d.is_current(content)]
        if mode == "line":
            lines: dict[int, DiagnosticSeverity] = {}
            for d in current:
                for line in range(d.range.start.line, d.range.end.line + 1):
                    lines[line] = min(lines.get(line, d.level), d.level)
            return [LineHighlight(line, lines[line]) for line in sorted(lines)]
        return [SpanHighlight(d.start, d.end, d.level) for d in current]


def diagnostic_offsets(diagnostics: list[TrackedDiagnostic], content: str) -> list[int]:
    """Offsets of the diagnostics' start positions within content."""
    indexes: dict[str, LineIndex] = {}
    offsets = []
    for diagnostic in diagnostics:
        index = indexes.get(diagnostic.encoding)
        if index is None:
            index = indexes[diagnostic.encoding] = LineIndex(content, diagnostic.encoding)
        offsets.append(index.position_to_offset(diagnostic.range.start))
    return offsets
