"""Tests for the document registry and diagnostics aggregation."""

from __future__ import annotations

import pytest

from lspc.config import ServerConfig
from lspc.documents import LineHighlight
from lspc.errors import LSPCError
from lspc.protocol.types import DiagnosticSeverity, PublishDiagnosticsParams

from tests.utils import FakeEditor, frame, make_diagnostic

TEXT = "first line\nsecond line\nthird line\n"
PATH = "/src/main.py"
URI = "file:///src/main.py"


def ready(session, process, capabilities=None) -> None:
    session.receive(frame({"id": 0, "result": {"capabilities": capabilities or {}}}))
    process.clear()


def publish(registry, session, view, *diagnostics, uri: str = URI):
    params = PublishDiagnosticsParams.model_validate({"uri": uri, "diagnostics": list(diagnostics)})
    return registry.publish(session.name, params, view.document, session.encoding)


@pytest.fixture
def two_sessions(session_factory):
    """Two ready sessions with the same document open in both."""
    pylsp, pylsp_process = session_factory(ServerConfig(syntax="python", name="pylsp", command="pylsp"))
    ruff, ruff_process = session_factory(ServerConfig(syntax="python", name="ruff", command="ruff server"))
    ready(pylsp, pylsp_process)
    ready(ruff, ruff_process)

    view = FakeEditor().add_view(PATH, TEXT, syntax="python")
    registry = session_factory.registry
    registry.open(pylsp, view)
    registry.open(ruff, view)
    return registry, view, pylsp, ruff, pylsp_process, ruff_process


class TestOpenClose:
    """Tests for document membership."""

    def test_open_once_per_session(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        doc = registry.get(PATH)
        assert doc.sessions == {"pylsp", "ruff"}
        assert registry.is_open("pylsp", PATH)
        with pytest.raises(LSPCError, match="already open in pylsp"):
            registry.open(pylsp, view)

    def test_open_without_path(self, session_factory, server_config) -> None:
        session, _ = session_factory(server_config)
        view = FakeEditor().add_view(None, "scratch")
        with pytest.raises(LSPCError, match="without a path"):
            session_factory.registry.open(session, view)

    def test_language_id_mapping(self, session_factory) -> None:
        session, process = session_factory(ServerConfig(syntax="ansi_c", name="clangd", command="clangd"))
        ready(session, process)
        view = FakeEditor().add_view("/src/a.c", "int x;", syntax="ansi_c")
        session_factory.registry.open(session, view)
        assert process.last("textDocument/didOpen")["params"]["textDocument"]["languageId"] == "c"

    def test_close_releases_on_last_session(self, two_sessions) -> None:
        registry, view, pylsp, ruff, pylsp_process, _ = two_sessions
        registry.close(pylsp, PATH)
        assert pylsp_process.last("textDocument/didClose")["params"] == {"textDocument": {"uri": URI}}
        assert PATH in registry
        registry.close(ruff, PATH)
        assert PATH not in registry
        assert len(registry) == 0

    def test_close_not_open_raises(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        registry.close(pylsp, PATH)
        with pytest.raises(LSPCError, match="not open in pylsp"):
            registry.close(pylsp, PATH)

    def test_document_closed_closes_everywhere(self, two_sessions) -> None:
        registry, view, pylsp, ruff, pylsp_process, ruff_process = two_sessions
        registry.document_closed(PATH)
        assert "textDocument/didClose" in pylsp_process.methods()
        assert "textDocument/didClose" in ruff_process.methods()
        assert PATH not in registry

    def test_revision_shared_across_sessions(self, two_sessions) -> None:
        registry, view, pylsp, ruff, pylsp_process, ruff_process = two_sessions
        assert registry.resync(pylsp, view.document) == 1
        assert registry.resync(ruff, view.document) == 2
        assert ruff_process.last("textDocument/didChange")["params"]["textDocument"]["version"] == 2

    def test_saved_notifies_interested_sessions(self, session_factory) -> None:
        saver, saver_process = session_factory(ServerConfig(syntax="python", name="a", command="a"))
        plain, plain_process = session_factory(ServerConfig(syntax="python", name="b", command="b"))
        ready(saver, saver_process, {"textDocumentSync": {"change": 1, "save": {"includeText": False}}})
        ready(plain, plain_process, {"textDocumentSync": 1})
        view = FakeEditor().add_view(PATH, TEXT, syntax="python")
        registry = session_factory.registry
        registry.open(saver, view)
        registry.open(plain, view)

        registry.document_saved(view.document)
        assert saver_process.methods()[-2:] == ["textDocument/didChange", "textDocument/didSave"]
        assert plain_process.methods()[-1] == "textDocument/didChange"
        assert "textDocument/didSave" not in plain_process.methods()

    def test_forget_session(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((0, 0), (0, 5)))
        registry.forget_session("pylsp")
        doc = registry.get(PATH)
        assert doc.sessions == {"ruff"}
        assert "pylsp" not in doc.diagnostics
        registry.forget_session("ruff")
        assert PATH not in registry


class TestDiagnostics:
    """Tests for publishing and navigating diagnostics."""

    def test_next_across_sessions_wraps(self, two_sessions) -> None:
        """Diagnostics of both sessions are visited in document order, then wrap."""
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((1, 0), (1, 6), "later"))
        publish(registry, ruff, view, make_diagnostic((0, 6), (0, 10), "earlier"))

        first = registry.next_diagnostic(PATH, view.document, 0)
        assert first.message == "earlier"
        second = registry.next_diagnostic(PATH, view.document, first.start)
        assert second.message == "later"
        third = registry.next_diagnostic(PATH, view.document, second.start)
        assert third.message == "earlier"

    def test_prev_wraps(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((1, 0), (1, 6), "later"))
        publish(registry, ruff, view, make_diagnostic((0, 6), (0, 10), "earlier"))

        assert registry.next_diagnostic(PATH, view.document, 20, reverse=True).message == "later"
        assert registry.next_diagnostic(PATH, view.document, 11, reverse=True).message == "earlier"
        assert registry.next_diagnostic(PATH, view.document, 0, reverse=True).message == "later"

    def test_navigation_follows_edits(self, two_sessions) -> None:
        """Positions are compared on the edited text, not the published one."""
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((2, 0), (2, 5), "third"))
        publish(registry, ruff, view, make_diagnostic((0, 0), (0, 5), "first"))
        view.document.insert(0, "XXXXX")

        # Line 2 moved from offset 23 to 28
        assert registry.next_diagnostic(PATH, view.document, 24).message == "third"
        assert registry.next_diagnostic(PATH, view.document, 28).message == "first"
        assert registry.next_diagnostic(PATH, view.document, 28, reverse=True).message == "first"
        assert registry.next_diagnostic(PATH, view.document, 29, reverse=True).message == "third"

    def test_sorted_by_position(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((1, 4), (1, 6), "b"), make_diagnostic((2, 0), (2, 1), "c"))
        publish(registry, ruff, view, make_diagnostic((1, 0), (1, 2), "a"))
        doc = registry.get(PATH)
        assert [d.message for d in doc.merged_diagnostics()] == ["a", "b", "c"]

    def test_spans_cached(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        (tracked,) = publish(registry, pylsp, view, make_diagnostic((1, 0), (1, 6)))
        assert (tracked.start, tracked.end) == (11, 17)
        assert tracked.snapshot == "second"
        assert tracked.session == "pylsp"

    def test_empty_range_widened(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        (tracked,) = publish(registry, pylsp, view, make_diagnostic((0, 3), (0, 3)))
        assert (tracked.start, tracked.end) == (3, 4)

    def test_publish_replaces_previous(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((0, 0), (0, 5), "old"))
        publish(registry, pylsp, view, make_diagnostic((2, 0), (2, 5), "new"))
        assert [d.message for d in registry.get(PATH).merged_diagnostics()] == ["new"]

    def test_reordered_delivery_last_write_wins(self, two_sessions) -> None:
        """A stale publish arriving last replaces a fresher one."""
        registry, view, pylsp, *_ = two_sessions
        fresh = {"uri": URI, "version": 2, "diagnostics": [make_diagnostic((2, 0), (2, 5), "fresh")]}
        stale = {"uri": URI, "version": 1, "diagnostics": [make_diagnostic((0, 0), (0, 5), "stale")]}
        for params in (fresh, stale):
            registry.publish(
                pylsp.name, PublishDiagnosticsParams.model_validate(params), view.document, pylsp.encoding
            )
        assert [d.message for d in registry.get(PATH).merged_diagnostics()] == ["stale"]

    def test_empty_publish_clears(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((0, 0), (0, 5)))
        assert registry.has_diagnostics(PATH)
        publish(registry, pylsp, view)
        assert not registry.has_diagnostics(PATH)

    def test_publish_for_unopened_document_ignored(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        result = publish(registry, pylsp, view, make_diagnostic((0, 0), (0, 1)), uri="file:///other.py")
        assert result is None
        assert registry.get("/other.py") is None

    def test_diagnostics_on_line(self, two_sessions) -> None:
        registry, view, pylsp, ruff, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((1, 0), (1, 2), "a"), make_diagnostic((2, 0), (2, 1), "b"))
        publish(registry, ruff, view, make_diagnostic((1, 4), (1, 6), "c"))
        assert [d.message for d in registry.diagnostics_on_line(PATH, 1)] == ["a", "c"]
        assert registry.diagnostics_on_line(PATH, 0) == []

    def test_highlights_only_while_text_unchanged(self, two_sessions) -> None:
        registry, view, pylsp, *_ = two_sessions
        publish(registry, pylsp, view, make_diagnostic((0, 0), (0, 5)), make_diagnostic((1, 0), (2, 2)))
        assert registry.highlights(PATH, view.document) == [(0, 5, 1), (11, 25, 1)]
        assert registry.highlights(PATH, view.document, mode="line") == [(0, 1), (1, 1), (2, 1)]

        view.document.insert(0, "X")
        assert registry.highlights(PATH, view.document) == []

    def test_highlight_severity(self, two_sessions) -> None:
        """Missing or unknown severities highlight as errors; lines take the most severe."""
        registry, view, pylsp, *_ = two_sessions
        publish(
            registry,
            pylsp,
            view,
            make_diagnostic((0, 0), (0, 5), severity=2),
            make_diagnostic((0, 6), (0, 10), severity=4),
            make_diagnostic((1, 0), (1, 6), severity=None),
            make_diagnostic((2, 0), (2, 5), severity=9),
        )
        spans = registry.highlights(PATH, view.document)
        assert spans == [(0, 5, 2), (6, 10, 4), (11, 17, 1), (23, 28, 1)]
        assert spans[1].severity is DiagnosticSeverity.HINT
        assert registry.highlights(PATH, view.document, mode="line") == [
            LineHighlight(0, DiagnosticSeverity.WARNING),
            LineHighlight(1, DiagnosticSeverity.ERROR),
            LineHighlight(2, DiagnosticSeverity.ERROR),
        ]
