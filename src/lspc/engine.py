"""The engine: running sessions, open documents and editor commands.

All state lives on an Engine instance: the running sessions by server
name, the document registry and the position history. Commands are
invoked by the host editor; none of them waits for a server response.
Responses arrive through the session callbacks (SessionListener) and are
routed to the handlers in lspc.features.

Every command and callback funnels failures into Engine.report, which logs
and shows a short message. Nothing raises into the host.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, cast

from lspc.config.paths import find_upwards
from lspc.config.schema import EngineConfig, ServerConfig
from lspc.documents import DocumentRegistry, LineHighlight, SpanHighlight
from lspc.editor import Document, Editor, View
from lspc.errors import (
    ExecutableNotFoundError,
    LifecycleError,
    LSPCError,
    ServerNotRunningError,
)
from lspc.features import RESPONSE_HANDLERS, CursorContext, GotoContext, text_document_position
from lspc.logging import get_logger
from lspc.protocol.methods import ClientNotification, ClientRequest
from lspc.protocol.types import PublishDiagnosticsParams, ShowMessageParams
from lspc.protocol.uri import path_to_uri, uri_to_path
from lspc.rpc import InFlightRequest
from lspc.session import LifecycleState, ServerSession
from lspc.text import UTF32, LineIndex
from lspc.transport.process import ProcessFactory, ServerProcess

log = get_logger("engine")

F = TypeVar("F", bound=Callable[..., Any])

DIAGNOSTICS_HEADER = "--- diagnostics ---"
MESSAGE_HEADER = "--- language server message ---"


def reported(func: F) -> F:
    """Report LSPCErrors (and log unexpected errors) instead of raising."""
    if asyncio.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(self: Engine, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except LSPCError as e:
                self.report(e)
            except Exception as e:
                log.exception("Unexpected error in %s", func.__name__)
                self.report(e)
            return None

        return cast(F, async_wrapper)

    @functools.wraps(func)
    def wrapper(self: Engine, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(self, *args, **kwargs)
        except LSPCError as e:
            self.report(e)
        except Exception as e:
            log.exception("Unexpected error in %s", func.__name__)
            self.report(e)
        return None

    return cast(F, wrapper)


@dataclass(frozen=True)
class DocPosition:
    """A place in a file, 0-based line and character column."""

    path: str
    line: int
    column: int


class Engine:
    """Language server client engine bound to one editor.

    Args:
        config: Engine configuration; ``config.servers`` is modified when a
            configured executable turns out to be missing.
        editor: Host editor services.
        process_factory: Spawns server processes.
        user_settings_path: Override for the user settings file.
    """

    def __init__(
        self,
        config: EngineConfig,
        editor: Editor,
        process_factory: ProcessFactory = ServerProcess.spawn,
        user_settings_path: Path | None = None,
    ) -> None:
        self.config = config
        self.editor = editor
        self.running: dict[str, ServerSession] = {}
        self.registry = DocumentRegistry(self.running)
        self.history: list[DocPosition] = []
        self._process_factory = process_factory
        self._user_settings_path = user_settings_path

    # -- reporting --

    def report(self, error: Exception | str, level: int = logging.ERROR) -> None:
        """Log a problem and show it to the user."""
        message = str(error)
        log.log(level, "%s", message)
        self.editor.info(message)

    # -- sessions --

    def server_config(self, syntax: str) -> ServerConfig:
        server = self.config.servers.get(syntax)
        if server is None:
            raise LifecycleError(f"No language server available for {syntax}")
        return server

    def find_root(self, server: ServerConfig, path: str | None) -> str | None:
        """Project root of path as a file URI, or None."""
        if not path:
            return None
        start = Path(path).parent
        root = find_upwards([*server.roots, *self.config.universal_root_globs], start)
        if root is None and self.config.fallback_dirname_as_root:
            root = start
        return path_to_uri(str(root)) if root is not None else None

    def _active_view(self) -> View:
        view = self.editor.active_view()
        if view is None:
            raise LSPCError("No active view")
        return view

    def _active_path(self) -> str | None:
        view = self.editor.active_view()
        return view.document.path if view is not None else None

    @reported
    async def start_server(self, syntax: str | None = None) -> ServerSession | None:
        """Spawn and initialize the language server configured for syntax."""
        if syntax is None:
            view = self.editor.active_view()
            syntax = view.syntax if view is not None else None
        if not syntax:
            raise LifecycleError("no language specified")

        server = self.server_config(syntax)
        if shutil.which(server.executable) is None:
            # Forget the server so it is not tried again
            del self.config.servers[syntax]
            raise ExecutableNotFoundError(syntax, server.executable)

        if server.name in self.running:
            raise LifecycleError(f"Already a language server running for {syntax}")

        session = ServerSession(
            server,
            self,
            self.registry,
            client=self.config.client,
            user_settings_path=self._user_settings_path,
        )
        root_uri = self.find_root(server, self._active_path())
        self.running[server.name] = session
        try:
            process = await self._process_factory(
                server.name,
                server.argv,
                session.handle_process_event,
                cwd=uri_to_path(root_uri) if root_uri else None,
            )
        except OSError as e:
            del self.running[server.name]
            raise LifecycleError(f"Cannot start {server.name}: {e}") from e

        session.start(process, root_uri)
        return session

    def get_usable_session(self, view: View | None, syntax: str | None = None) -> ServerSession:
        """The initialized session serving syntax (or the view's syntax).

        Raises:
            LifecycleError: If no server runs for the syntax or it is not
                initialized yet.
        """
        syntax = syntax or (view.syntax if view is not None else None)
        if not syntax:
            # Fall back to a session already holding the document
            path = view.document.path if view is not None else None
            doc = self.registry.get(path) if path else None
            names = sorted(doc.sessions) if doc is not None else []
            if not names or names[0] not in self.running:
                raise LifecycleError("No syntax provided and no server is running")
            session = self.running[names[0]]
        else:
            server = self.server_config(syntax)
            session = self.running.get(server.name)
            if session is None:
                raise ServerNotRunningError(f"No language server running for {syntax}")

        session.require_ready()
        return session

    @reported
    def shutdown_server(self, syntax: str | None = None) -> None:
        session = self.get_usable_session(self.editor.active_view(), syntax)
        session.shutdown()

    def shutdown_all(self) -> None:
        """Ask every running server to shut down and close its input."""
        for session in list(self.running.values()):
            try:
                session.terminate()
            except LSPCError as e:
                log.warning("Terminating %s: %s", session.name, e)

    # -- document commands --

    @reported
    def open(self, syntax: str | None = None) -> None:
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        self.registry.open(session, view)

    @reported
    def close(self, syntax: str | None = None) -> None:
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        self.registry.close(session, view.document.path)

    def _goto(self, method: ClientRequest, open_mode: str, syntax: str | None) -> int:
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        params = text_document_position(view, session.encoding)
        if method is ClientRequest.REFERENCES:
            params["context"] = {"includeDeclaration": False}
        return session.call_text_document_method(
            method, params, view, context=GotoContext(open_mode)
        )

    @reported
    def definition(self, open_mode: str = "e", syntax: str | None = None) -> int | None:
        return self._goto(ClientRequest.DEFINITION, open_mode, syntax)

    @reported
    def declaration(self, open_mode: str = "e", syntax: str | None = None) -> int | None:
        return self._goto(ClientRequest.DECLARATION, open_mode, syntax)

    @reported
    def type_definition(self, open_mode: str = "e", syntax: str | None = None) -> int | None:
        return self._goto(ClientRequest.TYPE_DEFINITION, open_mode, syntax)

    @reported
    def implementation(self, open_mode: str = "e", syntax: str | None = None) -> int | None:
        return self._goto(ClientRequest.IMPLEMENTATION, open_mode, syntax)

    @reported
    def references(self, open_mode: str = "e", syntax: str | None = None) -> int | None:
        return self._goto(ClientRequest.REFERENCES, open_mode, syntax)

    def _at_cursor(self, method: ClientRequest, syntax: str | None) -> int:
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        params = text_document_position(view, session.encoding)
        return session.call_text_document_method(
            method, params, view, context=CursorContext(view.cursor)
        )

    @reported
    def hover(self, syntax: str | None = None) -> int | None:
        return self._at_cursor(ClientRequest.HOVER, syntax)

    @reported
    def signature_help(self, syntax: str | None = None) -> int | None:
        return self._at_cursor(ClientRequest.SIGNATURE_HELP, syntax)

    @reported
    def completion(self, syntax: str | None = None) -> int | None:
        return self._at_cursor(ClientRequest.COMPLETION, syntax)

    @reported
    def rename(self, new_name: str, syntax: str | None = None) -> int | None:
        if not new_name:
            raise LSPCError("rename usage: <new name> [syntax]")
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        params = text_document_position(view, session.encoding)
        params["newName"] = new_name
        return session.call_text_document_method(ClientRequest.RENAME, params, view)

    @reported
    def format(self, syntax: str | None = None) -> int | None:
        view = self._active_view()
        session = self.get_usable_session(view, syntax)
        options = session.config.formatting_options
        if options is None:
            options = {"tabSize": view.tab_width, "insertSpaces": view.expand_tab}
        params = {
            "textDocument": {"uri": path_to_uri(view.document.path or "")},
            "options": options,
        }
        return session.call_text_document_method(ClientRequest.FORMATTING, params, view)

    # -- diagnostics --

    def _goto_diagnostic(self, reverse: bool) -> None:
        view = self._active_view()
        path = view.document.path
        if not self.registry.has_diagnostics(path):
            raise LSPCError(f"{path or 'window'} has no available diagnostics")
        assert path is not None
        diagnostic = self.registry.next_diagnostic(
            path, view.document, view.cursor, reverse=reverse
        )
        if diagnostic is not None:
            index = LineIndex(view.document.content, diagnostic.encoding)
            view.cursor = index.position_to_offset(diagnostic.range.start)

    @reported
    def next_diagnostic(self) -> None:
        self._goto_diagnostic(reverse=False)

    @reported
    def prev_diagnostic(self) -> None:
        self._goto_diagnostic(reverse=True)

    @reported
    def show_diagnostics(self, line: int | None = None) -> None:
        """Show the diagnostics starting on line (0-based, default: cursor line)."""
        view = self._active_view()
        path = view.document.path
        if not self.registry.has_diagnostics(path):
            raise LSPCError(f"{path or 'window'} has no diagnostics available")
        assert path is not None

        if line is None:
            line = LineIndex(view.document.content).line_of(view.cursor)

        entries = []
        for diagnostic in self.registry.diagnostics_on_line(path, line):
            start = diagnostic.range.start
            entries.append(
                f"{diagnostic.session}: {start.line + 1}:{start.character + 1} "
                f"{diagnostic.code or 'diagnostic'}:{diagnostic.message}"
            )
        if not entries:
            self.report(f"No diagnostics available for line: {line + 1}", logging.WARNING)
            return
        self.editor.show_message("\n".join(entries), header=DIAGNOSTICS_HEADER)

    def diagnostic_highlights(
        self, view: View | None = None
    ) -> list[tuple[SpanHighlight | LineHighlight, str]]:
        """Spans (or lines) the editor should highlight in view, with their style."""
        mode = self.config.highlight_diagnostics
        view = view or self.editor.active_view()
        if not mode or view is None or view.document.path is None:
            return []
        if mode not in ("range", "line"):
            log.warning("Unknown highlight mode %s", mode)
            return []
        styles = self.config.diagnostic_styles
        return [
            (highlight, styles.for_severity(highlight.severity))
            for highlight in self.registry.highlights(view.document.path, view.document, mode)
        ]

    # -- settings --

    @reported
    def reload_settings(self, syntax: str | None = None) -> None:
        session = self.get_usable_session(self.editor.active_view(), syntax)
        settings = session.effective_settings()
        if settings is None:
            self.report(f"{session.name} has no settings", logging.INFO)
            return
        session.send(ClientNotification.DID_CHANGE_CONFIGURATION, {"settings": settings})

    @reported
    def show_settings(self, syntax: str | None = None) -> None:
        view = self.editor.active_view()
        session = self.get_usable_session(view, syntax)
        scope = session.root_path or (view.document.path if view is not None else None)
        settings = session.effective_settings(None, scope)
        self.editor.show_message(json.dumps(settings, indent=2), syntax="json")

    # -- navigation --

    def _position_of(self, view: View) -> DocPosition | None:
        path = view.document.path
        if path is None:
            return None
        position = LineIndex(view.document.content, UTF32).offset_to_position(view.cursor)
        return DocPosition(path, position.line, position.character)

    def open_location(
        self, path: str, line: int, column: int, mode: str = "e", view: View | None = None
    ) -> None:
        """Open a location; mode "e" remembers the current position for back()."""
        view = view or self.editor.active_view()
        if mode == "e" and view is not None:
            if view.document.path != path and view.document.modified:
                if self.editor.confirm("Save currently open file:"):
                    view.document.save()
                else:
                    self.editor.info("Not opening new file, current file has unsaved changes")
                    return
            current = self._position_of(view)
            if current is not None:
                self.history.append(current)
        self.editor.open_location(path, line, column, mode)

    @reported
    def back(self) -> None:
        if not self.history:
            raise LSPCError("Document history is empty")
        position = self.history.pop()
        self.editor.open_location(position.path, position.line, position.column, "e")

    # -- host events --

    @reported
    async def view_opened(self, view: View) -> None:
        """A view was opened; start its server if autostart is enabled."""
        syntax = view.syntax
        if not self.config.autostart or not syntax or syntax not in self.config.servers:
            return
        if self.config.servers[syntax].name in self.running:
            self.document_opened(view)
            return
        await self.start_server(syntax)

    def document_opened(self, view: View) -> None:
        """Open a newly shown document in its ready server, if any."""
        try:
            session = self.get_usable_session(view)
        except LSPCError:
            return
        if not self.registry.is_open(session.name, view.document.path):
            try:
                self.registry.open(session, view)
            except LSPCError as e:
                self.report(e)

    @reported
    def document_closed(self, path: str) -> None:
        self.registry.document_closed(path)

    @reported
    def document_saved(self, document: Document) -> None:
        self.registry.document_saved(document)

    def quit(self) -> None:
        self.shutdown_all()

    # -- SessionListener --

    def session_ready(self, session: ServerSession) -> None:
        view = self.editor.active_view()
        if view is None or view.document.path is None or not view.syntax:
            return
        server = self.config.servers.get(view.syntax)
        if server is None or server.name != session.name:
            return
        if not self.registry.is_open(session.name, view.document.path):
            try:
                self.registry.open(session, view)
            except LSPCError as e:
                self.report(e)

    def session_stopped(self, session: ServerSession, reason: str) -> None:
        if self.running.get(session.name) is session:
            del self.running[session.name]
        self.registry.forget_session(session.name)
        self.editor.info(f"language server {session.name} {reason}")

    @reported
    def handle_response(
        self,
        session: ServerSession,
        request: InFlightRequest,
        method: ClientRequest,
        result: Any,
    ) -> None:
        view = None
        if request.view_id is not None:
            view = self.editor.view(request.view_id)
            if view is None:
                log.info("Dropping %s response: view %s is gone", method.value, request.view_id)
                return

        handler = RESPONSE_HANDLERS.get(method)
        if handler is None:
            log.warning("Received unknown method %s", method.value)
            return
        handler(self, session, request, view, result)

    def handle_error(self, session: ServerSession, error: LSPCError) -> None:
        self.report(error)

    @reported
    def publish_diagnostics(self, session: ServerSession, params: PublishDiagnosticsParams) -> None:
        document = self.editor.document(uri_to_path(params.uri))
        self.registry.publish(session.name, params, document, session.encoding)

    def show_message(self, session: ServerSession, params: ShowMessageParams) -> None:
        if params.type > self.config.message_level:
            return
        self.editor.show_message(f"{params.level_name}: {params.message}", header=MESSAGE_HEADER)

    def session_states(self) -> dict[str, LifecycleState]:
        return {name: session.state for name, session in self.running.items()}
