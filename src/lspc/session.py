"""Language server session lifecycle.

A ServerSession wraps one server process:

    STOPPED -> STARTING -> INITIALIZING -> READY -> SHUTTING_DOWN -> STOPPED

``start`` attaches the process and issues ``initialize``. The initialize
response stores the server capabilities, sends ``initialized`` and pushes
the effective settings, after which the session is READY. Process exit or
signal moves any state to STOPPED.

Everything the session learns that concerns the editor (responses,
diagnostics, messages, errors) is handed to a SessionListener, normally
the Engine.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import ValidationError

from lspc.config.schema import ClientInfo, ServerConfig
from lspc.config.settings import effective_settings
from lspc.errors import (
    CapabilityError,
    LifecycleError,
    LSPCError,
    ProtocolError,
    ResponseError,
    ServerNotInitializedError,
)
from lspc.logging import VERBOSE, get_logger, server_logger
from lspc.protocol.capabilities import CLIENT_CAPABILITIES, negotiated_encoding, supports
from lspc.protocol.methods import (
    ClientNotification,
    ClientRequest,
    ServerNotification,
    ServerRequest,
    lookup,
)
from lspc.protocol.types import (
    ConfigurationParams,
    InitializeResult,
    LogMessageParams,
    MessageType,
    PublishDiagnosticsParams,
    ShowMessageParams,
)
from lspc.protocol.uri import uri_to_path
from lspc.rpc import InFlightRequest, RpcCorrelator
from lspc.transport.framing import MessageFramer, decode_body
from lspc.transport.process import ProcessEvent, ProcessEventKind, ProcessHandle

if TYPE_CHECKING:
    from lspc.documents import DocumentRegistry
    from lspc.editor import View

log = get_logger("session")

_LOG_LEVELS = {
    MessageType.ERROR: logging.ERROR,
    MessageType.WARNING: logging.WARNING,
    MessageType.INFO: logging.INFO,
    MessageType.LOG: VERBOSE,
}


class LifecycleState(Enum):
    """Lifecycle of a language server session."""

    STOPPED = "stopped"
    STARTING = "starting"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"


class SessionListener(Protocol):
    """Receives what a session delivers to the editor side."""

    def session_ready(self, session: ServerSession) -> None: ...

    def session_stopped(self, session: ServerSession, reason: str) -> None: ...

    def handle_response(
        self, session: ServerSession, request: InFlightRequest, method: ClientRequest, result: Any
    ) -> None: ...

    def handle_error(self, session: ServerSession, error: LSPCError) -> None: ...

    def publish_diagnostics(self, session: ServerSession, params: PublishDiagnosticsParams) -> None: ...

    def show_message(self, session: ServerSession, params: ShowMessageParams) -> None: ...


ReadyCallback = Callable[["ServerSession"], None]


class ServerSession:
    """One running language server.

    Args:
        config: Static server configuration.
        listener: Receiver of responses, diagnostics and errors.
        documents: Registry of open documents shared by all sessions.
        client: Identity reported in initialize.
        user_settings_path: Override for the user settings file.
    """

    def __init__(
        self,
        config: ServerConfig,
        listener: SessionListener,
        documents: DocumentRegistry,
        client: ClientInfo | None = None,
        user_settings_path: Path | None = None,
    ) -> None:
        self.config = config
        self.listener = listener
        self.documents = documents
        self.client = client or ClientInfo()
        self.user_settings_path = user_settings_path

        self.state = LifecycleState.STOPPED
        self.process: ProcessHandle | None = None
        self.root_uri: str | None = None
        self.capabilities: dict[str, Any] = {}
        self.server_info: dict[str, Any] | None = None

        self.framer = MessageFramer()
        self.rpc = RpcCorrelator(config.name, self._write, self._on_response)
        self.rpc.on_request(ServerRequest.WORKSPACE_CONFIGURATION, self._workspace_configuration)
        self.rpc.on_notification(ServerNotification.PUBLISH_DIAGNOSTICS, self._publish_diagnostics)
        self.rpc.on_notification(ServerNotification.SHOW_MESSAGE, self._show_message)
        self.rpc.on_notification(ServerNotification.LOG_MESSAGE, self._log_message)

        self._ready_callbacks: list[ReadyCallback] = []

    def __repr__(self) -> str:
        return f"ServerSession({self.name!r}, state={self.state.value})"

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_ready(self) -> bool:
        return self.state is LifecycleState.READY

    @property
    def encoding(self) -> str:
        """Position encoding negotiated with the server."""
        return negotiated_encoding(self.capabilities)

    @property
    def root_path(self) -> str | None:
        return uri_to_path(self.root_uri) if self.root_uri else None

    def on_ready(self, callback: ReadyCallback) -> Callable[[], None]:
        """Register a callback fired when the session becomes READY.

        Returns:
            A function to unregister the callback.
        """
        self._ready_callbacks.append(callback)

        def unregister() -> None:
            if callback in self._ready_callbacks:
                self._ready_callbacks.remove(callback)

        return unregister

    # -- outbound --

    def _write(self, data: bytes) -> None:
        if self.process is None:
            raise LifecycleError(f"{self.name} has no process attached")
        self.process.write(data)

    def send(self, method: ClientNotification, params: Any = None) -> None:
        self.rpc.send(method, params)

    def call(
        self,
        method: ClientRequest,
        params: Any = None,
        context: Any = None,
        view_id: int | None = None,
    ) -> int:
        return self.rpc.call(method, params, context=context, view_id=view_id)

    # -- lifecycle --

    def start(self, process: ProcessHandle, root_uri: str | None) -> int:
        """Attach a spawned process and send initialize.

        Returns:
            The id of the initialize request.
        """
        if self.state is not LifecycleState.STOPPED:
            raise LifecycleError(f"{self.name} is already {self.state.value}")

        self.state = LifecycleState.STARTING
        self.process = process
        self.root_uri = root_uri

        params: dict[str, Any] = {
            "processId": os.getpid(),
            "clientInfo": {"name": self.client.name, "version": self.client.version},
            "rootUri": root_uri,
            "capabilities": CLIENT_CAPABILITIES,
        }
        if self.config.init_options is not None:
            params["initializationOptions"] = self.config.init_options

        request_id = self.call(ClientRequest.INITIALIZE, params)
        self.state = LifecycleState.INITIALIZING
        log.info("Starting %s (root %s)", self.name, root_uri)
        return request_id

    def shutdown(self) -> None:
        """Ask the server to shut down; exit follows the shutdown response."""
        if self.state is not LifecycleState.READY:
            raise ServerNotInitializedError(
                f"Language server {self.name} not initialized yet. Please try again"
            )
        self.state = LifecycleState.SHUTTING_DOWN
        self.call(ClientRequest.SHUTDOWN)

    def terminate(self) -> None:
        """Best-effort shutdown followed by closing the process input."""
        if self.state is LifecycleState.READY:
            self.shutdown()
        if self.process is not None:
            self.process.close()

    def _initialized(self, result: InitializeResult) -> None:
        self.capabilities = result.capabilities
        self.server_info = result.server_info.to_wire() if result.server_info else None

        self.send(ClientNotification.INITIALIZED, {})

        # Pushing settings after initialization is an unwritten convention
        # most servers honor
        settings = self.effective_settings()
        if settings is not None:
            self.send(ClientNotification.DID_CHANGE_CONFIGURATION, {"settings": settings})

        self.state = LifecycleState.READY
        log.info("%s initialized", self.name)
        self.listener.session_ready(self)
        for callback in list(self._ready_callbacks):
            callback(self)

    def _finish_shutdown(self) -> None:
        self.send(ClientNotification.EXIT)
        if self.process is not None:
            self.process.close()
        self._stopped("shut down")

    def _abandon(self, reason: str) -> None:
        """Close a server that never became ready."""
        if self.process is not None:
            self.process.close()
        self._stopped(reason)

    def _stopped(self, reason: str) -> None:
        if self.state is LifecycleState.STOPPED:
            return
        self.state = LifecycleState.STOPPED
        if self.rpc.in_flight:
            log.debug("Abandoning %d in-flight requests of %s", len(self.rpc.in_flight), self.name)
            self.rpc.in_flight.clear()
        self.framer.reset()
        log.info("%s %s", self.name, reason)
        self.listener.session_stopped(self, reason)

    # -- inbound --

    def handle_process_event(self, event: ProcessEvent) -> None:
        """Process callback: feed stdout data, log stderr, observe exit."""
        if event.kind is ProcessEventKind.DATA:
            self.receive(event.data)
        elif event.kind is ProcessEventKind.STDERR:
            stderr = event.data.decode("utf-8", "replace").rstrip()
            server_logger(self.name).log(VERBOSE, "stderr: %s", stderr)
        elif event.kind is ProcessEventKind.EXIT:
            self._stopped(f"exited with: {event.code}")
        elif event.kind is ProcessEventKind.SIGNAL:
            self._stopped(f"received signal: {event.code}")

    def receive(self, data: bytes) -> None:
        """Feed bytes from the server's stdout and dispatch complete messages."""
        try:
            self.framer.feed(data)
        except LSPCError as e:
            self.listener.handle_error(self, e)
        # Messages completed before a framing error are still dispatched
        for body in self.framer.drain():
            try:
                self.rpc.on_inbound(decode_body(body))
            except LSPCError as e:
                self.listener.handle_error(self, e)

    def _on_response(self, request: InFlightRequest, result: Any, error: ResponseError | None) -> None:
        method = lookup(ClientRequest, request.method)
        if method is None:
            log.warning("Received response to unknown method %s", request.method)
            return

        if error is not None:
            if method is ClientRequest.SHUTDOWN:
                self._finish_shutdown()
            self.listener.handle_error(self, error)
            if method is ClientRequest.INITIALIZE:
                self._abandon(f"failed to initialize: {error.message}")
            return

        try:
            parsed = method.parse_result(result)
        except ValidationError as e:
            raise ProtocolError(f"Invalid {method.value} result from {self.name}: {e}") from e

        if method is ClientRequest.INITIALIZE:
            self._initialized(parsed)
        elif method is ClientRequest.SHUTDOWN:
            self._finish_shutdown()
        else:
            self.listener.handle_response(self, request, method, parsed)

    def _publish_diagnostics(self, params: PublishDiagnosticsParams) -> None:
        self.listener.publish_diagnostics(self, params)

    def _show_message(self, params: ShowMessageParams) -> None:
        self.listener.show_message(self, params)

    def _log_message(self, params: LogMessageParams) -> None:
        level = _LOG_LEVELS.get(params.type, VERBOSE)
        server_logger(self.name).log(level, "%s: %s", self.name, params.message)

    # -- requests --

    def require_ready(self) -> None:
        if self.state is not LifecycleState.READY:
            raise ServerNotInitializedError(
                f"Language server {self.name} not initialized yet. Please try again"
            )

    def check_provider(self, method: ClientRequest) -> None:
        """Raise CapabilityError unless the server provides method."""
        if not supports(self.capabilities, method):
            raise CapabilityError(
                f"language server {self.name} does not provide {method.short_name}"
            )

    def call_text_document_method(
        self,
        method: ClientRequest,
        params: dict[str, Any],
        view: View,
        context: Any = None,
    ) -> int:
        """Resynchronize the view's document, then issue a textDocument request.

        The document is opened first if this session does not hold it yet.

        Raises:
            CapabilityError: If the server has no provider for method; nothing
                is sent in that case.
        """
        self.require_ready()
        self.check_provider(method)
        if not self.documents.is_open(self.name, view.document.path):
            self.documents.open(self, view)
        self.documents.resync(self, view.document)
        return self.call(method, params, context=context, view_id=view.view_id)

    # -- settings --

    def effective_settings(self, section: str | None = None, scope: str | None = None) -> Any:
        """Settings for section, scoped to scope or the session root."""
        return effective_settings(
            self.config.settings,
            section,
            scope or self.root_path,
            self.user_settings_path,
        )

    def _workspace_configuration(self, params: ConfigurationParams) -> list[Any]:
        results = []
        for item in params.items:
            scope = None
            if item.scope_uri:
                try:
                    scope = uri_to_path(item.scope_uri)
                except ValueError:
                    log.warning("Ignoring non-file scope %s", item.scope_uri)
            results.append(self.effective_settings(item.section, scope))
        return results
