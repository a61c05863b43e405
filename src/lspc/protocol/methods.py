"""Closed sets of the LSP methods the client speaks.

Each direction has its own enum:

- ClientRequest: calls we issue and whose responses we handle
- ClientNotification: notifications we send
- ServerRequest: calls from the server we must answer
- ServerNotification: notifications from the server we handle

Methods outside these sets fall through to a single default arm in the
dispatcher (MethodNotFound for server calls, ignored for notifications).
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter

from lspc.protocol.types import (
    CompletionItem,
    CompletionList,
    ConfigurationParams,
    Hover,
    InitializeResult,
    Location,
    LocationLink,
    LogMessageParams,
    PublishDiagnosticsParams,
    ShowMessageParams,
    SignatureHelp,
    TextEdit,
    WorkspaceEdit,
)


class ErrorCode(IntEnum):
    """JSON-RPC and LSP error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_NOT_INITIALIZED = -32002
    UNKNOWN_ERROR_CODE = -32001
    REQUEST_CANCELLED = -32800
    CONTENT_MODIFIED = -32801


class ClientRequest(str, Enum):
    """Requests sent from the client to a server."""

    INITIALIZE = "initialize"
    SHUTDOWN = "shutdown"
    DECLARATION = "textDocument/declaration"
    DEFINITION = "textDocument/definition"
    TYPE_DEFINITION = "textDocument/typeDefinition"
    IMPLEMENTATION = "textDocument/implementation"
    REFERENCES = "textDocument/references"
    HOVER = "textDocument/hover"
    SIGNATURE_HELP = "textDocument/signatureHelp"
    COMPLETION = "textDocument/completion"
    RENAME = "textDocument/rename"
    FORMATTING = "textDocument/formatting"

    @property
    def provider(self) -> str | None:
        """Server capability key announcing support for this request."""
        return _PROVIDERS.get(self)

    @property
    def is_goto(self) -> bool:
        """True for requests answered with locations to jump to."""
        return self in GOTO_REQUESTS

    @property
    def short_name(self) -> str:
        """Method name without its "textDocument/" prefix."""
        return self.value.rpartition("/")[2]

    def parse_result(self, result: Any) -> Any:
        """Validate a raw result into this request's typed result shape."""
        return _RESULT_ADAPTERS[self].validate_python(result)


class ClientNotification(str, Enum):
    """Notifications sent from the client to a server."""

    INITIALIZED = "initialized"
    EXIT = "exit"
    DID_OPEN = "textDocument/didOpen"
    DID_CHANGE = "textDocument/didChange"
    DID_CLOSE = "textDocument/didClose"
    DID_SAVE = "textDocument/didSave"
    DID_CHANGE_CONFIGURATION = "workspace/didChangeConfiguration"


class ServerRequest(str, Enum):
    """Requests a server may send that the client answers."""

    WORKSPACE_CONFIGURATION = "workspace/configuration"

    def parse_params(self, params: Any) -> BaseModel:
        return _SERVER_REQUEST_PARAMS[self].model_validate(params or {})


class ServerNotification(str, Enum):
    """Notifications from a server the client handles."""

    PUBLISH_DIAGNOSTICS = "textDocument/publishDiagnostics"
    SHOW_MESSAGE = "window/showMessage"
    LOG_MESSAGE = "window/logMessage"

    def parse_params(self, params: Any) -> BaseModel:
        return _SERVER_NOTIFICATION_PARAMS[self].model_validate(params or {})


GOTO_REQUESTS = frozenset(
    {
        ClientRequest.DECLARATION,
        ClientRequest.DEFINITION,
        ClientRequest.TYPE_DEFINITION,
        ClientRequest.IMPLEMENTATION,
        ClientRequest.REFERENCES,
    }
)

_PROVIDERS: dict[ClientRequest, str] = {
    ClientRequest.DECLARATION: "declarationProvider",
    ClientRequest.DEFINITION: "definitionProvider",
    ClientRequest.TYPE_DEFINITION: "typeDefinitionProvider",
    ClientRequest.IMPLEMENTATION: "implementationProvider",
    ClientRequest.REFERENCES: "referencesProvider",
    ClientRequest.HOVER: "hoverProvider",
    ClientRequest.SIGNATURE_HELP: "signatureHelpProvider",
    ClientRequest.COMPLETION: "completionProvider",
    ClientRequest.RENAME: "renameProvider",
    ClientRequest.FORMATTING: "documentFormattingProvider",
}

_GOTO_RESULT = TypeAdapter(Location | list[Location | LocationLink] | None)

_RESULT_ADAPTERS: dict[ClientRequest, TypeAdapter[Any]] = {
    ClientRequest.INITIALIZE: TypeAdapter(InitializeResult),
    ClientRequest.SHUTDOWN: TypeAdapter(Any),
    ClientRequest.DECLARATION: _GOTO_RESULT,
    ClientRequest.DEFINITION: _GOTO_RESULT,
    ClientRequest.TYPE_DEFINITION: _GOTO_RESULT,
    ClientRequest.IMPLEMENTATION: _GOTO_RESULT,
    ClientRequest.REFERENCES: TypeAdapter(list[Location] | None),
    ClientRequest.HOVER: TypeAdapter(Hover | None),
    ClientRequest.SIGNATURE_HELP: TypeAdapter(SignatureHelp | None),
    ClientRequest.COMPLETION: TypeAdapter(CompletionList | list[CompletionItem] | None),
    ClientRequest.RENAME: TypeAdapter(WorkspaceEdit | None),
    ClientRequest.FORMATTING: TypeAdapter(list[TextEdit] | None),
}

_SERVER_REQUEST_PARAMS: dict[ServerRequest, type[BaseModel]] = {
    ServerRequest.WORKSPACE_CONFIGURATION: ConfigurationParams,
}

_SERVER_NOTIFICATION_PARAMS: dict[ServerNotification, type[BaseModel]] = {
    ServerNotification.PUBLISH_DIAGNOSTICS: PublishDiagnosticsParams,
    ServerNotification.SHOW_MESSAGE: ShowMessageParams,
    ServerNotification.LOG_MESSAGE: LogMessageParams,
}

E = TypeVar("E", bound=Enum)


def lookup(kind: type[E], method: str | None) -> E | None:
    """Map a wire method name onto a member of kind, or None if unknown."""
    if method is None:
        return None
    try:
        return kind(method)
    except ValueError:
        return None
