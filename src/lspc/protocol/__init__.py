"""LSP protocol definitions: types, method enums, capabilities and URIs."""

from lspc.protocol.capabilities import CLIENT_CAPABILITIES
from lspc.protocol.methods import (
    ClientNotification,
    ClientRequest,
    ErrorCode,
    ServerNotification,
    ServerRequest,
    lookup,
)
from lspc.protocol.types import (
    Diagnostic,
    Location,
    LocationLink,
    Position,
    Range,
    TextEdit,
    WorkspaceEdit,
)
from lspc.protocol.uri import path_to_uri, uri_to_path

__all__ = [
    "CLIENT_CAPABILITIES",
    "ClientNotification",
    "ClientRequest",
    "ErrorCode",
    "ServerNotification",
    "ServerRequest",
    "lookup",
    "Diagnostic",
    "Location",
    "LocationLink",
    "Position",
    "Range",
    "TextEdit",
    "WorkspaceEdit",
    "path_to_uri",
    "uri_to_path",
]
