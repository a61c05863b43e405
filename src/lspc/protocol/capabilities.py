"""Client capabilities sent with initialize, and server capability checks."""

from __future__ import annotations

from typing import Any

from lspc.protocol.methods import ClientRequest

# Ask servers for plaintext completion, hover and signature documentation
SUPPORTED_MARKUP_KINDS = ["plaintext"]

# Position encodings we can translate, in order of preference
POSITION_ENCODINGS = ["utf-32", "utf-16"]
DEFAULT_POSITION_ENCODING = "utf-16"

_GOTO_CAPABILITIES = {"dynamicRegistration": False, "linkSupport": True}

CLIENT_CAPABILITIES: dict[str, Any] = {
    "general": {"positionEncodings": POSITION_ENCODINGS},
    "workspace": {
        "configuration": True,
        "didChangeConfiguration": {"dynamicRegistration": False},
    },
    "textDocument": {
        "synchronization": {"dynamicRegistration": False, "didSave": True},
        "completion": {
            "dynamicRegistration": False,
            "completionItem": {"documentationFormat": SUPPORTED_MARKUP_KINDS},
        },
        "hover": {"dynamicRegistration": False, "contentFormat": SUPPORTED_MARKUP_KINDS},
        "signatureHelp": {
            "dynamicRegistration": False,
            "signatureInformation": {"documentationFormat": SUPPORTED_MARKUP_KINDS},
        },
        "declaration": dict(_GOTO_CAPABILITIES),
        "definition": dict(_GOTO_CAPABILITIES),
        "typeDefinition": dict(_GOTO_CAPABILITIES),
        "implementation": dict(_GOTO_CAPABILITIES),
        "references": {"dynamicRegistration": False},
        "rename": {
            "dynamicRegistration": False,
            "prepareSupport": False,
            "honorsChangeAnnotations": False,
        },
        "formatting": {"dynamicRegistration": False},
    },
    "window": {"workDoneProgress": False, "showDocument": {"support": False}},
}


def supports(capabilities: dict[str, Any], request: ClientRequest) -> bool:
    """Check whether server capabilities announce a provider for request.

    A provider is announced by true or an options object (possibly empty)
    under the request's provider key.
    """
    provider = request.provider
    if provider is None:
        return True
    value = capabilities.get(provider)
    return value is not None and value is not False


def wants_save_notifications(capabilities: dict[str, Any]) -> bool:
    """Check textDocumentSync.save in the server capabilities."""
    sync = capabilities.get("textDocumentSync")
    # A bare TextDocumentSyncKind number does not request didSave
    if not isinstance(sync, dict):
        return False
    return bool(sync.get("save"))


def negotiated_encoding(capabilities: dict[str, Any]) -> str:
    """Position encoding chosen by the server, or the protocol default."""
    encoding = capabilities.get("positionEncoding")
    if encoding in POSITION_ENCODINGS:
        return encoding
    return DEFAULT_POSITION_ENCODING
