"""Exception taxonomy for lspc.

Every error the engine raises derives from LSPCError so the engine's
command wrappers can funnel them into a single report path:

- FramingError: malformed or missing Content-Length header
- ProtocolError: inbound traffic that violates JSON-RPC (unknown response id)
- ResponseError: a JSON-RPC error object returned for one of our requests
- CapabilityError: the server does not advertise a provider for a method
- LifecycleError: no usable server (not running, not initialized, missing binary)
"""

from __future__ import annotations

from typing import Any


class LSPCError(Exception):
    """Base exception for lspc errors."""

    pass


class FramingError(LSPCError):
    """Error in LSP message framing.

    Raised when:
    - Content-Length header is missing
    - Content-Length value is not a valid integer
    - Content-Length value is negative
    - Header format is malformed
    """

    pass


class ProtocolError(LSPCError):
    """Inbound message that cannot be matched or decoded."""

    pass


class ResponseError(LSPCError):
    """JSON-RPC error object received in response to a request."""

    def __init__(self, method: str, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"{message} ({code}) occurred during {method}")
        self.method = method
        self.code = code
        self.message = message
        self.data = data


class CapabilityError(LSPCError):
    """Server has no provider for the requested method."""

    pass


class LifecycleError(LSPCError):
    """No language server usable for the request."""

    pass


class ServerNotRunningError(LifecycleError):
    """No language server running for a syntax."""

    pass


class ServerNotInitializedError(LifecycleError):
    """Language server has not answered initialize yet."""

    pass


class ExecutableNotFoundError(LifecycleError):
    """Configured language server binary is not on PATH."""

    def __init__(self, syntax: str, executable: str) -> None:
        super().__init__(
            f"Language server for {syntax} configured but {executable} not found"
        )
        self.syntax = syntax
        self.executable = executable
