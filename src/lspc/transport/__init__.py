"""Transport layer: LSP framing over a language server's stdio."""

from lspc.transport.framing import (
    MessageFramer,
    decode_body,
    encode_message,
    parse_header,
)
from lspc.transport.process import (
    ProcessEvent,
    ProcessEventKind,
    ProcessHandle,
    ServerProcess,
)

__all__ = [
    "MessageFramer",
    "decode_body",
    "encode_message",
    "parse_header",
    "ProcessEvent",
    "ProcessEventKind",
    "ProcessHandle",
    "ServerProcess",
]
