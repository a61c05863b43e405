"""lspc: Language Server Protocol client engine for text editors."""

__version__ = "0.1.0"

# Public API
from lspc.config import EngineConfig, ServerConfig, get_config, load_config
from lspc.documents import DocumentRegistry, OpenDocument, TrackedDiagnostic
from lspc.engine import Engine
from lspc.errors import (
    CapabilityError,
    FramingError,
    LifecycleError,
    LSPCError,
    ProtocolError,
    ResponseError,
)
from lspc.session import LifecycleState, ServerSession

__all__ = [
    # Main entry point
    "Engine",
    # Config
    "EngineConfig",
    "ServerConfig",
    "load_config",
    "get_config",
    # Sessions and documents
    "LifecycleState",
    "ServerSession",
    "DocumentRegistry",
    "OpenDocument",
    "TrackedDiagnostic",
    # Errors
    "LSPCError",
    "FramingError",
    "ProtocolError",
    "ResponseError",
    "CapabilityError",
    "LifecycleError",
]
