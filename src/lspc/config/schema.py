"""Configuration schema dataclasses for lspc.

Defines the structure of the engine configuration at all levels (built-in,
system, user, environment). Fields carry their defaults so partial YAML
files merge into a complete config.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Any

DEFAULT_CLIENT_NAME = "lspc"
DEFAULT_CLIENT_VERSION = "0.1.0"


@dataclass
class ClientInfo:
    """Identity reported to servers in initialize.clientInfo."""

    name: str = DEFAULT_CLIENT_NAME
    version: str = DEFAULT_CLIENT_VERSION


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class DiagnosticStyles:
    """Editor style strings for highlighted diagnostics, by severity."""

    error: str = "back:#e3514f"
    warning: str = "back:#e5c07b"
    information: str = "back:#61afef"
    hint: str = "back:#98c379"

    def for_severity(self, severity: int | None) -> str:
        """Style of an LSP severity; unknown severities use the error style."""
        styles = {2: self.warning, 3: self.information, 4: self.hint}
        if severity is None:
            return self.error
        return styles.get(severity, self.error)


@dataclass
class ServerConfig:
    """Static configuration of one language server.

    Example config.yaml:
        servers:
          python:
            name: python-lsp-server
            command: pylsp --check-parent-process
            roots: [pyproject.toml, setup.py]
            settings:
              pylsp:
                plugins:
                  pycodestyle: {maxLineLength: 100}
    """

    syntax: str  # Editor syntax the server is used for
    name: str  # Server identity, also the default settings section
    command: str  # Shell-style command line
    settings: dict[str, Any] | None = None  # Global settings tree
    init_options: Any = None  # initializationOptions
    roots: list[str] = field(default_factory=list)  # Root marker globs
    formatting_options: dict[str, Any] | None = None

    @property
    def argv(self) -> list[str]:
        return shlex.split(self.command)

    @property
    def executable(self) -> str:
        argv = self.argv
        return argv[0] if argv else ""


@dataclass
class EngineConfig:
    """Root configuration object.

    Example config.yaml:
        client: {name: lspc, version: 0.1.0}
        autostart: true
        highlight_diagnostics: range
        diagnostic_styles: {error: "back:red", hint: "fore:green"}
        message_level: 3
        logging: {level: INFO, file: ~/.cache/lspc.log}
    """

    client: ClientInfo = field(default_factory=ClientInfo)
    autostart: bool = True  # Start a server when a view of its syntax opens
    highlight_diagnostics: str | None = None  # None, "range" or "line"
    diagnostic_styles: DiagnosticStyles = field(default_factory=DiagnosticStyles)
    message_level: int = 3  # Show window/showMessage up to this type
    menu_cmd: str = "vis-menu -l 10"  # Choices on stdin, selection on stdout
    confirm_cmd: str = "vis-menu"  # Receives "no\nyes" and a -p prompt
    workspace_edit_remember_cursor: bool = True
    fallback_dirname_as_root: bool = False
    universal_root_globs: list[str] = field(default_factory=lambda: [".git", ".hg"])
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    servers: dict[str, ServerConfig] = field(default_factory=dict)

    # Extension point for unknown top-level keys
    extra: dict[str, Any] = field(default_factory=dict)
