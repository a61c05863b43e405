"""Built-in language server table and syntax helpers."""

from __future__ import annotations

import os
from typing import Any

_CLANGD = {"name": "clangd", "command": "clangd"}

# Preconfigured servers keyed by editor syntax, in config.yaml form
DEFAULT_SERVERS: dict[str, dict[str, Any]] = {
    "cpp": dict(_CLANGD),
    "ansi_c": dict(_CLANGD),
    # https://github.com/python-lsp/python-lsp-server
    "python": {"name": "python-lsp-server", "command": "pylsp"},
    # https://github.com/LuaLS/lua-language-server
    "lua": {"name": "lua-language-server", "command": "lua-language-server"},
}

# Editor syntax names that differ from the LSP languageId
_LANGUAGE_IDS = {
    "ansi_c": "c",
}

# File extensions used when no syntax is given (CLI)
EXTENSION_TO_SYNTAX = {
    ".c": "ansi_c",
    ".h": "ansi_c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".py": "python",
    ".pyi": "python",
    ".lua": "lua",
}


def language_id_for(syntax: str) -> str:
    """Map an editor syntax onto an LSP languageId."""
    return _LANGUAGE_IDS.get(syntax, syntax)


def syntax_for_path(path: str) -> str | None:
    """Guess the syntax of a file from its extension."""
    _, ext = os.path.splitext(path)
    return EXTENSION_TO_SYNTAX.get(ext.lower())
