"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed EngineConfig dataclass
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from lspc.config.merge import merge_configs
from lspc.config.paths import get_config_paths
from lspc.config.schema import (
    DEFAULT_CLIENT_NAME,
    DEFAULT_CLIENT_VERSION,
    ClientInfo,
    DiagnosticStyles,
    EngineConfig,
    LoggingConfig,
    ServerConfig,
)
from lspc.config.servers import DEFAULT_SERVERS

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("lspc.config")

# Global cached config
_cached_config: EngineConfig | None = None

# Callbacks to notify on config reload
_reload_callbacks: list[Callable[[EngineConfig], None]] = []

_KNOWN_KEYS = {
    "client",
    "autostart",
    "highlight_diagnostics",
    "diagnostic_styles",
    "message_level",
    "menu_cmd",
    "confirm_cmd",
    "workspace_edit_remember_cursor",
    "fallback_dirname_as_root",
    "universal_root_globs",
    "logging",
    "servers",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Returns:
        Config dict with values from environment.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("LSPC_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    return overrides


def _server_from_dict(syntax: str, data: dict[str, Any]) -> ServerConfig | None:
    command = data.get("command")
    if not command:
        _log.warning("Ignoring server for %s without a command", syntax)
        return None
    if isinstance(command, list):
        command = " ".join(str(part) for part in command)

    roots = data.get("roots") or []
    return ServerConfig(
        syntax=syntax,
        name=data.get("name") or str(command).split()[0],
        command=str(command),
        settings=data.get("settings"),
        init_options=data.get("init_options"),
        roots=[r for r in roots if isinstance(r, str)],
        formatting_options=data.get("formatting_options"),
    )


def dict_to_config(data: dict[str, Any]) -> EngineConfig:
    """Convert merged dict to typed EngineConfig dataclass.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed EngineConfig object.
    """
    client_data = data.get("client") or {}
    client = ClientInfo(
        name=client_data.get("name", DEFAULT_CLIENT_NAME),
        version=str(client_data.get("version", DEFAULT_CLIENT_VERSION)),
    )

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    style_defaults = DiagnosticStyles()
    style_data = data.get("diagnostic_styles") or {}
    diagnostic_styles = DiagnosticStyles(
        error=str(style_data.get("error", style_defaults.error)),
        warning=str(style_data.get("warning", style_defaults.warning)),
        information=str(style_data.get("information", style_defaults.information)),
        hint=str(style_data.get("hint", style_defaults.hint)),
    )

    servers: dict[str, ServerConfig] = {}
    for syntax, server_data in (data.get("servers") or {}).items():
        # A false/empty entry disables a built-in server
        if not isinstance(server_data, dict):
            continue
        server = _server_from_dict(str(syntax), server_data)
        if server is not None:
            servers[server.syntax] = server

    defaults = EngineConfig()
    globs = data.get("universal_root_globs")
    extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}

    return EngineConfig(
        client=client,
        autostart=data.get("autostart", defaults.autostart),
        highlight_diagnostics=data.get("highlight_diagnostics") or None,
        diagnostic_styles=diagnostic_styles,
        message_level=data.get("message_level", defaults.message_level),
        menu_cmd=data.get("menu_cmd", defaults.menu_cmd),
        confirm_cmd=data.get("confirm_cmd", defaults.confirm_cmd),
        workspace_edit_remember_cursor=data.get(
            "workspace_edit_remember_cursor", defaults.workspace_edit_remember_cursor
        ),
        fallback_dirname_as_root=data.get(
            "fallback_dirname_as_root", defaults.fallback_dirname_as_root
        ),
        universal_root_globs=list(globs) if globs is not None else defaults.universal_root_globs,
        logging=logging_config,
        servers=servers,
        extra=extra,
    )


def load_config(reload: bool = False) -> EngineConfig:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables (LSPC_LOG)
    2. User config ($XDG_CONFIG_HOME/lspc/config.yaml)
    3. System config (/etc/lspc/config.yaml)
    4. Built-in server table

    Args:
        reload: Force reload even if cached.

    Returns:
        Merged EngineConfig object.
    """
    global _cached_config

    if _cached_config is not None and not reload:
        return _cached_config

    configs: list[dict[str, Any]] = [{"servers": DEFAULT_SERVERS}]

    for path in get_config_paths():
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    merged = merge_configs(*configs)
    _cached_config = dict_to_config(merged)
    return _cached_config


def get_config() -> EngineConfig:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None


def reload_config() -> EngineConfig:
    """Reload config from files and notify callbacks.

    Returns:
        The newly loaded EngineConfig.
    """
    config = load_config(reload=True)

    for callback in _reload_callbacks:
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[EngineConfig], None]) -> Callable[[], None]:
    """Register a callback to be called when config is reloaded.

    Args:
        callback: Function to call with the new EngineConfig.

    Returns:
        A function to unregister the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
