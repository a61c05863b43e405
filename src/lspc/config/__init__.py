"""Configuration management for lspc.

Provides hierarchical YAML-based engine configuration with:
- Built-in language server table (clangd, pylsp, lua-language-server)
- System-level config (/etc/lspc/ or %PROGRAMDATA%)
- User-level config ($XDG_CONFIG_HOME/lspc/ or %APPDATA%)
- Environment variable overrides (highest priority)

and the layered language server settings resolver.

Example usage:
    from lspc.config import get_config, effective_settings

    config = get_config()
    server = config.servers["python"]
    print(effective_settings(server.settings, "pylsp", "/src/project/main.py"))
"""

from lspc.config.loader import (
    dict_to_config,
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from lspc.config.merge import deep_merge, merge_configs
from lspc.config.paths import (
    find_upwards,
    get_config_paths,
    get_system_config_path,
    get_user_config_path,
    get_user_settings_path,
)
from lspc.config.schema import (
    ClientInfo,
    DiagnosticStyles,
    EngineConfig,
    LoggingConfig,
    ServerConfig,
)
from lspc.config.settings import MISSING, effective_settings, get_section

__all__ = [
    # Main API
    "EngineConfig",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    "dict_to_config",
    # Schema types
    "ClientInfo",
    "DiagnosticStyles",
    "LoggingConfig",
    "ServerConfig",
    # Merging
    "deep_merge",
    "merge_configs",
    # Settings
    "MISSING",
    "effective_settings",
    "get_section",
    # Path utilities
    "find_upwards",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_user_settings_path",
]
