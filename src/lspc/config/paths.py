"""Platform-aware configuration path resolution.

Handles file locations for:
- System config: /etc/lspc/config.yaml (%PROGRAMDATA% on Windows)
- User config: $XDG_CONFIG_HOME/lspc/config.yaml (%APPDATA% on Windows)
- User settings: $XDG_CONFIG_HOME/lspc/settings.json
- Project settings: .lspc-settings.json in any parent directory of a file
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
SETTINGS_FILENAME = "settings.json"
PROJECT_SETTINGS_FILENAME = ".lspc-settings.json"
APP_NAME = "lspc"


def get_user_config_dir() -> Path | None:
    """Get the per-user configuration directory (may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_system_config_path() -> Path | None:
    """Get system-level config path.

    Returns:
        Path to system config file, or None if not determinable.
        The file may not exist.
    """
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get user-level config path (may not exist)."""
    config_dir = get_user_config_dir()
    return config_dir / CONFIG_FILENAME if config_dir else None


def get_user_settings_path() -> Path | None:
    """Get the user-local language server settings file (may not exist)."""
    config_dir = get_user_config_dir()
    return config_dir / SETTINGS_FILENAME if config_dir else None


def get_config_paths() -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Returns:
        List of config paths in order: system, user.
        Later paths override earlier ones when merging.
    """
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    return paths


def find_upwards(globs: Iterable[str], start: str | Path) -> Path | None:
    """Find the nearest directory at or above start containing a glob match.

    Args:
        globs: File name globs, e.g. [".git", "*.sln"].
        start: Directory the search begins in.

    Returns:
        The first directory holding a match, or None at the filesystem root.
    """
    patterns = [g for g in globs if g]
    directory = Path(start).absolute()
    while True:
        for pattern in patterns:
            if next(directory.glob(pattern), None) is not None:
                return directory
        if directory.parent == directory:
            return None
        directory = directory.parent
