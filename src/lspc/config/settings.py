"""Effective language server settings.

Three layers contribute to the settings a server sees, from least to most
authoritative:

1. Global settings declared in the server's config (``settings``).
2. Project settings stored in ``.lspc-settings.json`` files found in the
   parent directories of a scope. Nearer files win over farther ones.
3. User settings stored in ``$XDG_CONFIG_HOME/lspc/settings.json``, keyed
   by section and then by path prefix. Longer prefixes win.

Settings are organized in sections (commonly the server's name) addressed
by dot-separated paths. Layers are combined with deep_merge; a layer whose
value at a section is not a mapping replaces the layers below it.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

from lspc.config.merge import deep_merge
from lspc.config.paths import PROJECT_SETTINGS_FILENAME, find_upwards, get_user_settings_path
from lspc.logging import get_logger

log = get_logger("settings")


class _Missing:
    """Marker for a section no settings layer defines."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def get_section(tree: Any, section: str | None) -> Any:
    """Look up a dot-separated section path.

    Returns:
        The value stored at section, the whole tree if section is None,
        or MISSING if any component is absent.
    """
    if section is None:
        return tree
    node = tree
    for key in section.split("."):
        if not key:
            continue
        if not isinstance(node, dict) or key not in node:
            return MISSING
        node = node[key]
    return node


def read_settings(path: Path) -> dict[str, Any]:
    """Read a JSON settings file, returning an empty dict if absent or invalid."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        log.warning("Cannot read settings from %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        log.warning("Ignoring settings in %s: top level is not an object", path)
        return {}
    log.debug("Read settings from %s", path)
    return data


def layer(lower: Any, upper: Any) -> Any:
    """Put one settings value on top of another."""
    if upper is MISSING:
        return lower
    if isinstance(lower, dict) and isinstance(upper, dict):
        return deep_merge(lower, upper)
    return copy.deepcopy(upper)


def project_local_settings(section: str | None, scope: str) -> Any:
    """Merge the project settings files above scope.

    The search starts at scope if it is a directory, otherwise at its
    parent, and continues from the parent of every directory holding a
    settings file until the filesystem root.
    """
    start = Path(os.path.abspath(scope))
    if not start.is_dir():
        start = start.parent

    # Nearest first
    found: list[Any] = []
    directory = find_upwards([PROJECT_SETTINGS_FILENAME], start)
    while directory is not None:
        path = directory / PROJECT_SETTINGS_FILENAME
        log.debug("Found project settings at %s", path)
        value = get_section(read_settings(path), section)
        if value is not MISSING:
            found.append(value)
        if directory.parent == directory:
            break
        directory = find_upwards([PROJECT_SETTINGS_FILENAME], directory.parent)

    merged: Any = MISSING
    for value in reversed(found):
        merged = layer(merged, value)
    return merged


def _scope_prefixes(scope: str | None) -> list[str]:
    """Path prefixes of scope, shortest first, starting with "/"."""
    prefixes = ["/"]
    if scope is None:
        return prefixes
    path = ""
    for part in Path(os.path.abspath(scope)).parts[1:]:
        path = f"{path}/{part}"
        prefixes.append(path)
    return prefixes


def user_local_settings(
    section: str | None,
    scope: str | None,
    settings_path: Path | None = None,
) -> Any:
    """Merge the user's path-scoped settings for section.

    Entries are merged from the shortest to the longest prefix of scope,
    so settings recorded for a subdirectory override those of its parents.
    Without a section the user layer does not apply.
    """
    if section is None:
        return MISSING

    path = settings_path or get_user_settings_path()
    if path is None:
        return MISSING

    per_path = read_settings(path).get(section)
    if not isinstance(per_path, dict):
        return MISSING

    merged: Any = MISSING
    for prefix in _scope_prefixes(scope):
        if prefix in per_path:
            merged = layer(merged, per_path[prefix])
    return merged


def effective_settings(
    global_settings: dict[str, Any] | None,
    section: str | None = None,
    scope: str | None = None,
    user_settings_path: Path | None = None,
) -> Any:
    """Resolve the settings a server should see for section and scope.

    Args:
        global_settings: Settings tree from the server config.
        section: Dot-separated section, or None for the whole tree.
        scope: Filesystem path the settings apply to.
        user_settings_path: Override for the user settings file.

    Returns:
        The merged value, or None if no layer defines it.
    """
    result: Any = MISSING

    if global_settings is not None:
        result = layer(result, get_section(copy.deepcopy(global_settings), section))
    log.debug("global settings (%s): %r", section, result)

    if scope:
        result = layer(result, project_local_settings(section, scope))
        log.debug("-> with project settings: %r", result)

    result = layer(result, user_local_settings(section, scope, user_settings_path))
    log.debug("-> with user settings: %r", result)

    return None if result is MISSING else result
