"""Deep merge algorithm for configuration and settings cascading.

Supports merging multiple dicts where later values override earlier ones,
with special handling for nested dicts and None values.
"""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence over base values, with these rules:
    - Nested dicts are recursively merged
    - Lists are replaced entirely (not concatenated)
    - None values in override do NOT override base (enables partial configs)
    - Other values are replaced

    Neither argument is mutated; nested dicts taken from either side are
    copied so the result can be modified freely.

    Args:
        base: The base dictionary.
        override: The dictionary with overriding values.

    Returns:
        A new dictionary with merged values.
    """
    result = {k: _copy(v) for k, v in base.items()}

    for key, override_value in override.items():
        if override_value is None:
            continue

        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
        else:
            result[key] = _copy(override_value)

    return result


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configs in order (later overrides earlier).

    Args:
        *configs: Variable number of config dicts to merge.

    Returns:
        A single merged config dict.
    """
    result: dict[str, Any] = {}
    for config in configs:
        if config:
            result = deep_merge(result, config)
    return result


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value
