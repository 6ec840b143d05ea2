"""Deep merge algorithm for configuration cascading.

Supports merging multiple config dicts where later values override earlier ones,
with special handling for nested dicts, None values and protected tool lists.
"""

from __future__ import annotations

from typing import Any

# Keys whose list values accumulate across layers instead of being replaced
UNION_KEYS = frozenset({"protected_tools"})


def _union(base: list[Any], override: list[Any]) -> list[Any]:
    result = list(base)
    for item in override:
        if item not in result:
            result.append(item)
    return result


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence over base values, with these rules:
    - Nested dicts are recursively merged
    - Lists are replaced entirely, except under UNION_KEYS where they are
      unioned in order
    - None values in override do NOT override base (enables partial configs)
    - Other values are replaced

    Args:
        base: The base dictionary.
        override: The dictionary with overriding values.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()

    for key, override_value in override.items():
        if override_value is None:
            continue

        if key in result:
            base_value = result[key]
            if isinstance(base_value, dict) and isinstance(override_value, dict):
                result[key] = deep_merge(base_value, override_value)
            elif (
                key in UNION_KEYS
                and isinstance(base_value, list)
                and isinstance(override_value, list)
            ):
                result[key] = _union(base_value, override_value)
            else:
                result[key] = override_value
        else:
            result[key] = override_value

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
