"""Configuration file loading, validation and caching.

Handles:
- YAML file parsing (plain JSON files parse too)
- Unknown key and type validation, reported as ConfigIssue records
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from contextprune.config.merge import merge_configs
from contextprune.config.paths import get_config_paths
from contextprune.config.schema import (
    KEY_TYPES,
    Config,
    ConfigIssue,
    DeduplicationConfig,
    LoadedConfig,
    LoggingConfig,
    NudgeConfig,
    OnIdleConfig,
    PruneToolConfig,
    StateConfig,
    StrategiesConfig,
)
from contextprune.errors import ConfigError

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("contextprune.config")

# Global cached config
_cached_config: LoadedConfig | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if it does not exist.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict if the file is missing or empty.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at top level, got {type(data).__name__}")
    return data


def _type_name(expected: Any) -> str:
    if isinstance(expected, tuple):
        return " | ".join(f'"{v}"' for v in expected)
    if expected is list:
        return "list of strings"
    if expected is dict:
        return "mapping"
    return expected.__name__


def _matches(value: Any, expected: Any) -> bool:
    if isinstance(expected, tuple):
        return value in expected
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected is list:
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    return isinstance(value, expected)


def validate_config(data: dict[str, Any], source: str, prefix: str = "") -> tuple[dict[str, Any], list[ConfigIssue]]:
    """Check keys and value types of one config layer.

    Unknown keys and wrongly typed values are reported and dropped, so the
    remaining layer can still be merged.

    Args:
        data: Raw dict parsed from one file.
        source: File path, used in issues.
        prefix: Dotted key prefix for nested sections.

    Returns:
        (cleaned dict, issues found)
    """
    cleaned: dict[str, Any] = {}
    issues: list[ConfigIssue] = []

    for key, value in data.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        expected = KEY_TYPES.get(path)
        if expected is None:
            issues.append(ConfigIssue(source, path, "unknown key"))
            continue
        if value is None:
            continue
        # YAML 1.1 reads a bare `off` as false
        if isinstance(expected, tuple) and value is False and "off" in expected:
            value = "off"
        if not _matches(value, expected):
            issues.append(ConfigIssue(
                source, path,
                f"expected {_type_name(expected)}, got {type(value).__name__}",
            ))
            continue
        if expected is dict:
            nested, nested_issues = validate_config(value, source, path)
            cleaned[key] = nested
            issues.extend(nested_issues)
        else:
            cleaned[key] = value

    return cleaned, issues


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Environment variables take highest priority.

    Returns:
        Config dict with values from environment.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("CONTEXTPRUNE_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    debug = os.environ.get("CONTEXTPRUNE_DEBUG")
    if debug:
        overrides["debug"] = debug.lower() in ("1", "true", "yes", "on")

    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Args:
        data: Merged and validated configuration dictionary.

    Returns:
        Typed Config object.
    """
    defaults = Config()
    strategies_data = data.get("strategies", {})

    dedup_data = strategies_data.get("deduplication", {})
    deduplication = DeduplicationConfig(
        enabled=dedup_data.get("enabled", True),
        protected_tools=list(dedup_data.get("protected_tools", [])),
    )

    tool_data = strategies_data.get("prune_tool", {})
    nudge_data = tool_data.get("nudge", {})
    prune_tool = PruneToolConfig(
        enabled=tool_data.get("enabled", True),
        protected_tools=list(tool_data.get("protected_tools", [])),
        nudge=NudgeConfig(
            enabled=nudge_data.get("enabled", True),
            frequency=nudge_data.get("frequency", 10),
        ),
    )

    idle_data = strategies_data.get("on_idle", {})
    on_idle = OnIdleConfig(
        enabled=idle_data.get("enabled", False),
        model=idle_data.get("model"),
        show_model_error_toasts=idle_data.get("show_model_error_toasts", True),
        strict_model_selection=idle_data.get("strict_model_selection", False),
        protected_tools=list(idle_data.get("protected_tools", [])),
    )

    log_data = data.get("logging", {})
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        file=log_data.get("file"),
        verbose=log_data.get("verbose"),
    )

    state_data = data.get("state", {})
    state = StateConfig(directory=state_data.get("directory", defaults.state.directory))

    return Config(
        enabled=data.get("enabled", True),
        debug=data.get("debug", False),
        pruning_summary=data.get("pruning_summary", "detailed"),
        protected_tools=list(data.get("protected_tools", defaults.protected_tools)),
        transcript_limit=data.get("transcript_limit", defaults.transcript_limit),
        strategies=StrategiesConfig(
            deduplication=deduplication,
            prune_tool=prune_tool,
            on_idle=on_idle,
        ),
        logging=logging_config,
        state=state,
    )


def load_config(project_dir: str | Path | None = None, reload: bool = False) -> LoadedConfig:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (nearest .contextprune/config.yaml)
    3. $CONTEXTPRUNE_CONFIG_DIR/config.yaml
    4. Global config (~/.config/contextprune/config.yaml)
    5. Built-in defaults

    A file that fails to parse contributes nothing; the layers below it stay
    in effect and the failure is recorded as an issue.

    Args:
        project_dir: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        LoadedConfig with the merged Config and any issues found.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_dir is None:
        return _cached_config

    layers: list[dict[str, Any]] = [dataclasses.asdict(Config())]
    issues: list[ConfigIssue] = []
    sources: list[str] = []

    for path in get_config_paths(project_dir):
        try:
            raw = load_yaml_file(path)
        except ConfigError as e:
            _log.warning("Ignoring config %s: %s", path, e)
            issues.append(ConfigIssue(str(path), "", str(e)))
            continue
        if not raw:
            continue
        cleaned, layer_issues = validate_config(raw, str(path))
        issues.extend(layer_issues)
        layers.append(cleaned)
        sources.append(str(path))
        _log.debug("Loaded config from %s", path)

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    loaded = LoadedConfig(
        config=dict_to_config(merge_configs(*layers)),
        issues=issues,
        sources=sources,
    )

    # Cache only the global config (no project_dir)
    if project_dir is None:
        _cached_config = loaded

    return loaded


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config().config
    return _cached_config.config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
