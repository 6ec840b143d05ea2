"""Configuration management for contextprune.

Provides layered YAML configuration with:
- Built-in defaults
- Global config (~/.config/contextprune/config.yaml)
- $CONTEXTPRUNE_CONFIG_DIR/config.yaml
- Project config (nearest .contextprune/config.yaml)
- Environment variable overrides (highest priority)

Example usage:
    from contextprune.config import load_config

    loaded = load_config(project_dir="/path/to/project")
    for issue in loaded.issues:
        print(issue.source, issue)
    print(loaded.config.strategies.prune_tool.nudge.frequency)
"""

from contextprune.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from contextprune.config.paths import (
    find_project_config_path,
    get_config_paths,
    get_global_config_path,
)
from contextprune.config.schema import (
    DEFAULT_PROTECTED_TOOLS,
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

__all__ = [
    # Main API
    "Config",
    "LoadedConfig",
    "ConfigIssue",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "DEFAULT_PROTECTED_TOOLS",
    "DeduplicationConfig",
    "LoggingConfig",
    "NudgeConfig",
    "OnIdleConfig",
    "PruneToolConfig",
    "StateConfig",
    "StrategiesConfig",
    # Path utilities
    "get_config_paths",
    "get_global_config_path",
    "find_project_config_path",
]
