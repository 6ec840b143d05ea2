"""Configuration path resolution.

Handles config file locations for:
- Global: $XDG_CONFIG_HOME/contextprune/, ~/.config/contextprune/ or ~/.contextprune/
- Config dir override: $CONTEXTPRUNE_CONFIG_DIR/
- Project: nearest .contextprune/ walking up from the project directory
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "contextprune"
SHORT_NAME = ".contextprune"
CONFIG_DIR_ENV = "CONTEXTPRUNE_CONFIG_DIR"


def get_global_config_path() -> Path:
    """Get user-level config path.

    Returns:
        Path to the global config file. The file may not exist.
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()

    # Prefer ~/.config/contextprune if ~/.config exists
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME

    return home / SHORT_NAME / CONFIG_FILENAME


def get_config_dir_path() -> Path | None:
    """Get the config path named by $CONTEXTPRUNE_CONFIG_DIR, if set."""
    config_dir = os.environ.get(CONFIG_DIR_ENV)
    if config_dir:
        return Path(config_dir) / CONFIG_FILENAME
    return None


def find_project_config_path(project_dir: str | Path) -> Path | None:
    """Find the nearest project config walking up from project_dir.

    Args:
        project_dir: The project directory to start from.

    Returns:
        Path to the first existing .contextprune/config.yaml, or None.
    """
    current = Path(project_dir).resolve()
    for directory in (current, *current.parents):
        candidate = directory / SHORT_NAME / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def get_config_paths(project_dir: str | Path | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        project_dir: Optional project directory for project-level config.

    Returns:
        List of config paths in order: global, config dir, project.
        Later paths override earlier ones when merging.
    """
    paths: list[Path] = [get_global_config_path()]

    config_dir_path = get_config_dir_path()
    if config_dir_path:
        paths.append(config_dir_path)

    if project_dir:
        project_path = find_project_config_path(project_dir)
        if project_path:
            paths.append(project_path)

    return paths
