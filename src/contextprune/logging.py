"""Logging configuration for contextprune.

Uses Python's standard logging module with support for:
- File logging via config or CONTEXTPRUNE_LOG environment variable
- Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4)
- Stderr fallback when no log file is configured
- Debug snapshots of rewritten request bodies
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from contextprune.config.schema import LoggingConfig

# Custom log levels
TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

# Module-level logger
logger = logging.getLogger("contextprune")

_initialized = False

# Directory for debug context snapshots (None = disabled)
_snapshot_dir: Path | None = None

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Map verbose=N to log levels (0=errors only, 4=everything)
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def setup_logging(config: LoggingConfig | None = None, *, debug: bool = False) -> None:
    """Initialize logging based on configuration.

    Call this once at startup. Subsequent calls are no-ops.

    Verbosity levels (config.logging.verbose):
        0 = error   - errors only
        1 = warning  - errors + warnings
        2 = info     - normal operation (default)
        3 = verbose  - detailed diagnostics
        4 = trace    - everything

    Args:
        config: Optional LoggingConfig with level, verbose, and file settings.
        debug: Enable debug level and context snapshots next to the log file.
    """
    global _initialized, _snapshot_dir
    if _initialized:
        return
    _initialized = True

    log_level = logging.DEBUG if debug else logging.INFO
    if config:
        if config.verbose is not None:
            log_level = _VERBOSITY_MAP.get(config.verbose, TRACE)
        elif config.level:
            log_level = _LEVEL_MAP.get(config.level.upper(), log_level)

    logger.setLevel(log_level)

    # Format: HH:MM:SS level: message
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    log_path = config.file if config and config.file else os.environ.get("CONTEXTPRUNE_LOG")

    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except Exception as e:
            if sys.stderr.isatty():
                print(f"[contextprune] Failed to open log file: {e}", file=sys.stderr)
                _add_stderr_handler(formatter, log_level)
        if debug:
            _snapshot_dir = Path(log_path).parent / "context"
    elif sys.stderr.isatty():
        # Only log to stderr if it's a real console, not pipes from a host process
        _add_stderr_handler(formatter, log_level)


def _add_stderr_handler(formatter: logging.Formatter, level: int = logging.DEBUG) -> None:
    """Add a stderr handler to the logger."""
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional name for a child logger (e.g., "fetch", "janitor").
              If None, returns the root contextprune logger.

    Returns:
        A configured logger instance.
    """
    if name:
        return logger.getChild(name)
    return logger


def set_snapshot_dir(path: str | Path | None) -> None:
    """Enable (or disable with None) debug snapshots of rewritten requests."""
    global _snapshot_dir
    _snapshot_dir = Path(path).expanduser() if path else None


def save_wrapped_context(session_id: str, data: list[Any], metadata: dict[str, Any]) -> Path | None:
    """Write a JSON snapshot of a rewritten request body for debugging.

    Snapshots land in <snapshot dir>/<session_id>/<timestamp>.json. Nothing is
    written unless a snapshot directory was configured.

    Returns:
        The snapshot path, or None if disabled or the write failed.
    """
    if _snapshot_dir is None:
        return None

    target_dir = _snapshot_dir / session_id
    path = target_dir / f"{datetime.now().strftime('%Y%m%dT%H%M%S%f')}.json"
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"metadata": metadata, "data": data}, f, indent=2, default=str)
    except OSError as e:
        logger.debug("Failed to save context snapshot %s: %s", path, e)
        return None
    return path
