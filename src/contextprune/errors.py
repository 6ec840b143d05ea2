"""Exception types raised inside contextprune.

None of these escape the public hooks; they mark failures that the caller
logs and degrades from.
"""

from __future__ import annotations


class ContextPruneError(Exception):
    """Base class for contextprune errors."""


class ConfigError(ContextPruneError):
    """A configuration file could not be read or parsed."""


class StorageError(ContextPruneError):
    """Session state could not be persisted."""


class AnalysisError(ContextPruneError):
    """The model-backed analysis pass failed."""
