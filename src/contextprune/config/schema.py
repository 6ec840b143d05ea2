"""Configuration schema dataclasses for contextprune.

Defines the structure of configuration at all levels (defaults, global, project).
All fields carry defaults so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

PruningSummary = Literal["off", "minimal", "detailed"]

DEFAULT_PROTECTED_TOOLS: tuple[str, ...] = ("task", "todowrite", "todoread", "prune", "batch")


@dataclass
class NudgeConfig:
    """Reminder asking the agent to prune after enough tool results pile up."""

    enabled: bool = True
    frequency: int = 10  # Tool results since last prune before nudging


@dataclass
class DeduplicationConfig:
    """Automatic removal of repeated identical tool calls."""

    enabled: bool = True
    protected_tools: list[str] = field(default_factory=list)


@dataclass
class PruneToolConfig:
    """Agent-facing prune tool and the injected prunable-tools listing.

    Example config.yaml:
        strategies:
          prune_tool:
            enabled: true
            protected_tools: ["write"]
            nudge:
              enabled: true
              frequency: 10
    """

    enabled: bool = True
    protected_tools: list[str] = field(default_factory=list)
    nudge: NudgeConfig = field(default_factory=NudgeConfig)


@dataclass
class OnIdleConfig:
    """Model-backed analysis run when a session goes idle."""

    enabled: bool = False
    model: str | None = None  # e.g. "anthropic/claude-haiku-4-5"
    show_model_error_toasts: bool = True
    strict_model_selection: bool = False  # Never fall back to the session model
    protected_tools: list[str] = field(default_factory=list)


@dataclass
class StrategiesConfig:
    """All pruning strategies."""

    deduplication: DeduplicationConfig = field(default_factory=DeduplicationConfig)
    prune_tool: PruneToolConfig = field(default_factory=PruneToolConfig)
    on_idle: OnIdleConfig = field(default_factory=OnIdleConfig)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    file: str | None = None  # Log file path
    verbose: int | None = None  # 0-4, overrides level


@dataclass
class StateConfig:
    """Where per-session pruning state is persisted."""

    directory: str = "~/.local/share/contextprune/sessions"


@dataclass
class Config:
    """Root configuration object."""

    enabled: bool = True
    debug: bool = False
    pruning_summary: PruningSummary = "detailed"
    protected_tools: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_TOOLS))
    transcript_limit: int = 100
    strategies: StrategiesConfig = field(default_factory=StrategiesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    state: StateConfig = field(default_factory=StateConfig)

    def protected_for(self, strategy: str) -> list[str]:
        """Global protected tools plus the named strategy's own list.

        Args:
            strategy: "deduplication", "prune_tool" or "on_idle".

        Returns:
            Lowercased tool names, global entries first, without duplicates.
        """
        extra = getattr(self.strategies, strategy).protected_tools
        merged: dict[str, None] = {}
        for name in [*self.protected_tools, *extra]:
            merged[name.lower()] = None
        return list(merged)

    @property
    def on_tool_enabled(self) -> bool:
        return self.strategies.prune_tool.enabled

    @property
    def nudge_frequency(self) -> int:
        """Effective nudge frequency; 0 disables the nudge."""
        nudge = self.strategies.prune_tool.nudge
        return nudge.frequency if nudge.enabled else 0


@dataclass
class ConfigIssue:
    """A problem found while loading one config file."""

    source: str  # File path the issue came from
    key: str  # Dotted key path, or "" for whole-file problems
    message: str

    def __str__(self) -> str:
        if self.key:
            return f"{self.key}: {self.message}"
        return self.message


@dataclass
class LoadedConfig:
    """Merged config plus everything that went wrong on the way."""

    config: Config
    issues: list[ConfigIssue] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)

    def issues_by_source(self) -> dict[str, list[ConfigIssue]]:
        grouped: dict[str, list[ConfigIssue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.source, []).append(issue)
        return grouped


# Expected type for every known key path. Nested sections map to dict.
KEY_TYPES: dict[str, Any] = {
    "enabled": bool,
    "debug": bool,
    "pruning_summary": ("off", "minimal", "detailed"),
    "protected_tools": list,
    "transcript_limit": int,
    "strategies": dict,
    "strategies.deduplication": dict,
    "strategies.deduplication.enabled": bool,
    "strategies.deduplication.protected_tools": list,
    "strategies.prune_tool": dict,
    "strategies.prune_tool.enabled": bool,
    "strategies.prune_tool.protected_tools": list,
    "strategies.prune_tool.nudge": dict,
    "strategies.prune_tool.nudge.enabled": bool,
    "strategies.prune_tool.nudge.frequency": int,
    "strategies.on_idle": dict,
    "strategies.on_idle.enabled": bool,
    "strategies.on_idle.model": str,
    "strategies.on_idle.show_model_error_toasts": bool,
    "strategies.on_idle.strict_model_selection": bool,
    "strategies.on_idle.protected_tools": list,
    "logging": dict,
    "logging.level": str,
    "logging.file": str,
    "logging.verbose": int,
    "state": dict,
    "state.directory": str,
}
