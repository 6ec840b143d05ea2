"""Per-session pruning state records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from contextprune.state.ids import IdRegistry


@dataclass(slots=True)
class ToolCallRecord:
    """Cached metadata for one tool invocation.

    Keyed in the cache by the lowercased call ID. Records are immutable once
    cached; later observations of the same ID do not overwrite them.
    """

    id: str
    tool: str
    parameters: Any = None


@dataclass(slots=True)
class ToolTracker:
    """Counters driving the nudge and idle throttling.

    Attributes:
        seen_result_ids: Tool-result IDs already counted
        tool_result_count: Unprotected tool results seen since the last prune
        skip_next_idle: Suppress the next idle pass (set after a manual prune)
    """

    seen_result_ids: set[str] = field(default_factory=set)
    tool_result_count: int = 0
    skip_next_idle: bool = False

    def observe(self, tool_id: str, tool_name: str | None, protected: set[str]) -> bool:
        """Count a tool result once. Returns True if it was newly counted."""
        key = tool_id.lower()
        if key in self.seen_result_ids:
            return False
        self.seen_result_ids.add(key)
        if tool_name and tool_name.lower() in protected:
            return False
        self.tool_result_count += 1
        return True

    def reset_count(self) -> None:
        """Called after a prune event."""
        self.tool_result_count = 0


@dataclass(slots=True)
class SessionStats:
    """Cumulative pruning stats for a session."""

    total_tools_pruned: int = 0
    total_tokens_saved: int = 0
    total_gc_tokens: int = 0
    total_gc_tools: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_tools_pruned": self.total_tools_pruned,
            "total_tokens_saved": self.total_tokens_saved,
            "total_gc_tokens": self.total_gc_tokens,
            "total_gc_tools": self.total_gc_tools,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionStats:
        return cls(
            total_tools_pruned=int(data.get("total_tools_pruned", 0)),
            total_tokens_saved=int(data.get("total_tokens_saved", 0)),
            total_gc_tokens=int(data.get("total_gc_tokens", 0)),
            total_gc_tools=int(data.get("total_gc_tools", 0)),
        )


@dataclass(slots=True)
class GCStats:
    """Deduplication savings waiting to be reported in the next notification."""

    tokens_collected: int = 0
    tools_deduped: int = 0

    def add(self, tokens: int, tools: int) -> None:
        self.tokens_collected += tokens
        self.tools_deduped += tools


@dataclass
class SessionState:
    """Everything contextprune tracks for one session.

    The tool-parameter cache is shared across all sessions of a store
    because provider call IDs are globally unique; every SessionState of a
    store references the same dict.
    """

    session_id: str
    tool_parameters: dict[str, ToolCallRecord] = field(default_factory=dict)
    pruned_ids: set[str] = field(default_factory=set)
    stats: SessionStats = field(default_factory=SessionStats)
    gc_pending: GCStats | None = None
    ids: IdRegistry = field(default_factory=IdRegistry)
    tracker: ToolTracker = field(default_factory=ToolTracker)
    gemini_positions: dict[str, str] = field(default_factory=dict)
    name: str | None = None
    restored: bool = False

    def add_pruned(self, ids: list[str]) -> list[str]:
        """Append IDs to the pruned set. Returns the ones that were new."""
        added = []
        for tool_id in ids:
            key = tool_id.lower()
            if key not in self.pruned_ids:
                self.pruned_ids.add(key)
                added.append(key)
        return added

    def is_pruned(self, tool_id: str) -> bool:
        return tool_id.lower() in self.pruned_ids

    def cache_tool(self, tool_id: str, tool: str, parameters: Any = None) -> bool:
        """Upsert a tool call into the shared cache. Returns True if new."""
        key = tool_id.lower()
        if key in self.tool_parameters:
            return False
        self.tool_parameters[key] = ToolCallRecord(id=key, tool=tool, parameters=parameters)
        return True

    def lookup_tool(self, tool_id: str) -> ToolCallRecord | None:
        return self.tool_parameters.get(tool_id.lower())

    def unpruned_ids(self) -> list[str]:
        """Cached call IDs not yet pruned, in first-seen order."""
        return [tid for tid in self.tool_parameters if tid not in self.pruned_ids]

    def add_gc(self, tokens: int, tools: int) -> None:
        if self.gc_pending is None:
            self.gc_pending = GCStats()
        self.gc_pending.add(tokens, tools)
