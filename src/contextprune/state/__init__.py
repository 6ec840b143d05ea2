"""Per-session pruning state."""

from contextprune.state.ids import IdRegistry
from contextprune.state.session import (
    GCStats,
    SessionState,
    SessionStats,
    ToolCallRecord,
    ToolTracker,
)
from contextprune.state.storage import PersistedState, StateStorage
from contextprune.state.store import StateStore
from contextprune.state.transcript import (
    ParsedTranscript,
    build_position_map,
    extend_position_map,
    find_current_agent,
    iter_tool_parts,
    parse_transcript,
)

__all__ = [
    "GCStats",
    "IdRegistry",
    "ParsedTranscript",
    "PersistedState",
    "SessionState",
    "SessionStats",
    "StateStorage",
    "StateStore",
    "ToolCallRecord",
    "ToolTracker",
    "build_position_map",
    "extend_position_map",
    "find_current_agent",
    "iter_tool_parts",
    "parse_transcript",
]
