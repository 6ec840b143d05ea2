"""Parsing of host session transcripts.

Transcript messages are plain dicts:

    {
        "info": {"role": "user", "agent": "build"},
        "parts": [
            {"type": "text", "text": "..."},
            {
                "type": "tool",
                "callID": "call_abc",
                "tool": "read",
                "state": {"status": "completed", "input": {...}, "output": "..."},
            },
        ],
    }
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from contextprune.state.session import ToolCallRecord

DEFAULT_AGENT = "build"


@dataclass
class ParsedTranscript:
    """Tool activity extracted from a transcript, in chronological order."""

    tool_call_ids: list[str] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, ToolCallRecord] = field(default_factory=dict)


def iter_tool_parts(messages: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Yield every tool part that carries a call ID, in order."""
    for msg in messages:
        parts = msg.get("parts") if isinstance(msg, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if isinstance(part, dict) and part.get("type") == "tool" and part.get("callID"):
                yield part


def _output_text(state: dict[str, Any]) -> str | None:
    status = state.get("status")
    if status == "completed":
        value = state.get("output")
    elif status == "error":
        value = state.get("error")
    else:
        return None
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else json.dumps(value)


def parse_transcript(
    messages: list[dict[str, Any]],
    cache: dict[str, ToolCallRecord] | None = None,
) -> ParsedTranscript:
    """Extract tool call IDs, their outputs and metadata.

    Args:
        messages: Transcript messages in chronological order.
        cache: Tool-parameter cache; cached parameters win over the
            transcript's recorded input.

    Returns:
        ParsedTranscript with lowercased IDs.
    """
    cache = cache or {}
    parsed = ParsedTranscript()

    for part in iter_tool_parts(messages):
        tool_id = str(part["callID"]).lower()
        state = part.get("state") if isinstance(part.get("state"), dict) else {}
        if tool_id not in parsed.metadata:
            parsed.tool_call_ids.append(tool_id)

        cached = cache.get(tool_id)
        parameters = cached.parameters if cached else state.get("input", part.get("parameters"))
        parsed.metadata[tool_id] = ToolCallRecord(
            id=tool_id,
            tool=str(part.get("tool", "")),
            parameters=parameters,
        )

        output = _output_text(state)
        if output is not None:
            parsed.outputs[tool_id] = output

    return parsed


def find_current_agent(messages: list[dict[str, Any]]) -> str | None:
    """Agent of the most recent user message, scanning backward."""
    for msg in reversed(messages):
        info = msg.get("info") if isinstance(msg, dict) else None
        if isinstance(info, dict) and info.get("role") == "user":
            return info.get("agent") or DEFAULT_AGENT
    return None


def build_position_map(messages: list[dict[str, Any]]) -> dict[str, str]:
    """Map "<tool>:<n>" to call IDs for positional (Gemini) correlation.

    n counts occurrences of each lowercased tool name in transcript order,
    starting at 0.
    """
    counters: dict[str, int] = {}
    positions: dict[str, str] = {}
    for part in iter_tool_parts(messages):
        name = str(part.get("tool", "")).lower()
        if not name:
            continue
        index = counters.get(name, 0)
        counters[name] = index + 1
        positions[f"{name}:{index}"] = str(part["callID"]).lower()
    return positions


def extend_position_map(positions: dict[str, str], messages: list[dict[str, Any]]) -> dict[str, str]:
    """Extend a position map from a transcript window that may be truncated.

    Positions count from the start of the session, so a window cannot be
    numbered on its own. For each tool, the window's first call already in
    `positions` anchors the rest of that tool's calls. Tools with no anchor
    keep their existing entries.
    """
    known = {call_id: key for key, call_id in positions.items()}
    by_tool: dict[str, list[str]] = {}
    for part in iter_tool_parts(messages):
        name = str(part.get("tool", "")).lower()
        if name:
            by_tool.setdefault(name, []).append(str(part["callID"]).lower())

    merged = dict(positions)
    for name, call_ids in by_tool.items():
        start = None
        for offset, call_id in enumerate(call_ids):
            key = known.get(call_id)
            if key is None:
                continue
            tool, _, index = key.rpartition(":")
            if tool == name and index.isdigit():
                start = int(index) - offset
            break
        if start is None or start < 0:
            continue
        for offset, call_id in enumerate(call_ids):
            merged[f"{name}:{start + offset}"] = call_id
    return merged
