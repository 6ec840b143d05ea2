"""Duplicate tool-call detection.

Two calls are duplicates when they have the same tool name and structurally
equal parameters. Only the chronologically last call of each group keeps
its output; every earlier one is pruned. Protected tools are never pruned.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from contextprune.state.session import ToolCallRecord
from contextprune.strategies.base import StrategyResult


def canonicalize(parameters: Any) -> str:
    """Key- and whitespace-insensitive serialization of a parameter value."""
    try:
        return json.dumps(parameters, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return repr(parameters)


def call_signature(record: ToolCallRecord) -> tuple[str, str]:
    return record.tool.lower(), canonicalize(record.parameters)


class DeduplicationStrategy:
    """Prune every earlier call of an identical (tool, parameters) pair."""

    name = "deduplication"

    def detect(
        self,
        metadata: Mapping[str, ToolCallRecord],
        candidate_ids: Sequence[str],
        protected_tools: set[str],
    ) -> StrategyResult:
        groups: dict[tuple[str, str], list[str]] = {}
        seen: set[str] = set()
        for tool_id in candidate_ids:
            key = tool_id.lower()
            if key in seen:
                continue
            seen.add(key)
            record = metadata.get(key)
            if record is None or record.tool.lower() in protected_tools:
                continue
            groups.setdefault(call_signature(record), []).append(key)

        result = StrategyResult()
        for ids in groups.values():
            if len(ids) < 2:
                continue
            kept = ids[-1]
            for tool_id in ids[:-1]:
                result.pruned_ids.append(tool_id)
                result.details[tool_id] = kept

        order = {tool_id.lower(): i for i, tool_id in enumerate(candidate_ids)}
        result.pruned_ids.sort(key=order.__getitem__)
        return result
