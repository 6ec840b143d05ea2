"""Synthetic instruction and prunable-tools listing.

Two artifacts are added to outbound requests:

1. The synthetic instruction, appended once to the latest real user turn.
2. An end-of-conversation turn: the system reminder, the nudge when enough
   tool results have piled up since the last prune, and the listing

       <prunable-tools>
       1: read, src/app.py
       2: grep, TODO
       </prunable-tools>
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from contextprune.prompts import NUDGE_INSTRUCTION, SYSTEM_REMINDER
from contextprune.pruning.display import describe_call
from contextprune.state.session import SessionState


@dataclass
class PrunableList:
    """A rendered listing plus the numeric IDs it names."""

    text: str = ""
    numeric_ids: list[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.text)


def build_prunable_tools_list(
    state: SessionState,
    unpruned_ids: Iterable[str],
    protected_tools: Iterable[str],
    working_directory: str | None = None,
) -> PrunableList:
    """List every unpruned, unprotected call that has cached metadata.

    Numeric IDs are minted on first listing and never change afterwards.
    """
    protected = {tool.lower() for tool in protected_tools}
    lines = []
    numeric_ids = []

    for tool_id in unpruned_ids:
        record = state.lookup_tool(tool_id)
        if record is None or record.tool.lower() in protected:
            continue
        numeric_id = state.ids.get_or_create(tool_id)
        numeric_ids.append(numeric_id)
        lines.append(f"{numeric_id}: {describe_call(record, working_directory)}")

    if not lines:
        return PrunableList()
    return PrunableList(
        text="<prunable-tools>\n" + "\n".join(lines) + "\n</prunable-tools>",
        numeric_ids=numeric_ids,
    )


def should_nudge(tool_result_count: int, frequency: int) -> bool:
    """Nudge once the count since the last prune exceeds the frequency."""
    return frequency > 0 and tool_result_count > frequency


def build_end_injection(prunable_list: str, include_nudge: bool) -> str:
    """The trailing turn text, or "" when there is nothing to list."""
    if not prunable_list:
        return ""
    parts = [SYSTEM_REMINDER]
    if include_nudge:
        parts.append(NUDGE_INSTRUCTION)
    parts.append(prunable_list)
    return "\n\n".join(parts)
