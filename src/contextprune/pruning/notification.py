"""User-facing prune summaries.

Verbosity follows `pruning_summary`:
- off: nothing is sent
- minimal: one line with this pass's savings and the session total
- detailed: adds deduplication savings and a per-tool breakdown
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from contextprune.config.schema import PruningSummary
from contextprune.core.tokens import format_token_count
from contextprune.host import Notification, Notifier
from contextprune.logging import get_logger
from contextprune.pruning.display import extract_parameter_key
from contextprune.state.session import GCStats, SessionStats, ToolCallRecord

log = get_logger("notify")

TITLE = "Context pruned"


@dataclass
class PruneSummary:
    """What one prune event removed.

    Attributes:
        pruned_ids: IDs pruned by the agent or the analysis pass
        tokens_saved: Estimated tokens for pruned_ids
        metadata: Call records used for the per-tool breakdown
        gc_pending: Deduplication savings not yet reported
        session_stats: Cumulative stats after this event
        reason: Why the agent pruned, when given
    """

    pruned_ids: list[str] = field(default_factory=list)
    tokens_saved: int = 0
    metadata: Mapping[str, ToolCallRecord] = field(default_factory=dict)
    gc_pending: GCStats | None = None
    session_stats: SessionStats = field(default_factory=SessionStats)
    reason: str | None = None

    @property
    def gc_tokens(self) -> int:
        return self.gc_pending.tokens_collected if self.gc_pending else 0

    @property
    def gc_tools(self) -> int:
        return self.gc_pending.tools_deduped if self.gc_pending else 0

    def is_empty(self) -> bool:
        return not self.pruned_ids and not self.gc_tools


def _tool_breakdown(summary: PruneSummary, working_directory: str | None) -> list[str]:
    grouped: dict[str, list[str]] = {}
    for tool_id in summary.pruned_ids:
        record = summary.metadata.get(tool_id.lower())
        tool = record.tool if record else "unknown"
        key = extract_parameter_key(record, working_directory)
        grouped.setdefault(tool, [])
        if key:
            grouped[tool].append(key)

    lines = []
    for tool, keys in grouped.items():
        if not keys:
            lines.append(f"  {tool}")
        for key in keys:
            lines.append(f"  {tool}: {key}")
    return lines


def build_prune_summary(
    summary: PruneSummary,
    mode: PruningSummary,
    working_directory: str | None = None,
) -> str | None:
    """Render a summary, or None when nothing should be shown."""
    if mode == "off" or summary.is_empty():
        return None

    stats = summary.session_stats
    pass_tokens = summary.tokens_saved + summary.gc_tokens
    session_tokens = stats.total_tokens_saved + stats.total_gc_tokens
    headline = (
        f"~{format_token_count(pass_tokens)} saved"
        f" (session total ~{format_token_count(session_tokens)})"
    )
    if mode == "minimal":
        return headline

    lines = [headline]
    if summary.pruned_ids:
        noun = "output" if len(summary.pruned_ids) == 1 else "outputs"
        lines.append(f"Pruned {len(summary.pruned_ids)} tool {noun}:")
        lines.extend(_tool_breakdown(summary, working_directory))
    if summary.gc_tools:
        lines.append(
            f"~{format_token_count(summary.gc_tokens)} from {summary.gc_tools} deduplicated tools"
        )
    if summary.reason:
        lines.append(f"Reason: {summary.reason}")
    return "\n".join(lines)


async def send_prune_notification(
    notifier: Notifier,
    session_id: str,
    summary: PruneSummary,
    mode: PruningSummary,
    *,
    agent: str | None = None,
    working_directory: str | None = None,
) -> bool:
    """Send a prune summary. Returns whether one was delivered.

    Notifier failures are logged and swallowed.
    """
    message = build_prune_summary(summary, mode, working_directory)
    if message is None:
        return False
    try:
        await notifier.notify(
            session_id,
            Notification(title=TITLE, message=message, variant="info", agent=agent),
        )
    except Exception as e:
        log.debug("Notification failed for %s: %s", session_id, e)
        return False
    return True


async def send_warning(notifier: Notifier, session_id: str, title: str, message: str) -> None:
    """Send a warning notification, swallowing failures."""
    try:
        await notifier.notify(session_id, Notification(title=title, message=message, variant="warning"))
    except Exception as e:
        log.debug("Warning notification failed for %s: %s", session_id, e)
