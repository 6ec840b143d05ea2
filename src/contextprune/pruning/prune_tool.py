"""The agent-facing prune tool.

The agent names outputs by the numeric IDs shown in the prunable-tools
listing. IDs that cannot be resolved (for example, calls older than the
transcript window and absent from the persisted mapping) are reported back,
never raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from contextprune.config.schema import Config
from contextprune.core.tokens import format_token_count
from contextprune.host import Notifier, SessionAccessor
from contextprune.logging import get_logger
from contextprune.prompts import PRUNE_TOOL_DESCRIPTION
from contextprune.pruning.janitor import tokens_for
from contextprune.pruning.notification import PruneSummary, send_prune_notification
from contextprune.state.session import ToolCallRecord
from contextprune.state.store import StateStore
from contextprune.state.transcript import find_current_agent, parse_transcript

log = get_logger("prune-tool")

PRUNE_TOOL_NAME = "prune"


@dataclass
class PruneToolResult:
    """Outcome of one prune call.

    Attributes:
        pruned_count: Outputs newly pruned
        tokens_saved: Estimated tokens for those outputs
        pruned_ids: Numeric IDs that were pruned
        unresolved: Requested IDs with no known tool call
        skipped: Numeric IDs that were protected or already pruned
        message: Text returned to the agent
    """

    pruned_count: int = 0
    tokens_saved: int = 0
    pruned_ids: list[int] = field(default_factory=list)
    unresolved: list[Any] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    message: str = ""


def _format_result(result: PruneToolResult) -> str:
    if result.pruned_count:
        ids = ", ".join(str(i) for i in result.pruned_ids)
        text = f"Pruned {result.pruned_count} tool outputs ({ids}), ~{format_token_count(result.tokens_saved)} saved."
    else:
        text = "No tool outputs were pruned."
    if result.skipped:
        text += f" Skipped protected or already pruned: {', '.join(str(i) for i in result.skipped)}."
    if result.unresolved:
        text += f" Unknown IDs: {', '.join(str(i) for i in result.unresolved)}."
    return text


class PruneTool:
    """Manual prune entry point, registered with the host as a tool."""

    name = PRUNE_TOOL_NAME

    def __init__(
        self,
        store: StateStore,
        config: Config,
        accessor: SessionAccessor | None,
        notifier: Notifier,
        *,
        working_directory: str | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._accessor = accessor
        self._notifier = notifier
        self._working_directory = working_directory

    @property
    def definition(self) -> dict[str, Any]:
        """JSON-schema tool definition for the host to register."""
        return {
            "name": self.name,
            "description": PRUNE_TOOL_DESCRIPTION,
            "parameters": {
                "type": "object",
                "properties": {
                    "ids": {
                        "type": "array",
                        "items": {"type": "integer"},
                        "description": "Numeric IDs from the <prunable-tools> list",
                    },
                    "reason": {
                        "type": "string",
                        "description": "Why these outputs are no longer needed",
                    },
                },
                "required": ["ids"],
            },
        }

    async def execute(
        self,
        session_id: str,
        ids: Iterable[Any],
        reason: str | None = None,
    ) -> PruneToolResult:
        """Prune the outputs behind the given numeric IDs."""
        state = await self._store.ensure_restored(session_id)
        protected = set(self._config.protected_for("prune_tool"))
        result = PruneToolResult()
        actual_ids: list[str] = []

        for raw in ids:
            try:
                numeric_id = int(raw)
            except (TypeError, ValueError):
                result.unresolved.append(raw)
                continue
            actual_id = state.ids.get_actual(numeric_id)
            if actual_id is None:
                result.unresolved.append(numeric_id)
                continue
            record = state.lookup_tool(actual_id)
            if (record and record.tool.lower() in protected) or state.is_pruned(actual_id) or actual_id in actual_ids:
                result.skipped.append(numeric_id)
                continue
            actual_ids.append(actual_id)
            result.pruned_ids.append(numeric_id)

        if result.unresolved:
            log.warning("Unresolved prune IDs for %s: %s", session_id, result.unresolved)

        if not actual_ids:
            result.message = _format_result(result)
            return result

        state.add_pruned(actual_ids)
        state.tracker.reset_count()
        state.tracker.skip_next_idle = True

        messages = await self._fetch_messages(session_id)
        parsed = parse_transcript(messages, self._store.tool_parameters)
        result.pruned_count = len(actual_ids)
        result.tokens_saved = tokens_for(actual_ids, parsed.outputs)

        state.stats.total_tools_pruned += result.pruned_count
        state.stats.total_tokens_saved += result.tokens_saved
        self._store.schedule_save(session_id)

        metadata: dict[str, ToolCallRecord] = dict(parsed.metadata)
        for actual_id in actual_ids:
            cached = state.lookup_tool(actual_id)
            if cached is not None:
                metadata.setdefault(actual_id, cached)

        summary = PruneSummary(
            pruned_ids=actual_ids,
            tokens_saved=result.tokens_saved,
            metadata=metadata,
            gc_pending=state.gc_pending,
            session_stats=state.stats,
            reason=reason,
        )
        mode = self._config.pruning_summary
        sent = await send_prune_notification(
            self._notifier,
            session_id,
            summary,
            mode,
            agent=find_current_agent(messages),
            working_directory=self._working_directory,
        )
        if sent or mode == "off":
            state.gc_pending = None

        log.info(
            "Prune tool removed %d outputs for %s (~%s)",
            result.pruned_count, session_id, format_token_count(result.tokens_saved),
        )
        result.message = _format_result(result)
        return result

    async def _fetch_messages(self, session_id: str) -> list[dict[str, Any]]:
        if self._accessor is None:
            return []
        try:
            return await self._accessor.messages(session_id, self._config.transcript_limit)
        except Exception as e:
            log.warning("Could not fetch transcript for %s: %s", session_id, e)
            return []
