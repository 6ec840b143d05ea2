"""Idle-time pruning pass.

Runs when a session goes idle: loads the recent transcript, deduplicates
repeated tool calls, optionally asks a model for obsolete outputs, updates
the session's pruned set and stats, notifies the user and persists in the
background.

A failure anywhere in the pass applies nothing and returns None.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from contextprune.config.schema import Config
from contextprune.core.tokens import estimate_tokens_batch, format_token_count
from contextprune.errors import AnalysisError
from contextprune.host import Notifier, SessionAccessor, SessionInfo
from contextprune.logging import get_logger
from contextprune.pruning.notification import PruneSummary, send_prune_notification, send_warning
from contextprune.state.session import SessionState, SessionStats
from contextprune.state.store import StateStore
from contextprune.state.transcript import ParsedTranscript, find_current_agent, parse_transcript
from contextprune.strategies import run_strategies
from contextprune.strategies.analysis import LLMAnalyzer

log = get_logger("janitor")

# Fewer messages than this is not enough context to judge relevance
MIN_MESSAGES = 3


@dataclass
class PruningResult:
    """What an idle pass pruned.

    Attributes:
        pruned_count: Outputs pruned by the analysis pass
        tokens_saved: Estimated tokens for those outputs
        llm_pruned_ids: IDs selected by the analysis pass
        deduplicated_ids: IDs pruned as duplicates
        numeric_ids: Listing numbers of everything pruned in the pass
        session_stats: Cumulative stats after the pass
    """

    pruned_count: int = 0
    tokens_saved: int = 0
    llm_pruned_ids: list[str] = field(default_factory=list)
    deduplicated_ids: list[str] = field(default_factory=list)
    numeric_ids: list[int] = field(default_factory=list)
    session_stats: SessionStats = field(default_factory=SessionStats)


def tokens_for(ids: list[str], outputs: dict[str, str]) -> int:
    """Estimated tokens of the outputs recorded for the given IDs."""
    texts = [outputs[tool_id] for tool_id in ids if tool_id in outputs]
    return sum(estimate_tokens_batch(texts))


class Janitor:
    """Runs idle passes for any session of a store."""

    def __init__(
        self,
        store: StateStore,
        config: Config,
        accessor: SessionAccessor,
        notifier: Notifier,
        *,
        analyzer: LLMAnalyzer | None = None,
        working_directory: str | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._accessor = accessor
        self._notifier = notifier
        self._analyzer = analyzer
        self._working_directory = working_directory

    async def run_on_idle(self, session_id: str) -> PruningResult | None:
        """Run one idle pass. Never raises.

        Returns:
            PruningResult, or None when nothing was pruned or the pass failed.
        """
        try:
            return await self._run(session_id)
        except Exception as e:
            log.error("Idle pass failed for %s: %s", session_id, e)
            return None

    async def _run(self, session_id: str) -> PruningResult | None:
        state = await self._store.ensure_restored(session_id)
        info, messages = await asyncio.gather(
            self._session_info(session_id),
            self._accessor.messages(session_id, self._config.transcript_limit),
        )

        if info is not None and info.is_subagent:
            return None
        if not messages or len(messages) < MIN_MESSAGES:
            return None
        if info is not None and info.title:
            state.name = info.title

        self._store.observe_window(session_id, messages)
        agent = find_current_agent(messages)
        parsed = parse_transcript(messages, self._store.tool_parameters)
        unpruned = [tool_id for tool_id in parsed.tool_call_ids if tool_id not in state.pruned_ids]

        if not unpruned and state.gc_pending is None:
            return None

        # Decide everything before touching state so a failure applies nothing
        deduplicated = self._deduplicate(parsed, unpruned)
        claimed = set(deduplicated)
        remaining = [tool_id for tool_id in unpruned if tool_id not in claimed]
        llm_ids = await self._analyze(session_id, state, parsed, remaining, messages)

        deduplicated = state.add_pruned(deduplicated)
        llm_ids = state.add_pruned(llm_ids)

        if deduplicated:
            gc_tokens = tokens_for(deduplicated, parsed.outputs)
            state.add_gc(gc_tokens, len(deduplicated))
            state.stats.total_gc_tokens += gc_tokens
            state.stats.total_gc_tools += len(deduplicated)
            log.debug("Deduplicated %d tools (~%s)", len(deduplicated), format_token_count(gc_tokens))

        tokens_saved = tokens_for(llm_ids, parsed.outputs)
        state.stats.total_tools_pruned += len(llm_ids)
        state.stats.total_tokens_saved += tokens_saved

        if not llm_ids and state.gc_pending is None:
            return None

        await self._notify(session_id, state, llm_ids, tokens_saved, parsed, agent)

        if deduplicated or llm_ids:
            self._store.schedule_save(session_id)

        numeric_ids = state.ids.numeric_ids_for([*deduplicated, *llm_ids])
        if llm_ids:
            candidates = len(remaining)
            log.info(
                "Pruned %d/%d tools, %d kept (~%s) ids=%s",
                len(llm_ids), candidates, candidates - len(llm_ids), format_token_count(tokens_saved),
                numeric_ids,
            )
        elif not deduplicated:
            return None

        return PruningResult(
            pruned_count=len(llm_ids),
            tokens_saved=tokens_saved,
            llm_pruned_ids=llm_ids,
            deduplicated_ids=deduplicated,
            numeric_ids=numeric_ids,
            session_stats=SessionStats(**state.stats.to_dict()),
        )

    def _deduplicate(self, parsed: ParsedTranscript, unpruned: list[str]) -> list[str]:
        if not self._config.strategies.deduplication.enabled or not unpruned:
            return []
        outcome = run_strategies(
            parsed.metadata,
            unpruned,
            self._config.protected_for("deduplication"),
            enabled=["deduplication"],
        )
        return outcome.pruned_ids

    async def _analyze(
        self,
        session_id: str,
        state: SessionState,
        parsed: ParsedTranscript,
        remaining: list[str],
        messages: list[dict],
    ) -> list[str]:
        on_idle = self._config.strategies.on_idle
        if not on_idle.enabled or self._analyzer is None or not remaining:
            return []

        protected = self._config.protected_for("on_idle")
        candidates = []
        for tool_id in remaining:
            record = parsed.metadata.get(tool_id)
            if record is None or record.tool.lower() not in protected:
                candidates.append(tool_id)
        if not candidates:
            return []

        try:
            result = await self._analyzer.analyze(
                candidates,
                messages,
                protected,
                pruned_ids=state.pruned_ids,
                session_model=self._store.session_models.get(session_id),
            )
        except AnalysisError as e:
            if on_idle.show_model_error_toasts:
                await send_warning(self._notifier, session_id, "Pruning analysis failed", str(e))
            raise
        return result.pruned_ids

    async def _notify(
        self,
        session_id: str,
        state: SessionState,
        llm_ids: list[str],
        tokens_saved: int,
        parsed: ParsedTranscript,
        agent: str | None,
    ) -> None:
        summary = PruneSummary(
            pruned_ids=llm_ids,
            tokens_saved=tokens_saved,
            metadata=parsed.metadata,
            gc_pending=state.gc_pending,
            session_stats=state.stats,
        )
        mode = self._config.pruning_summary
        sent = await send_prune_notification(
            self._notifier,
            session_id,
            summary,
            mode,
            agent=agent,
            working_directory=self._working_directory,
        )
        if sent or mode == "off":
            state.gc_pending = None

    async def _session_info(self, session_id: str) -> SessionInfo | None:
        try:
            return await self._accessor.get(session_id)
        except Exception as e:
            log.warning("Could not load session %s: %s", session_id, e)
            return None
