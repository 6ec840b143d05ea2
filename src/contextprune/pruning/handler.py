"""Per-request rewrite pipeline.

For one outbound request body:
1. Pick the adapter whose `detect` claims the body (pass through if none).
2. Cache tool parameters.
3. With the prune tool enabled: inject the synthetic instruction, then the
   prunable-tools listing (and the nudge when due).
4. Stop if the request carries no tool outputs.
5. Resolve the active non-subagent session and its pruned-ID set.
6. Stop if nothing is pruned.
7. Replace every pruned, unprotected output with the placeholder.

The pipeline works on a deep copy. Any failure returns the original body
untouched; pruning must never break the underlying call.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from contextprune.config.schema import Config
from contextprune.formats import PRUNED_CONTENT_MESSAGE, FormatAdapter, detect_format
from contextprune.host import SessionAccessor
from contextprune.logging import get_logger, save_wrapped_context
from contextprune.prompts import NUDGE_INSTRUCTION, SYNTHETIC_INSTRUCTION
from contextprune.pruning.injector import (
    build_end_injection,
    build_prunable_tools_list,
    should_nudge,
)
from contextprune.state.session import SessionState
from contextprune.state.store import StateStore

log = get_logger("fetch")


@dataclass
class HandlerResult:
    """Outcome of one request.

    Attributes:
        modified: True if `body` differs from the input body
        body: The rewritten body, or the original object when unmodified
        format: Name of the adapter that handled the body, if any
        replaced_count: Tool outputs replaced with the placeholder
    """

    modified: bool
    body: Any
    format: str | None = None
    replaced_count: int = 0


class RequestHandler:
    """Runs the rewrite pipeline against a shared StateStore."""

    def __init__(
        self,
        store: StateStore,
        config: Config,
        accessor: SessionAccessor | None = None,
        *,
        instruction: str = SYNTHETIC_INSTRUCTION,
        nudge_text: str = NUDGE_INSTRUCTION,
        working_directory: str | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._accessor = accessor
        self._instruction = instruction
        self._nudge_text = nudge_text
        self._working_directory = working_directory

    async def handle(
        self,
        body: Any,
        *,
        session_id: str | None = None,
        url: str = "",
    ) -> HandlerResult:
        """Rewrite one request body. Never raises."""
        adapter = detect_format(body)
        if adapter is None:
            return HandlerResult(modified=False, body=body)

        try:
            return await self._handle(adapter, body, session_id, url)
        except Exception as e:
            log.warning("Rewrite failed (%s), forwarding original body: %s", adapter.name, e)
            return HandlerResult(modified=False, body=body, format=adapter.name)

    async def _handle(
        self,
        adapter: FormatAdapter,
        body: dict[str, Any],
        session_id: str | None,
        url: str,
    ) -> HandlerResult:
        working = copy.deepcopy(body)
        data = adapter.get_data_array(working)
        unmodified = HandlerResult(modified=False, body=body, format=adapter.name)
        if data is None:
            return unmodified

        if session_id and await self._is_subagent(session_id):
            adapter.cache_tool_parameters(data, self._store.detached())
            return unmodified

        bound = session_id or self._store.last_seen_session_id
        state = self._store.get(bound) if bound else self._store.detached()
        modified = False

        call_ids = adapter.cache_tool_parameters(data, state)

        if self._config.on_tool_enabled:
            if adapter.inject_synth(data, self._instruction, self._nudge_text):
                modified = True
            if bound and await self._inject_listing(adapter, data, bound, call_ids):
                modified = True

        if not adapter.has_tool_outputs(data):
            return self._result(adapter, body, working, modified)

        active_id = await self._resolve_active_session(session_id)
        if active_id is None:
            return self._result(adapter, body, working, modified)
        active = await self._store.ensure_restored(active_id)
        if not active.pruned_ids:
            return self._result(adapter, body, working, modified)

        replaced = self._replace_pruned(adapter, data, active)
        if replaced:
            log.info("Replaced %d pruned tool outputs (%s)", replaced, adapter.name)
            save_wrapped_context(active_id, data, adapter.get_log_metadata(data, replaced, url))
            modified = True

        result = self._result(adapter, body, working, modified)
        result.replaced_count = replaced
        return result

    async def _inject_listing(
        self,
        adapter: FormatAdapter,
        data: list[Any],
        session_id: str,
        call_ids: list[str],
    ) -> bool:
        state = await self._store.ensure_restored(session_id)
        # Request order matches transcript order, so numbering agrees with a replay
        state.ids.replay(self._store.numberable(state, call_ids))

        protected = self._config.protected_for("prune_tool")
        listing = build_prunable_tools_list(
            state, state.unpruned_ids(), protected, self._working_directory
        )
        if not listing:
            return False

        adapter.track_new_tool_results(data, state.tracker, set(protected), state)
        count = state.tracker.tool_result_count
        include_nudge = should_nudge(count, self._config.nudge_frequency)
        injection = build_end_injection(listing.text, include_nudge)
        if not adapter.inject_prunable_list(data, injection):
            return False

        log.debug(
            "Injected prunable tools list (%s): ids=%s nudge=%s since_prune=%d",
            adapter.name, listing.numeric_ids, include_nudge, count,
        )
        return True

    def _replace_pruned(self, adapter: FormatAdapter, data: list[Any], state: SessionState) -> int:
        protected = {tool.lower() for tool in self._config.protected_tools}
        replaced = 0
        for output in adapter.extract_tool_outputs(data, state):
            if output.tool_name and output.tool_name.lower() in protected:
                continue
            if output.id in state.pruned_ids:
                if adapter.replace_tool_output(data, output.id, PRUNED_CONTENT_MESSAGE, state):
                    replaced += 1
        return replaced

    async def _is_subagent(self, session_id: str) -> bool:
        """Subagent check that fails open."""
        if self._accessor is None:
            return False
        try:
            info = await self._accessor.get(session_id)
        except Exception as e:
            log.warning("Subagent check failed for %s, assuming not: %s", session_id, e)
            return False
        return bool(info and info.is_subagent)

    async def _resolve_active_session(self, session_id: str | None) -> str | None:
        """The session whose pruned IDs apply to this request.

        An explicit session wins. Otherwise the most recent non-subagent
        session from the host, falling back to the last session seen.
        """
        if session_id:
            return session_id
        if self._accessor is None:
            return self._store.last_seen_session_id
        try:
            sessions = await self._accessor.list()
        except Exception as e:
            log.warning("Could not list sessions: %s", e)
            return self._store.last_seen_session_id
        for info in sessions:
            if not info.is_subagent:
                return info.id
        return None

    @staticmethod
    def _result(adapter: FormatAdapter, body: Any, working: Any, modified: bool) -> HandlerResult:
        return HandlerResult(
            modified=modified,
            body=working if modified else body,
            format=adapter.name,
        )
