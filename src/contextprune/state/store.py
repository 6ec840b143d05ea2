"""Process-wide store of per-session pruning state.

Lifecycle per session: created on first access, mutated by the request
handler / janitor / prune tool, persisted fire-and-forget after each prune,
restored from disk on demand. The store is passed explicitly to every
component that needs it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from contextprune.host import SessionAccessor
from contextprune.logging import get_logger
from contextprune.state.session import SessionState, SessionStats, ToolCallRecord
from contextprune.state.storage import StateStorage
from contextprune.state.transcript import (
    build_position_map,
    extend_position_map,
    iter_tool_parts,
)

log = get_logger("state")


class StateStore:
    """Owns every SessionState plus the shared tool-parameter cache."""

    def __init__(
        self,
        storage: StateStorage | None = None,
        accessor: SessionAccessor | None = None,
        *,
        transcript_limit: int = 100,
        protected_tools: Iterable[str] = (),
    ) -> None:
        self._storage = storage
        self._accessor = accessor
        self._transcript_limit = transcript_limit
        # Protected calls are never listed, so they get no numbers
        self._protected = {tool.lower() for tool in protected_tools}
        self._sessions: dict[str, SessionState] = {}
        self._tool_parameters: dict[str, ToolCallRecord] = {}
        self._pending_saves: set[asyncio.Task[None]] = set()
        # Writes for one session share a temp file, so they run one at a time
        self._save_locks: dict[str, asyncio.Lock] = {}
        self.last_seen_session_id: str | None = None
        self.session_models: dict[str, str] = {}

    @property
    def tool_parameters(self) -> dict[str, ToolCallRecord]:
        return self._tool_parameters

    def get(self, session_id: str) -> SessionState:
        """Get a session's state, creating it on first access."""
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, tool_parameters=self._tool_parameters)
            self._sessions[session_id] = state
        return state

    def peek(self, session_id: str) -> SessionState | None:
        """Get a session's state without creating it."""
        return self._sessions.get(session_id)

    def sessions(self) -> list[SessionState]:
        return list(self._sessions.values())

    def detached(self) -> SessionState:
        """Throwaway state sharing the tool cache, for requests with no known session."""
        return SessionState(session_id="", tool_parameters=self._tool_parameters)

    async def ensure_restored(self, session_id: str) -> SessionState:
        """Restore persisted state and rebuild numeric IDs, once per session.

        Persisted pruned IDs are merged in (never removed from memory), the
        persisted ID mapping is loaded, then the transcript is replayed so
        calls made since the last save get numbers too.
        """
        state = self.get(session_id)
        if state.restored:
            return state
        state.restored = True

        if self._storage is not None:
            persisted = await asyncio.to_thread(self._storage.load, session_id)
            if persisted is not None:
                state.pruned_ids |= persisted.pruned_ids
                if state.stats == SessionStats():
                    state.stats = persisted.stats
                state.ids.load(persisted.id_mapping)
                state.name = state.name or persisted.session_name
                log.debug(
                    "Restored %d pruned IDs for %s", len(persisted.pruned_ids), session_id
                )

        if self._accessor is not None:
            try:
                messages = await self._accessor.messages(session_id, self._transcript_limit)
            except Exception as e:
                log.warning("Could not fetch transcript for %s: %s", session_id, e)
            else:
                self.observe_window(session_id, messages)

        return state

    def observe_window(self, session_id: str, messages: list[dict[str, Any]]) -> None:
        """Feed a transcript fetched with the store's message limit.

        A window that fills the limit may have lost its oldest messages.
        """
        self.observe_messages(
            session_id, messages, complete=len(messages) < self._transcript_limit
        )

    def observe_messages(
        self,
        session_id: str,
        messages: list[dict[str, Any]],
        *,
        complete: bool = True,
    ) -> None:
        """Feed a transcript into a session's state.

        Updates the Gemini position map, caches tool parameters recorded in
        the transcript and mints numeric IDs in transcript order for calls
        that are not protected.

        Args:
            session_id: Session the transcript belongs to.
            messages: Transcript messages in chronological order.
            complete: Whether `messages` starts at the beginning of the
                session. Only a complete transcript replaces the position
                map; a partial one can only extend it.
        """
        state = self.get(session_id)

        if complete:
            positions = build_position_map(messages)
            if positions:
                state.gemini_positions = positions
        else:
            state.gemini_positions = extend_position_map(state.gemini_positions, messages)

        call_ids = []
        for part in iter_tool_parts(messages):
            tool_id = str(part["callID"]).lower()
            part_state = part.get("state") if isinstance(part.get("state"), dict) else {}
            tool = part.get("tool")
            if tool:
                state.cache_tool(tool_id, str(tool), part_state.get("input"))
            if str(tool or "").lower() not in self._protected:
                call_ids.append(tool_id)

        state.ids.replay(call_ids)

    def numberable(self, state: SessionState, call_ids: Iterable[str]) -> list[str]:
        """Drop call IDs of protected tools."""
        result = []
        for tool_id in call_ids:
            record = state.lookup_tool(tool_id)
            if record is None or record.tool.lower() not in self._protected:
                result.append(tool_id)
        return result

    def schedule_save(self, session_id: str) -> asyncio.Task[None] | None:
        """Persist a session's state without waiting for the write.

        Failures are logged; the in-memory state stays authoritative.

        Returns:
            The background task, or None when persistence is disabled.
        """
        if self._storage is None:
            return None

        state = self.get(session_id)
        storage = self._storage
        pruned = set(state.pruned_ids)
        stats = SessionStats(**state.stats.to_dict())
        mapping = state.ids.mappings()
        name = state.name

        lock = self._save_locks.setdefault(session_id, asyncio.Lock())

        async def _save() -> None:
            async with lock:
                await asyncio.to_thread(storage.save, session_id, pruned, stats, name, mapping)

        task = asyncio.get_running_loop().create_task(_save())
        self._pending_saves.add(task)
        task.add_done_callback(self._save_done)
        return task

    def _save_done(self, task: asyncio.Task[None]) -> None:
        self._pending_saves.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Failed to persist state: %s", error)

    async def flush(self) -> None:
        """Wait for outstanding saves to finish."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)
