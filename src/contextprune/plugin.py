"""ContextPruner: the object a host wires into its agent loop.

Hooks exposed to the host:
- rewrite(): once per outbound provider request
- on_idle(): when a session goes idle
- prune(): when the agent calls the prune tool
- bind_session() / observe_messages(): session and transcript events

All hooks are pass-throughs when `enabled` is false, and none of them
raise into the host.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from contextprune.config import Config, ConfigIssue, LoadedConfig, load_config
from contextprune.host import LoggingNotifier, Notifier, SessionAccessor
from contextprune.logging import get_logger, setup_logging
from contextprune.pruning.handler import RequestHandler
from contextprune.pruning.janitor import Janitor, PruningResult
from contextprune.pruning.notification import send_warning
from contextprune.pruning.prune_tool import PruneTool, PruneToolResult
from contextprune.state.storage import StateStorage
from contextprune.state.store import StateStore
from contextprune.strategies.analysis import LLMAnalyzer, ProviderFactory
from contextprune.transport import PruningTransport, RequestRewriter, RewriteResult

log = get_logger("plugin")


class ContextPruner:
    """Wires config, state, the request handler, janitor and prune tool.

    Args:
        config: Explicit config; loaded from the config files when None.
        accessor: Host session accessor. Without one, idle passes are skipped
            and the last bound session is treated as active.
        notifier: Notification sink; logs when None.
        storage: State persistence; defaults to `state.directory`.
        provider_factory: Builds an LLMProvider for a model name, for the
            idle analysis pass.
        project_dir: Project root for config discovery and path display.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        accessor: SessionAccessor | None = None,
        notifier: Notifier | None = None,
        storage: StateStorage | None = None,
        provider_factory: ProviderFactory | None = None,
        project_dir: str | Path | None = None,
    ) -> None:
        self._config_issues: list[ConfigIssue] = []
        if config is None:
            loaded = load_config(project_dir)
            config = loaded.config
            self._config_issues = loaded.issues
        self.config = config
        setup_logging(config.logging, debug=config.debug)

        working_directory = str(project_dir) if project_dir else None
        self._accessor = accessor
        self._notifier = notifier or LoggingNotifier()
        self.store = StateStore(
            storage if storage is not None else StateStorage(config.state.directory),
            accessor,
            transcript_limit=config.transcript_limit,
            protected_tools=config.protected_for("prune_tool"),
        )
        self.handler = RequestHandler(
            self.store, config, accessor, working_directory=working_directory
        )
        self.rewriter = RequestRewriter(self.handler, enabled=config.enabled)

        analyzer = None
        if config.strategies.on_idle.enabled:
            analyzer = LLMAnalyzer(config.strategies.on_idle, provider_factory)
        self.janitor = None
        if accessor is not None:
            self.janitor = Janitor(
                self.store,
                config,
                accessor,
                self._notifier,
                analyzer=analyzer,
                working_directory=working_directory,
            )
        self.prune_tool = PruneTool(
            self.store, config, accessor, self._notifier, working_directory=working_directory
        )

        log.info(
            "contextprune initialized: enabled=%s prune_tool=%s on_idle=%s protected=%s",
            config.enabled,
            config.on_tool_enabled,
            config.strategies.on_idle.enabled,
            config.protected_tools,
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def tools(self) -> list[dict[str, Any]]:
        """Tool definitions the host should register."""
        if not self.enabled or not self.config.on_tool_enabled:
            return []
        return [self.prune_tool.definition]

    async def bind_session(self, session_id: str, model: str | None = None) -> bool:
        """Record the session a chat turn belongs to.

        Subagent sessions are ignored. Config problems found at startup are
        reported once, to the first bound session.

        Returns:
            True if the session was bound.
        """
        if not self.enabled:
            return False
        if await self._is_subagent(session_id):
            return False
        self.store.last_seen_session_id = session_id
        if model:
            self.store.session_models[session_id] = model
        await self._report_config_issues(session_id)
        return True

    async def rewrite(
        self,
        body: Any,
        session_id: str | None = None,
        url: str = "",
    ) -> RewriteResult:
        """The request-rewrite hook."""
        return await self.rewriter.rewrite(body, session_id=session_id, url=url)

    async def on_idle(self, session_id: str) -> PruningResult | None:
        """The idle hook. Never raises."""
        if not self.enabled or self.janitor is None:
            return None

        state = self.store.get(session_id)
        if state.tracker.skip_next_idle:
            state.tracker.skip_next_idle = False
            log.debug("Skipping idle pass for %s after manual prune", session_id)
            return None
        if await self._is_subagent(session_id):
            return None
        return await self.janitor.run_on_idle(session_id)

    async def prune(
        self,
        session_id: str,
        ids: list[Any],
        reason: str | None = None,
    ) -> PruneToolResult:
        """The manual prune entry point."""
        if not self.enabled or not self.config.on_tool_enabled:
            return PruneToolResult(message="Pruning is disabled.")
        try:
            return await self.prune_tool.execute(session_id, ids, reason)
        except Exception as e:
            log.error("Prune tool failed for %s: %s", session_id, e)
            return PruneToolResult(message=f"Pruning failed: {e}")

    def observe_messages(self, session_id: str, messages: list[dict[str, Any]]) -> None:
        """Feed the full session transcript (Gemini position map, tool cache)."""
        if self.enabled:
            self.store.observe_messages(session_id, messages)

    def transport(self, inner: httpx.AsyncBaseTransport | None = None) -> PruningTransport:
        """An httpx transport that prunes requests before `inner` sends them."""
        return PruningTransport(inner or httpx.AsyncHTTPTransport(), self.rewriter)

    async def close(self) -> None:
        """Wait for pending state writes."""
        await self.store.flush()

    async def _is_subagent(self, session_id: str) -> bool:
        if self._accessor is None:
            return False
        try:
            info = await self._accessor.get(session_id)
        except Exception as e:
            log.warning("Subagent check failed for %s, assuming not: %s", session_id, e)
            return False
        return bool(info and info.is_subagent)

    async def _report_config_issues(self, session_id: str) -> None:
        if not self._config_issues:
            return
        issues, self._config_issues = self._config_issues, []
        for source, grouped in LoadedConfig(self.config, issues).issues_by_source().items():
            lines = "\n".join(f"- {issue}" for issue in grouped)
            log.warning("Config issues in %s:\n%s", source, lines)
            await send_warning(self._notifier, session_id, "contextprune config", f"{source}\n{lines}")
