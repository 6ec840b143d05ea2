"""Tests for the idle-time pruning pass."""

from __future__ import annotations

from pathlib import Path

from contextprune.config import Config
from contextprune.host import SessionInfo
from contextprune.pruning import Janitor
from contextprune.state import StateStorage, StateStore
from contextprune.strategies.analysis import LLMAnalyzer
from tests.utils import (
    FakeAccessor,
    FakeProvider,
    RecordingNotifier,
    assistant_message,
    tool_part,
    user_message,
)


def transcript() -> list[dict]:
    return [
        user_message("look at a.py", agent="plan"),
        assistant_message(tool_part("c1", "read", {"filePath": "a.py"}, output="a" * 400)),
        assistant_message(tool_part("c2", "grep", {"pattern": "TODO"}, output="b" * 40)),
        assistant_message(tool_part("c3", "read", {"filePath": "a.py"}, output="a" * 400)),
        user_message("thanks"),
    ]


def make_janitor(
    tmp_path: Path,
    config: Config | None = None,
    sessions: list[SessionInfo] | None = None,
    messages: list[dict] | None = None,
    analyzer: LLMAnalyzer | None = None,
    notifier: RecordingNotifier | None = None,
) -> tuple[Janitor, StateStore, RecordingNotifier]:
    config = config or Config()
    accessor = FakeAccessor(
        sessions if sessions is not None else [SessionInfo("s1", title="Refactor")],
        {"s1": transcript() if messages is None else messages},
    )
    store = StateStore(StateStorage(tmp_path), accessor)
    notifier = notifier or RecordingNotifier()
    janitor = Janitor(store, config, accessor, notifier, analyzer=analyzer, working_directory="/work")
    return janitor, store, notifier


def analysis_config(**on_idle) -> Config:
    config = Config()
    config.strategies.on_idle.enabled = True
    config.strategies.on_idle.model = "openai/gpt-4o-mini"
    for key, value in on_idle.items():
        setattr(config.strategies.on_idle, key, value)
    return config


class TestDeduplicationPass:
    """Idle passes without the analysis model."""

    async def test_duplicate_read_pruned(self, tmp_path: Path) -> None:
        janitor, store, notifier = make_janitor(tmp_path)
        result = await janitor.run_on_idle("s1")

        assert result is not None
        assert result.deduplicated_ids == ["c1"]
        assert result.numeric_ids == [1]
        assert result.llm_pruned_ids == []
        assert result.pruned_count == 0

        state = store.get("s1")
        assert state.pruned_ids == {"c1"}
        assert state.stats.total_gc_tools == 1
        assert state.stats.total_gc_tokens > 0
        assert state.stats.total_tools_pruned == 0
        assert state.gc_pending is None
        assert state.name == "Refactor"

        session_id, notification = notifier.sent[0]
        assert session_id == "s1"
        assert notification.agent == "build"
        assert "1 deduplicated tools" in notification.message

        await store.flush()
        assert StateStorage(tmp_path).load("s1").pruned_ids == {"c1"}

    async def test_second_pass_finds_nothing(self, tmp_path: Path) -> None:
        janitor, _, notifier = make_janitor(tmp_path)
        await janitor.run_on_idle("s1")
        assert await janitor.run_on_idle("s1") is None
        assert len(notifier.sent) == 1

    async def test_dedup_disabled(self, tmp_path: Path) -> None:
        config = Config()
        config.strategies.deduplication.enabled = False
        janitor, store, _ = make_janitor(tmp_path, config)
        assert await janitor.run_on_idle("s1") is None
        assert store.get("s1").pruned_ids == set()

    async def test_protected_duplicates_kept(self, tmp_path: Path) -> None:
        config = Config()
        config.strategies.deduplication.protected_tools = ["read"]
        janitor, store, _ = make_janitor(tmp_path, config)
        assert await janitor.run_on_idle("s1") is None
        assert store.get("s1").pruned_ids == set()

    async def test_summary_off_clears_pending(self, tmp_path: Path) -> None:
        config = Config(pruning_summary="off")
        janitor, store, notifier = make_janitor(tmp_path, config)
        assert await janitor.run_on_idle("s1") is not None
        assert notifier.sent == []
        assert store.get("s1").gc_pending is None

    async def test_failed_notification_keeps_pending(self, tmp_path: Path) -> None:
        janitor, store, _ = make_janitor(tmp_path, notifier=RecordingNotifier(fail=True))
        await janitor.run_on_idle("s1")
        assert store.get("s1").gc_pending.tools_deduped == 1


class TestSkips:
    """Sessions the pass leaves alone."""

    async def test_subagent(self, tmp_path: Path) -> None:
        janitor, store, _ = make_janitor(tmp_path, sessions=[SessionInfo("s1", parent_id="p")])
        assert await janitor.run_on_idle("s1") is None
        assert store.get("s1").pruned_ids == set()

    async def test_short_transcript(self, tmp_path: Path) -> None:
        janitor, _, _ = make_janitor(tmp_path, messages=transcript()[:2])
        assert await janitor.run_on_idle("s1") is None

    async def test_transcript_failure(self, tmp_path: Path) -> None:
        janitor, store, _ = make_janitor(tmp_path)
        janitor._accessor.fail = True
        assert await janitor.run_on_idle("s1") is None


class TestAnalysisPass:
    """Idle passes with the analysis model."""

    async def test_model_selection_applied(self, tmp_path: Path) -> None:
        config = analysis_config()
        provider = FakeProvider("m", reply='{"pruned_tool_call_ids": ["c2", "c1"], "reasoning": "stale"}')
        analyzer = LLMAnalyzer(config.strategies.on_idle, lambda model: provider)
        janitor, store, notifier = make_janitor(tmp_path, config, analyzer=analyzer)

        result = await janitor.run_on_idle("s1")
        assert result.deduplicated_ids == ["c1"]
        # c1 was already claimed by deduplication, so only c2 is a candidate
        assert result.llm_pruned_ids == ["c2"]
        assert result.numeric_ids == [1, 2]
        assert result.pruned_count == 1
        assert result.tokens_saved > 0

        state = store.get("s1")
        assert state.pruned_ids == {"c1", "c2"}
        assert state.stats.total_tools_pruned == 1
        assert result.session_stats.total_tokens_saved == result.tokens_saved
        assert "Pruned 1 tool output:" in notifier.sent[0][1].message

    async def test_analysis_failure_applies_nothing(self, tmp_path: Path) -> None:
        config = analysis_config()
        analyzer = LLMAnalyzer(
            config.strategies.on_idle,
            lambda model: FakeProvider(model, error=RuntimeError("rate limited")),
        )
        janitor, store, notifier = make_janitor(tmp_path, config, analyzer=analyzer)

        assert await janitor.run_on_idle("s1") is None
        state = store.get("s1")
        assert state.pruned_ids == set()
        assert state.gc_pending is None
        assert state.stats.total_gc_tools == 0
        assert notifier.sent[0][1].variant == "warning"

    async def test_failure_toast_can_be_disabled(self, tmp_path: Path) -> None:
        config = analysis_config(show_model_error_toasts=False)
        analyzer = LLMAnalyzer(
            config.strategies.on_idle,
            lambda model: FakeProvider(model, error=RuntimeError("boom")),
        )
        janitor, _, notifier = make_janitor(tmp_path, config, analyzer=analyzer)
        assert await janitor.run_on_idle("s1") is None
        assert notifier.sent == []

    async def test_protected_tools_not_sent_to_model(self, tmp_path: Path) -> None:
        config = analysis_config(protected_tools=["grep"])
        provider = FakeProvider("m", reply='{"pruned_tool_call_ids": []}')
        analyzer = LLMAnalyzer(config.strategies.on_idle, lambda model: provider)
        janitor, _, _ = make_janitor(tmp_path, config, analyzer=analyzer)

        await janitor.run_on_idle("s1")
        prompt = provider.prompts[0][0].content
        assert "duplicates already removed): c3" in prompt
