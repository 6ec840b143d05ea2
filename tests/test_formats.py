"""Tests for the provider wire-format adapters."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from contextprune.formats import (
    ADAPTERS,
    PRUNED_CONTENT_MESSAGE,
    ApiFormat,
    GeminiAdapter,
    OpenAIChatAdapter,
    OpenAIResponsesAdapter,
    detect_format,
    get_adapter,
)
from contextprune.formats.base import is_synthetic_text, parse_arguments
from contextprune.state.session import SessionState, ToolTracker
from tests.utils import chat_body

NUDGE = "<instruction name=agent_nudge>prune</instruction>"
INSTRUCTION = "<instruction name=context_management>use prune</instruction>"


def anthropic_body() -> dict[str, Any]:
    return {
        "model": "claude",
        "messages": [
            {"role": "user", "content": [{"type": "text", "text": "look at a.py"}]},
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "reading"},
                    {"type": "tool_use", "id": "toolu_1", "name": "read", "input": {"filePath": "a.py"}},
                ],
            },
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_1", "content": "print('a')"},
                ],
            },
        ],
    }


def responses_body() -> dict[str, Any]:
    return {
        "model": "gpt-5",
        "input": [
            {"type": "message", "role": "user", "content": "run tests"},
            {"type": "function_call", "call_id": "fc_1", "name": "bash", "arguments": '{"command": "pytest"}'},
            {"type": "function_call_output", "call_id": "fc_1", "output": "3 passed"},
        ],
    }


def gemini_grep_body() -> dict[str, Any]:
    contents: list[dict[str, Any]] = [{"role": "user", "parts": [{"text": "find TODOs"}]}]
    for i in range(3):
        contents.append({"role": "model", "parts": [{"functionCall": {"name": "grep", "args": {"pattern": f"p{i}"}}}]})
        contents.append({
            "role": "user",
            "parts": [{
                "functionResponse": {"name": "grep", "response": {"output": f"match {i}"}},
                "thoughtSignature": f"sig{i}",
            }],
        })
    return {"contents": contents}


def gemini_state() -> SessionState:
    state = SessionState(session_id="s")
    state.gemini_positions = {"grep:0": "id1", "grep:2": "id3"}
    return state


class TestDetection:
    """Tests for exclusive format detection."""

    def test_each_shape_has_one_adapter(self) -> None:
        bodies = {
            ApiFormat.OPENAI_CHAT: chat_body(),
            ApiFormat.GEMINI: gemini_grep_body(),
            ApiFormat.OPENAI_RESPONSES: responses_body(),
        }
        for expected, body in bodies.items():
            claimed = [fmt for fmt, adapter in ADAPTERS.items() if adapter.detect(body)]
            assert claimed == [expected]

    def test_messages_wins_over_other_arrays(self) -> None:
        body = {"messages": [], "contents": [], "input": []}
        assert detect_format(body).format is ApiFormat.OPENAI_CHAT

    def test_contents_wins_over_input(self) -> None:
        assert detect_format({"contents": [], "input": []}).format is ApiFormat.GEMINI

    @pytest.mark.parametrize("body", [None, [], "text", {"input": "just a string"}, {"prompt": "hi"}])
    def test_unknown_bodies(self, body: Any) -> None:
        assert detect_format(body) is None

    def test_get_adapter_by_name(self) -> None:
        assert isinstance(get_adapter("openai-responses"), OpenAIResponsesAdapter)
        assert get_adapter(ApiFormat.GEMINI).name == "gemini"


class TestHelpers:
    """Tests for shared adapter helpers."""

    def test_parse_arguments(self) -> None:
        assert parse_arguments('{"a": 1}') == {"a": 1}
        assert parse_arguments("") == {}
        assert parse_arguments("{broken") is None
        assert parse_arguments({"a": 1}) == {"a": 1}

    def test_is_synthetic_text(self) -> None:
        assert is_synthetic_text(NUDGE, NUDGE)
        assert is_synthetic_text("<system-reminder>\nhi", NUDGE)
        assert not is_synthetic_text("please fix the bug", NUDGE)
        assert not is_synthetic_text(None, NUDGE)


class TestOpenAIChat:
    """Tests for the OpenAI chat / Anthropic adapter."""

    adapter = OpenAIChatAdapter()

    def test_cache_tool_calls(self) -> None:
        body = chat_body(("Call_1", "read", {"filePath": "a.py"}, "x"), ("call_2", "grep", {"pattern": "y"}, "z"))
        state = SessionState(session_id="s")
        assert self.adapter.cache_tool_parameters(body["messages"], state) == ["call_1", "call_2"]
        assert state.lookup_tool("call_1").parameters == {"filePath": "a.py"}

    def test_malformed_arguments_skipped(self) -> None:
        body = chat_body(("call_1", "read", {}, "x"))
        body["messages"][1]["tool_calls"][0]["function"]["arguments"] = "{not json"
        state = SessionState(session_id="s")
        assert self.adapter.cache_tool_parameters(body["messages"], state) == []
        assert state.lookup_tool("call_1") is None

    def test_cache_anthropic_tool_use(self) -> None:
        state = SessionState(session_id="s")
        assert self.adapter.cache_tool_parameters(anthropic_body()["messages"], state) == ["toolu_1"]
        assert state.lookup_tool("toolu_1").tool == "read"

    def test_extract_outputs(self) -> None:
        state = SessionState(session_id="s")
        data = chat_body(("call_1", "read", {}, "x"))["messages"]
        self.adapter.cache_tool_parameters(data, state)
        outputs = self.adapter.extract_tool_outputs(data, state)
        assert [(o.id, o.tool_name) for o in outputs] == [("call_1", "read")]

        anthropic = anthropic_body()["messages"]
        assert [o.id for o in self.adapter.extract_tool_outputs(anthropic, state)] == ["toolu_1"]

    def test_replace_preserves_length_and_siblings(self) -> None:
        data = chat_body(("call_1", "read", {}, "big"), ("call_2", "read", {}, "keep"))["messages"]
        before = len(data)
        state = SessionState(session_id="s")
        assert self.adapter.replace_tool_output(data, "CALL_1", PRUNED_CONTENT_MESSAGE, state)
        assert len(data) == before
        assert data[2] == {"role": "tool", "tool_call_id": "call_1", "content": PRUNED_CONTENT_MESSAGE}
        assert data[4]["content"] == "keep"

    def test_replace_anthropic_tool_result(self) -> None:
        data = anthropic_body()["messages"]
        state = SessionState(session_id="s")
        assert self.adapter.replace_tool_output(data, "toolu_1", PRUNED_CONTENT_MESSAGE, state)
        assert data[2]["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "toolu_1",
            "content": PRUNED_CONTENT_MESSAGE,
        }

    def test_replace_twice_is_noop(self) -> None:
        data = chat_body(("call_1", "read", {}, "big"))["messages"]
        state = SessionState(session_id="s")
        self.adapter.replace_tool_output(data, "call_1", PRUNED_CONTENT_MESSAGE, state)
        assert not self.adapter.replace_tool_output(data, "call_1", PRUNED_CONTENT_MESSAGE, state)

    def test_inject_synth_string_content(self) -> None:
        data = chat_body(("call_1", "read", {}, "x"), user_text="fix it")["messages"]
        assert self.adapter.inject_synth(data, INSTRUCTION, NUDGE)
        assert data[0]["content"] == "fix it\n\n" + INSTRUCTION
        assert not self.adapter.inject_synth(data, INSTRUCTION, NUDGE)

    def test_inject_synth_parts_content(self) -> None:
        data = anthropic_body()["messages"][:1]
        assert self.adapter.inject_synth(data, INSTRUCTION, NUDGE)
        assert data[0]["content"][-1] == {"type": "text", "text": INSTRUCTION}

    def test_inject_synth_skips_injected_turns(self) -> None:
        data = [
            {"role": "user", "content": "real question"},
            {"role": "user", "content": "<system-reminder>\nlisting"},
        ]
        assert self.adapter.inject_synth(data, INSTRUCTION, NUDGE)
        assert data[0]["content"].endswith(INSTRUCTION)
        assert data[1]["content"] == "<system-reminder>\nlisting"

    def test_inject_prunable_list_once(self) -> None:
        data = chat_body()["messages"]
        assert self.adapter.inject_prunable_list(data, "listing")
        assert data[-1] == {"role": "user", "content": "listing"}
        assert not self.adapter.inject_prunable_list(data, "listing")
        assert not self.adapter.inject_prunable_list(data, "")
        assert len(data) == 2

    def test_has_tool_outputs(self) -> None:
        assert self.adapter.has_tool_outputs(chat_body(("c", "read", {}, "x"))["messages"])
        assert self.adapter.has_tool_outputs(anthropic_body()["messages"])
        assert not self.adapter.has_tool_outputs(chat_body()["messages"])

    def test_track_counts_unprotected_once(self) -> None:
        data = chat_body(("c1", "read", {}, "x"), ("c2", "task", {}, "y"))["messages"]
        state = SessionState(session_id="s")
        self.adapter.cache_tool_parameters(data, state)
        tracker = ToolTracker()
        assert self.adapter.track_new_tool_results(data, tracker, {"task"}, state) == 1
        assert self.adapter.track_new_tool_results(data, tracker, {"task"}, state) == 0

    def test_log_metadata(self) -> None:
        data = chat_body()["messages"]
        metadata = self.adapter.get_log_metadata(data, 2, "https://api.openai.com/v1/chat/completions")
        assert metadata["format"] == "openai-chat"
        assert metadata["replaced_count"] == 2
        assert metadata["total_messages"] == 1


class TestOpenAIResponses:
    """Tests for the Responses API adapter."""

    adapter = OpenAIResponsesAdapter()

    def test_cache_and_extract(self) -> None:
        data = responses_body()["input"]
        state = SessionState(session_id="s")
        assert self.adapter.cache_tool_parameters(data, state) == ["fc_1"]
        assert state.lookup_tool("fc_1").parameters == {"command": "pytest"}
        assert [(o.id, o.tool_name) for o in self.adapter.extract_tool_outputs(data, state)] == [("fc_1", "bash")]

    def test_replace_output(self) -> None:
        data = responses_body()["input"]
        state = SessionState(session_id="s")
        assert self.adapter.replace_tool_output(data, "fc_1", PRUNED_CONTENT_MESSAGE, state)
        assert data[2] == {"type": "function_call_output", "call_id": "fc_1", "output": PRUNED_CONTENT_MESSAGE}
        assert len(data) == 3

    def test_inject_synth_input_text_parts(self) -> None:
        data = [{"type": "message", "role": "user", "content": [{"type": "input_text", "text": "hi"}]}]
        assert self.adapter.inject_synth(data, INSTRUCTION, NUDGE)
        assert data[0]["content"][-1] == {"type": "input_text", "text": INSTRUCTION}
        assert not self.adapter.inject_synth(data, INSTRUCTION, NUDGE)

    def test_injection_turn_shape(self) -> None:
        data = responses_body()["input"]
        self.adapter.inject_prunable_list(data, "listing")
        assert data[-1] == {"type": "message", "role": "user", "content": "listing"}

    def test_log_metadata_format(self) -> None:
        metadata = self.adapter.get_log_metadata(responses_body()["input"], 0, "")
        assert metadata["format"] == "openai-responses-api"


class TestGemini:
    """Tests for positional correlation."""

    adapter = GeminiAdapter()

    def test_replace_first_occurrence_only(self) -> None:
        data = gemini_grep_body()["contents"]
        original = copy.deepcopy(data)
        assert self.adapter.replace_tool_output(data, "id1", PRUNED_CONTENT_MESSAGE, gemini_state())

        assert data[2]["parts"][0]["functionResponse"]["response"] == {
            "name": "grep",
            "content": PRUNED_CONTENT_MESSAGE,
        }
        assert data[2]["parts"][0]["thoughtSignature"] == "sig0"
        assert data[4] == original[4]
        assert data[6] == original[6]
        assert len(data) == len(original)

    def test_replace_third_occurrence_only(self) -> None:
        data = gemini_grep_body()["contents"]
        original = copy.deepcopy(data)
        assert self.adapter.replace_tool_output(data, "id3", PRUNED_CONTENT_MESSAGE, gemini_state())
        assert data[2] == original[2]
        assert data[4] == original[4]
        assert data[6]["parts"][0]["functionResponse"]["response"]["content"] == PRUNED_CONTENT_MESSAGE

    def test_unmapped_position_never_replaced(self) -> None:
        data = gemini_grep_body()["contents"]
        state = gemini_state()
        self.adapter.replace_tool_output(data, "id1", PRUNED_CONTENT_MESSAGE, state)
        self.adapter.replace_tool_output(data, "id3", PRUNED_CONTENT_MESSAGE, state)
        assert data[4]["parts"][0]["functionResponse"]["response"] == {"output": "match 1"}

    def test_no_position_map_means_no_outputs(self) -> None:
        data = gemini_grep_body()["contents"]
        state = SessionState(session_id="s")
        assert self.adapter.extract_tool_outputs(data, state) == []
        assert self.adapter.cache_tool_parameters(data, state) == []
        assert not self.adapter.replace_tool_output(data, "id1", PRUNED_CONTENT_MESSAGE, state)

    def test_extract_only_mapped(self) -> None:
        outputs = self.adapter.extract_tool_outputs(gemini_grep_body()["contents"], gemini_state())
        assert [(o.id, o.tool_name) for o in outputs] == [("id1", "grep"), ("id3", "grep")]

    def test_cache_uses_position_map(self) -> None:
        state = gemini_state()
        assert self.adapter.cache_tool_parameters(gemini_grep_body()["contents"], state) == ["id1", "id3"]
        assert state.lookup_tool("id3").parameters == {"pattern": "p2"}

    def test_result_keys_fall_back_to_positions(self) -> None:
        keys = self.adapter.iter_result_keys(gemini_grep_body()["contents"], gemini_state())
        assert keys == [("id1", "grep"), ("grep:1", "grep"), ("id3", "grep")]

    def test_inject_synth_skips_injected_turn(self) -> None:
        data = gemini_grep_body()["contents"]
        data.append({"role": "user", "parts": [{"text": "<system-reminder>\nlisting"}]})
        assert self.adapter.inject_synth(data, INSTRUCTION, NUDGE)
        # Last real user turn is the third function response
        assert data[6]["parts"][-1] == {"text": INSTRUCTION}
        assert not self.adapter.inject_synth(data, INSTRUCTION, NUDGE)

    def test_injection_turn_shape(self) -> None:
        assert self.adapter.build_injection_turn("x") == {"role": "user", "parts": [{"text": "x"}]}

    def test_has_tool_outputs(self) -> None:
        assert self.adapter.has_tool_outputs(gemini_grep_body()["contents"])
        assert not self.adapter.has_tool_outputs([{"role": "user", "parts": [{"text": "hi"}]}])
