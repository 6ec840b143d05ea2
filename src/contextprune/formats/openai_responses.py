"""OpenAI Responses API `input` bodies.

Items are typed:
- {"type": "message", "role": "user", "content": str | [{"type": "input_text", ...}]}
- {"type": "function_call", "call_id", "name", "arguments"} for invocations
- {"type": "function_call_output", "call_id", "output"} for results
"""

from __future__ import annotations

from typing import Any

from contextprune.formats.base import (
    ApiFormat,
    FormatAdapter,
    ToolOutput,
    cache_call,
    is_synthetic_text,
)
from contextprune.state.session import SessionState


def _is_output(item: Any) -> bool:
    return isinstance(item, dict) and item.get("type") == "function_call_output"


def _call_id(item: dict[str, Any]) -> str | None:
    call_id = item.get("call_id")
    return call_id.lower() if isinstance(call_id, str) and call_id else None


class OpenAIResponsesAdapter(FormatAdapter):
    """Adapter for `input`-based bodies."""

    format = ApiFormat.OPENAI_RESPONSES
    data_key = "input"

    def detect(self, body: dict[str, Any]) -> bool:
        return (
            isinstance(body, dict)
            and isinstance(body.get("input"), list)
            and not isinstance(body.get("messages"), list)
            and not isinstance(body.get("contents"), list)
        )

    def cache_tool_parameters(self, data: list[Any], state: SessionState) -> list[str]:
        call_ids = []
        for item in data:
            if isinstance(item, dict) and item.get("type") == "function_call":
                call_id = cache_call(state, item.get("call_id"), item.get("name"), item.get("arguments"))
                if call_id:
                    call_ids.append(call_id)
        return call_ids

    def inject_synth(self, data: list[Any], instruction: str, nudge_text: str) -> bool:
        for item in reversed(data):
            if not isinstance(item, dict):
                continue
            if item.get("type") != "message" or item.get("role") != "user":
                continue
            content = item.get("content")
            if is_synthetic_text(content, nudge_text):
                continue

            if isinstance(content, str):
                if instruction in content:
                    return False
                item["content"] = content + "\n\n" + instruction
                return True
            if isinstance(content, list):
                for part in content:
                    if (
                        isinstance(part, dict)
                        and part.get("type") == "input_text"
                        and isinstance(part.get("text"), str)
                        and instruction in part["text"]
                    ):
                        return False
                content.append({"type": "input_text", "text": instruction})
                return True
            return False
        return False

    def iter_result_keys(self, data: list[Any], state: SessionState) -> list[tuple[str, str | None]]:
        keys = []
        for item in data:
            if not _is_output(item):
                continue
            call_id = _call_id(item)
            if call_id:
                record = state.lookup_tool(call_id)
                keys.append((call_id, record.tool if record else None))
        return keys

    def build_injection_turn(self, injection: str) -> dict[str, Any]:
        return {"type": "message", "role": "user", "content": injection}

    def extract_tool_outputs(self, data: list[Any], state: SessionState) -> list[ToolOutput]:
        return [
            ToolOutput(id=call_id, tool_name=tool_name)
            for call_id, tool_name in self.iter_result_keys(data, state)
        ]

    def replace_tool_output(
        self,
        data: list[Any],
        tool_id: str,
        pruned_message: str,
        state: SessionState,
    ) -> bool:
        target = tool_id.lower()
        replaced = False
        for i, item in enumerate(data):
            if _is_output(item) and _call_id(item) == target and item.get("output") != pruned_message:
                data[i] = {**item, "output": pruned_message}
                replaced = True
        return replaced

    def has_tool_outputs(self, data: list[Any]) -> bool:
        return any(_is_output(item) for item in data)

    def get_log_metadata(self, data: list[Any], replaced_count: int, url: str) -> dict[str, Any]:
        metadata = super().get_log_metadata(data, replaced_count, url)
        metadata["format"] = "openai-responses-api"
        return metadata
