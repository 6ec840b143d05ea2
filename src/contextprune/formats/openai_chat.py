"""OpenAI Chat Completions and Anthropic Messages.

Both use a top-level `messages` array.

OpenAI Chat:
- assistant messages carry `tool_calls[]` with `function.arguments` as JSON text
- results are messages with role="tool" and `tool_call_id`

Anthropic:
- assistant content parts with type="tool_use" carry `id`, `name`, `input`
- results are user content parts with type="tool_result" and `tool_use_id`
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from contextprune.formats.base import (
    ApiFormat,
    FormatAdapter,
    ToolOutput,
    cache_call,
    is_synthetic_text,
)
from contextprune.state.session import SessionState


def _content_parts(message: Any) -> list[Any]:
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, list) else []


def _is_tool_message(message: Any) -> bool:
    return isinstance(message, dict) and message.get("role") == "tool"


def _is_tool_result_part(part: Any) -> bool:
    return isinstance(part, dict) and part.get("type") == "tool_result"


def _lower(value: Any) -> str | None:
    return value.lower() if isinstance(value, str) and value else None


class OpenAIChatAdapter(FormatAdapter):
    """Adapter for `messages`-based bodies (OpenAI Chat and Anthropic)."""

    format = ApiFormat.OPENAI_CHAT
    data_key = "messages"

    def detect(self, body: dict[str, Any]) -> bool:
        return isinstance(body, dict) and isinstance(body.get("messages"), list)

    def cache_tool_parameters(self, data: list[Any], state: SessionState) -> list[str]:
        call_ids = []
        for message in data:
            if not isinstance(message, dict) or message.get("role") != "assistant":
                continue

            for call in message.get("tool_calls") or []:
                if not isinstance(call, dict) or not isinstance(call.get("function"), dict):
                    continue
                function = call["function"]
                call_id = cache_call(state, call.get("id"), function.get("name"), function.get("arguments"))
                if call_id:
                    call_ids.append(call_id)

            for part in _content_parts(message):
                if isinstance(part, dict) and part.get("type") == "tool_use":
                    call_id = cache_call(state, part.get("id"), part.get("name"), part.get("input"))
                    if call_id:
                        call_ids.append(call_id)
        return call_ids

    def inject_synth(self, data: list[Any], instruction: str, nudge_text: str) -> bool:
        for message in reversed(data):
            if not isinstance(message, dict) or message.get("role") != "user":
                continue
            content = message.get("content")
            if is_synthetic_text(content, nudge_text):
                continue

            if isinstance(content, str):
                if instruction in content:
                    return False
                message["content"] = content + "\n\n" + instruction
                return True
            if isinstance(content, list):
                for part in content:
                    if (
                        isinstance(part, dict)
                        and part.get("type") == "text"
                        and isinstance(part.get("text"), str)
                        and instruction in part["text"]
                    ):
                        return False
                content.append({"type": "text", "text": instruction})
                return True
            return False
        return False

    def _iter_result_ids(self, data: list[Any]) -> Iterator[str]:
        for message in data:
            if _is_tool_message(message):
                tool_id = _lower(message.get("tool_call_id"))
                if tool_id:
                    yield tool_id
            elif isinstance(message, dict) and message.get("role") == "user":
                for part in _content_parts(message):
                    if _is_tool_result_part(part):
                        tool_id = _lower(part.get("tool_use_id"))
                        if tool_id:
                            yield tool_id

    def iter_result_keys(self, data: list[Any], state: SessionState) -> list[tuple[str, str | None]]:
        keys = []
        for tool_id in self._iter_result_ids(data):
            record = state.lookup_tool(tool_id)
            keys.append((tool_id, record.tool if record else None))
        return keys

    def build_injection_turn(self, injection: str) -> dict[str, Any]:
        return {"role": "user", "content": injection}

    def extract_tool_outputs(self, data: list[Any], state: SessionState) -> list[ToolOutput]:
        return [
            ToolOutput(id=tool_id, tool_name=tool_name)
            for tool_id, tool_name in self.iter_result_keys(data, state)
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

        for i, message in enumerate(data):
            if _is_tool_message(message):
                if _lower(message.get("tool_call_id")) == target and message.get("content") != pruned_message:
                    data[i] = {**message, "content": pruned_message}
                    replaced = True
                continue

            if not isinstance(message, dict) or message.get("role") != "user":
                continue
            parts = _content_parts(message)
            new_parts = []
            changed = False
            for part in parts:
                if (
                    _is_tool_result_part(part)
                    and _lower(part.get("tool_use_id")) == target
                    and part.get("content") != pruned_message
                ):
                    new_parts.append({**part, "content": pruned_message})
                    changed = True
                else:
                    new_parts.append(part)
            if changed:
                data[i] = {**message, "content": new_parts}
                replaced = True

        return replaced

    def has_tool_outputs(self, data: list[Any]) -> bool:
        for message in data:
            if _is_tool_message(message):
                return True
            if isinstance(message, dict) and message.get("role") == "user":
                if any(_is_tool_result_part(part) for part in _content_parts(message)):
                    return True
        return False

    def get_log_metadata(self, data: list[Any], replaced_count: int, url: str) -> dict[str, Any]:
        metadata = super().get_log_metadata(data, replaced_count, url)
        metadata["total_messages"] = len(data)
        return metadata
