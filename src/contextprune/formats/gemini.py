"""Google Gemini `contents` bodies.

Tool invocations are `parts[].functionCall` ({name, args}) and results are
`parts[].functionResponse` ({name, response}). Neither carries a call ID,
so results are correlated by position: the n-th response for a tool name
(0-indexed, counted left to right over the whole array) is looked up in the
session's position map under "<name>:<n>".

Extraction and replacement must count identically, so both go through
`_iter_positions`. The scan is stateful and order-dependent; never run it
concurrently over the same array.
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


def _parts(content: Any) -> list[Any]:
    parts = content.get("parts") if isinstance(content, dict) else None
    return parts if isinstance(parts, list) else []


def _iter_positions(
    data: list[Any], field: str
) -> Iterator[tuple[int, int, dict[str, Any], str]]:
    """Yield (content index, part index, part, "name:n") for each `field` part."""
    counters: dict[str, int] = {}
    for i, content in enumerate(data):
        for j, part in enumerate(_parts(content)):
            if not isinstance(part, dict) or not isinstance(part.get(field), dict):
                continue
            name = part[field].get("name")
            if not isinstance(name, str) or not name:
                continue
            name = name.lower()
            index = counters.get(name, 0)
            counters[name] = index + 1
            yield i, j, part, f"{name}:{index}"


class GeminiAdapter(FormatAdapter):
    """Adapter for `contents`-based bodies."""

    format = ApiFormat.GEMINI
    data_key = "contents"

    def detect(self, body: dict[str, Any]) -> bool:
        return (
            isinstance(body, dict)
            and isinstance(body.get("contents"), list)
            and not isinstance(body.get("messages"), list)
        )

    def cache_tool_parameters(self, data: list[Any], state: SessionState) -> list[str]:
        """Attribute `functionCall` args to call IDs via the position map.

        Without a position map the body carries no IDs, so nothing is cached.
        """
        positions = state.gemini_positions
        if not positions:
            return []
        call_ids = []
        for _, _, part, key in _iter_positions(data, "functionCall"):
            call = part["functionCall"]
            call_id = cache_call(state, positions.get(key), call.get("name"), call.get("args"))
            if call_id:
                call_ids.append(call_id)
        return call_ids

    def inject_synth(self, data: list[Any], instruction: str, nudge_text: str) -> bool:
        for content in reversed(data):
            if not isinstance(content, dict) or content.get("role") != "user":
                continue
            parts = content.get("parts")
            if not isinstance(parts, list):
                continue
            if len(parts) == 1 and isinstance(parts[0], dict):
                if is_synthetic_text(parts[0].get("text"), nudge_text):
                    continue

            for part in parts:
                text = part.get("text") if isinstance(part, dict) else None
                if isinstance(text, str) and instruction in text:
                    return False
            parts.append({"text": instruction})
            return True
        return False

    def iter_result_keys(self, data: list[Any], state: SessionState) -> list[tuple[str, str | None]]:
        positions = state.gemini_positions
        keys = []
        for _, _, part, key in _iter_positions(data, "functionResponse"):
            name = key.rsplit(":", 1)[0]
            keys.append((positions.get(key, key), name))
        return keys

    def build_injection_turn(self, injection: str) -> dict[str, Any]:
        return {"role": "user", "parts": [{"text": injection}]}

    def extract_tool_outputs(self, data: list[Any], state: SessionState) -> list[ToolOutput]:
        positions = state.gemini_positions
        if not positions:
            return []
        outputs = []
        for _, _, _, key in _iter_positions(data, "functionResponse"):
            call_id = positions.get(key)
            if call_id:
                outputs.append(ToolOutput(id=call_id.lower(), tool_name=key.rsplit(":", 1)[0]))
        return outputs

    def replace_tool_output(
        self,
        data: list[Any],
        tool_id: str,
        pruned_message: str,
        state: SessionState,
    ) -> bool:
        positions = state.gemini_positions
        if not positions:
            return False
        target = tool_id.lower()

        matches = [
            (i, j, part)
            for i, j, part, key in _iter_positions(data, "functionResponse")
            if positions.get(key, "").lower() == target
        ]

        replaced = False
        for i, j, part in matches:
            response = part["functionResponse"]
            new_response = {"name": response.get("name"), "content": pruned_message}
            if response.get("response") == new_response:
                continue
            # Copy the part so sibling fields such as thoughtSignature survive.
            new_part = {**part, "functionResponse": {**response, "response": new_response}}
            new_parts = list(data[i]["parts"])
            new_parts[j] = new_part
            data[i] = {**data[i], "parts": new_parts}
            replaced = True
        return replaced

    def has_tool_outputs(self, data: list[Any]) -> bool:
        return any(
            isinstance(part, dict) and "functionResponse" in part
            for content in data
            for part in _parts(content)
        )

    def get_log_metadata(self, data: list[Any], replaced_count: int, url: str) -> dict[str, Any]:
        metadata = super().get_log_metadata(data, replaced_count, url)
        metadata["total_contents"] = len(data)
        return metadata
