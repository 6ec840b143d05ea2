"""Format adapter contract shared by every provider wire format.

Each adapter normalizes one request-body shape into the same
extract / inject / replace operations so the request handler never has to
know which provider it is talking to. Adapters mutate the data array they
are given in place; the handler works on a copy of the request body.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from contextprune.logging import get_logger
from contextprune.state.session import SessionState, ToolTracker

log = get_logger("formats")

# Every adapter writes this exact text over a pruned output.
PRUNED_CONTENT_MESSAGE = (
    "[Output removed to save context - information superseded or no longer needed]"
)

# Trailing turns added by the injector open with this banner.
SYNTHETIC_TURN_PREFIX = "<system-reminder>"


def is_synthetic_text(text: Any, nudge_text: str) -> bool:
    """True for text of a turn this package injected, not one the user wrote."""
    if not isinstance(text, str):
        return False
    return (bool(nudge_text) and text == nudge_text) or text.startswith(SYNTHETIC_TURN_PREFIX)


class ApiFormat(Enum):
    """Known provider wire formats."""

    OPENAI_CHAT = "openai-chat"  # Also covers Anthropic Messages
    GEMINI = "gemini"
    OPENAI_RESPONSES = "openai-responses"


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """A tool result present in one request.

    Attributes:
        id: Lowercased tool-call ID
        tool_name: Tool name from the cached call record, when known
    """

    id: str
    tool_name: str | None = None


def parse_arguments(raw: Any) -> Any:
    """Decode a JSON-encoded argument payload.

    Returns:
        The decoded value, the value itself when it is not a string, or
        None when the string is not valid JSON.
    """
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return None


class FormatAdapter(ABC):
    """One provider wire format.

    Subclasses set `format` and `data_key` and implement the turn-shape
    specific operations.
    """

    format: ApiFormat
    data_key: str

    @property
    def name(self) -> str:
        return self.format.value

    @abstractmethod
    def detect(self, body: dict[str, Any]) -> bool:
        """Structural test on the top-level request body."""
        ...

    def get_data_array(self, body: dict[str, Any]) -> list[Any] | None:
        """The ordered turns/items this adapter operates on."""
        data = body.get(self.data_key) if isinstance(body, dict) else None
        return data if isinstance(data, list) else None

    @abstractmethod
    def cache_tool_parameters(self, data: list[Any], state: SessionState) -> list[str]:
        """Cache assistant tool invocations.

        Malformed parameter payloads are skipped, never raised.

        Returns:
            Lowercased call IDs of every usable invocation, in request order.
        """
        ...

    @abstractmethod
    def inject_synth(self, data: list[Any], instruction: str, nudge_text: str) -> bool:
        """Append `instruction` to the most recent real user turn, once."""
        ...

    @abstractmethod
    def iter_result_keys(self, data: list[Any], state: SessionState) -> list[tuple[str, str | None]]:
        """(key, tool name) for every tool result, in order.

        The key is the tool-call ID when known; it only needs to be stable
        across repeated requests carrying the same history.
        """
        ...

    def track_new_tool_results(
        self,
        data: list[Any],
        tracker: ToolTracker,
        protected: set[str],
        state: SessionState,
    ) -> int:
        """Count tool results not seen before. Returns how many were counted."""
        counted = 0
        for key, tool_name in self.iter_result_keys(data, state):
            if tracker.observe(key, tool_name, protected):
                counted += 1
        return counted

    @abstractmethod
    def build_injection_turn(self, injection: str) -> dict[str, Any]:
        """A trailing user turn carrying `injection`."""
        ...

    def inject_prunable_list(self, data: list[Any], injection: str) -> bool:
        """Append a trailing user turn with the injection text.

        No-op for an empty injection, or when the last turn already carries
        this exact injection.
        """
        if not injection:
            return False
        turn = self.build_injection_turn(injection)
        if data and data[-1] == turn:
            return False
        data.append(turn)
        return True

    @abstractmethod
    def extract_tool_outputs(self, data: list[Any], state: SessionState) -> list[ToolOutput]:
        ...

    @abstractmethod
    def replace_tool_output(
        self,
        data: list[Any],
        tool_id: str,
        pruned_message: str,
        state: SessionState,
    ) -> bool:
        """Overwrite every output payload for `tool_id` with `pruned_message`.

        Only the payload changes; the array length and all surrounding
        fields are preserved. Returns True if anything was replaced.
        """
        ...

    @abstractmethod
    def has_tool_outputs(self, data: list[Any]) -> bool:
        ...

    def get_log_metadata(self, data: list[Any], replaced_count: int, url: str) -> dict[str, Any]:
        return {
            "url": url,
            "format": self.name,
            "replaced_count": replaced_count,
            "total_items": len(data),
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def cache_call(state: SessionState, call_id: Any, tool: Any, raw_arguments: Any) -> str | None:
    """Cache one tool invocation.

    Returns:
        The lowercased call ID, or None when the entry was skipped because
        its ID, name or arguments are unusable.
    """
    if not call_id or not isinstance(call_id, str) or not tool:
        return None
    parameters = parse_arguments(raw_arguments)
    if parameters is None and raw_arguments is not None:
        log.debug("Skipping %s: unparsable arguments", call_id)
        return None
    if state.cache_tool(call_id, str(tool), parameters):
        log.debug("Cached parameters for %s (%s)", call_id, tool)
    return call_id.lower()
