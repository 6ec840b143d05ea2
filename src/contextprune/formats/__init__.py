"""Provider wire-format adapters.

Each known format is one `ApiFormat` variant with one adapter module.
Detection is exclusive: at most one adapter claims a given body.
"""

from __future__ import annotations

from typing import Any

from contextprune.formats.base import (
    PRUNED_CONTENT_MESSAGE,
    ApiFormat,
    FormatAdapter,
    ToolOutput,
)
from contextprune.formats.gemini import GeminiAdapter
from contextprune.formats.openai_chat import OpenAIChatAdapter
from contextprune.formats.openai_responses import OpenAIResponsesAdapter

ADAPTERS: dict[ApiFormat, FormatAdapter] = {
    ApiFormat.OPENAI_CHAT: OpenAIChatAdapter(),
    ApiFormat.GEMINI: GeminiAdapter(),
    ApiFormat.OPENAI_RESPONSES: OpenAIResponsesAdapter(),
}


def detect_format(body: Any) -> FormatAdapter | None:
    """Return the adapter that claims this request body, if any."""
    if not isinstance(body, dict):
        return None
    for adapter in ADAPTERS.values():
        if adapter.detect(body):
            return adapter
    return None


def get_adapter(api_format: ApiFormat | str) -> FormatAdapter:
    """Look up an adapter by format or format name."""
    return ADAPTERS[ApiFormat(api_format)]


__all__ = [
    "ADAPTERS",
    "PRUNED_CONTENT_MESSAGE",
    "ApiFormat",
    "FormatAdapter",
    "GeminiAdapter",
    "OpenAIChatAdapter",
    "OpenAIResponsesAdapter",
    "ToolOutput",
    "detect_format",
    "get_adapter",
]
