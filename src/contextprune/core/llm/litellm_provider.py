"""LiteLLM provider implementation.

Model identifiers follow litellm's "provider/model" convention:
- Anthropic: "anthropic/claude-haiku-4-5"
- OpenAI: "openai/gpt-4o-mini"
- Local: "ollama/llama3"

See https://docs.litellm.ai/docs/providers for full list.
"""

from __future__ import annotations

from typing import Any

import litellm

from contextprune.core.llm.provider import CompletionResult, Message

# Analysis calls must never hang the idle pass
DEFAULT_TIMEOUT = 60.0


class LiteLLMProvider:
    """LLM provider using litellm for multi-provider support.

    Usage:
        provider = LiteLLMProvider("anthropic/claude-haiku-4-5")
        result = await provider.complete([Message(Role.USER, "hi")])
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ) -> None:
        """Initialize the provider.

        Args:
            model: Model identifier (e.g., "anthropic/claude-haiku-4-5")
            api_key: API key (uses env vars if not provided)
            api_base: Custom API base URL
            timeout: Request timeout in seconds
            **kwargs: Additional litellm options
        """
        self._model = model
        self._api_key = api_key
        self._api_base = api_base
        self._timeout = timeout
        self._kwargs = kwargs

    @property
    def model(self) -> str:
        return self._model

    def _build_kwargs(
        self,
        messages: list[Message],
        *,
        max_tokens: int,
        stop: list[str] | None,
    ) -> dict[str, Any]:
        """Build kwargs for litellm call."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": m.role.value, "content": m.content} for m in messages
            ],
            "max_tokens": max_tokens,
            "timeout": self._timeout,
            **self._kwargs,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._api_base:
            kwargs["api_base"] = self._api_base
        if stop:
            kwargs["stop"] = stop
        return kwargs

    async def complete(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 4096,
        stop: list[str] | None = None,
    ) -> CompletionResult:
        """Generate a completion (non-streaming).

        Args:
            messages: Conversation messages
            max_tokens: Maximum tokens to generate
            stop: Stop sequences
        """
        kwargs = self._build_kwargs(messages, max_tokens=max_tokens, stop=stop)

        response = await litellm.acompletion(**kwargs)

        content = response.choices[0].message.content or ""
        finish_reason = response.choices[0].finish_reason

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return CompletionResult(
            content=content,
            finish_reason=finish_reason,
            usage=usage,
        )
