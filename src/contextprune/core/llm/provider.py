"""LLM provider protocol and base types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A message in an LLM conversation."""

    role: Role
    content: str


@dataclass(slots=True)
class CompletionResult:
    """Result from a non-streaming completion."""

    content: str
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for LLM providers used by the analysis pass."""

    @property
    def model(self) -> str:
        """The model identifier being used."""
        ...

    async def complete(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 4096,
        stop: list[str] | None = None,
    ) -> CompletionResult:
        """Generate a completion (non-streaming).

        Args:
            messages: Conversation history
            max_tokens: Maximum tokens to generate
            stop: Stop sequences

        Returns:
            CompletionResult with the generated content
        """
        ...
