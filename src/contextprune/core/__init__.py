"""Core runtime modules."""

from contextprune.core.llm import CompletionResult, LiteLLMProvider, LLMProvider, Message, Role
from contextprune.core.tokens import (
    estimate_tokens,
    estimate_tokens_batch,
    estimate_tokens_heuristic,
    format_token_count,
    invalidate_cache,
)

__all__ = [
    # LLM
    "CompletionResult",
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "Role",
    # Tokens
    "estimate_tokens",
    "estimate_tokens_batch",
    "estimate_tokens_heuristic",
    "format_token_count",
    "invalidate_cache",
]
