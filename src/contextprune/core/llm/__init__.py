"""LLM provider abstraction."""

from contextprune.core.llm.litellm_provider import LiteLLMProvider
from contextprune.core.llm.provider import CompletionResult, LLMProvider, Message, Role

__all__ = [
    "CompletionResult",
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "Role",
]
