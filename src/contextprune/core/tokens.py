"""Token estimation with tiktoken and a character-ratio fallback."""

from __future__ import annotations

import math
from collections.abc import Iterable

import tiktoken

from contextprune.logging import get_logger

log = get_logger("tokens")

# Prose is ~4 chars/token; used whenever the encoder is unavailable
CHARS_PER_TOKEN = 4.0

# Singleton encoder (loaded once on first use)
_encoder: tiktoken.Encoding | None = None

# Set after the first encoder failure so we stop retrying the load
_encoder_failed = False

# Content hash -> token count cache
_token_cache: dict[int, int] = {}


def _get_encoder() -> tiktoken.Encoding:
    """Get cached tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("o200k_base")
    return _encoder


def estimate_tokens_heuristic(text: str) -> int:
    """Estimate tokens from character count alone."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens(text: str) -> int:
    """Estimate the token count of text.

    Uses tiktoken when it can be loaded; otherwise falls back to the
    character-ratio heuristic. Never raises.

    Args:
        text: The text to measure.

    Returns:
        Approximate number of tokens.
    """
    global _encoder_failed
    if not text:
        return 0

    key = hash(text)
    cached = _token_cache.get(key)
    if cached is not None:
        return cached

    if _encoder_failed:
        return estimate_tokens_heuristic(text)

    try:
        count = len(_get_encoder().encode(text, disallowed_special=()))
    except Exception as e:
        log.debug("tiktoken unavailable, using heuristic: %s", e)
        _encoder_failed = True
        return estimate_tokens_heuristic(text)

    _token_cache[key] = count
    return count


def estimate_tokens_batch(texts: Iterable[str]) -> list[int]:
    """Estimate token counts for several texts."""
    return [estimate_tokens(text) for text in texts]


def format_token_count(tokens: int) -> str:
    """Render a token count for humans.

    Examples:
        950 -> "950 tokens", 1234 -> "1.2K tokens", 3000 -> "3K tokens"
    """
    if tokens >= 1000:
        return f"{tokens / 1000:.1f}K".replace(".0K", "K") + " tokens"
    return f"{tokens} tokens"


def invalidate_cache() -> None:
    """Clear token count cache and retry the encoder on next use."""
    global _encoder_failed
    _token_cache.clear()
    _encoder_failed = False
