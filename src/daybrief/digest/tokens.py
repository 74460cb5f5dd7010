"""Token estimation and token-budget batching.

Uses the character-count approximation (about four characters per token
for English text); cheap, deterministic and monotonic in text length.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from pydantic import BaseModel

DEFAULT_CHARS_PER_TOKEN = 4


class TokenStats(BaseModel):
    """Token usage summary for a set of texts."""

    total_tokens: int = 0
    avg_tokens: int = 0
    min_tokens: int = 0
    max_tokens: int = 0
    count: int = 0


def estimate_token_count(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Estimate tokens for ``text``; 0 for empty text."""
    if chars_per_token <= 0:
        raise ValueError("chars_per_token must be positive")
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def estimate_total_tokens(
    texts: Sequence[str], chars_per_token: int = DEFAULT_CHARS_PER_TOKEN
) -> int:
    return sum(estimate_token_count(text, chars_per_token) for text in texts)


def batch_texts(
    texts: Sequence[str],
    max_tokens_per_batch: int,
    chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
) -> list[list[str]]:
    """Split ``texts`` into ordered batches that fit a token budget.

    Batches are contiguous runs of the input, so concatenating them gives
    back the original sequence. An item whose estimate alone exceeds the
    budget is never split or dropped; it gets a batch of its own.

    Args:
        texts: Texts to batch, in order.
        max_tokens_per_batch: Token budget per batch (must be positive).
        chars_per_token: Divisor for the token estimate.

    Returns:
        List of batches; empty when ``texts`` is empty.
    """
    if max_tokens_per_batch <= 0:
        raise ValueError("max_tokens_per_batch must be positive")

    batches: list[list[str]] = []
    current: list[str] = []
    current_tokens = 0

    for text in texts:
        tokens = estimate_token_count(text, chars_per_token)

        if current and current_tokens + tokens > max_tokens_per_batch:
            batches.append(current)
            current = []
            current_tokens = 0

        current.append(text)
        current_tokens += tokens

    if current:
        batches.append(current)

    return batches


def get_token_stats(
    texts: Sequence[str], chars_per_token: int = DEFAULT_CHARS_PER_TOKEN
) -> TokenStats:
    """Summarize token estimates for ``texts``."""
    if not texts:
        return TokenStats()

    counts = [estimate_token_count(text, chars_per_token) for text in texts]
    total = sum(counts)
    return TokenStats(
        total_tokens=total,
        avg_tokens=round(total / len(counts)),
        min_tokens=min(counts),
        max_tokens=max(counts),
        count=len(counts),
    )
