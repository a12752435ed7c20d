"""Token estimation utilities for AI operations."""

from __future__ import annotations

import math

# Characters per token; a rough figure for English prose, not a tokenizer.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the number of tokens in a text string.

    Uses a simple character-based heuristic of ~4 characters per token.

    Args:
        text: The text to estimate tokens for.

    Returns:
        Estimated token count (minimum 1 for non-empty text, 0 for empty).
    """
    if not text:
        return 0
    return max(1, math.ceil(len(text) / CHARS_PER_TOKEN))


__all__ = ["CHARS_PER_TOKEN", "estimate_tokens"]
