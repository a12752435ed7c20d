"""Small helpers shared by the AI layer."""

from .tokens import CHARS_PER_TOKEN, estimate_tokens

__all__ = ["CHARS_PER_TOKEN", "estimate_tokens"]
