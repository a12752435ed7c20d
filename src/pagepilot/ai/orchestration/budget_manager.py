"""Context-window budgeting for supplementary page content."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...services.settings import Profile
from ..utils.tokens import CHARS_PER_TOKEN, estimate_tokens

LOGGER = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n[content truncated]"


@dataclass(slots=True, frozen=True)
class BudgetDecision:
    """Outcome of sizing one piece of content against a profile."""

    budget_chars: int
    original_chars: int
    kept_chars: int

    @property
    def truncated(self) -> bool:
        return self.kept_chars < self.original_chars

    def as_payload(self) -> dict[str, object]:
        return {
            "budget_chars": self.budget_chars,
            "original_chars": self.original_chars,
            "kept_chars": self.kept_chars,
            "truncated": self.truncated,
        }


@dataclass(slots=True)
class TokenBudgetManager:
    """Decides how much supplementary content fits in a profile's context window.

    Token counts are estimated at ``CHARS_PER_TOKEN`` characters per token.
    The output allowance (``profile.max_tokens``) is reserved first; the
    remaining window is converted to characters and ``reserved_chars`` (the
    rest of the prompt plus a fixed overhead) is subtracted from it.
    Truncation keeps the start of the content and drops the end.
    """

    marker: str = TRUNCATION_MARKER
    chars_per_token: int = CHARS_PER_TOKEN
    last_decision: BudgetDecision | None = None

    def budget_chars(self, profile: Profile, reserved_chars: int = 0) -> int:
        """Characters available for supplementary content, floored at 0."""

        input_tokens = max(0, profile.context_limit - profile.max_tokens)
        window_chars = input_tokens * max(1, self.chars_per_token)
        return max(0, window_chars - max(0, int(reserved_chars)))

    def fit(self, content: str, profile: Profile, reserved_chars: int = 0) -> str:
        """Return ``content`` unchanged if it fits, otherwise a truncated copy ending in the marker."""

        budget = self.budget_chars(profile, reserved_chars)
        original = len(content)
        if original <= budget:
            self.last_decision = BudgetDecision(budget, original, original)
            return content
        kept = content[:budget]
        self.last_decision = BudgetDecision(budget, original, len(kept))
        LOGGER.info(
            "Truncated supplementary content for %s from %s to %s chars (~%s tokens; context=%s, max_tokens=%s)",
            profile.model,
            original,
            len(kept),
            estimate_tokens(kept),
            profile.context_limit,
            profile.max_tokens,
        )
        return kept + self.marker


__all__ = ["BudgetDecision", "TokenBudgetManager", "TRUNCATION_MARKER"]
