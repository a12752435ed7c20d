"""Message construction for conversation runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from ...services.settings import Profile
from .budget_manager import BudgetDecision, TokenBudgetManager
from .model_types import Message, Role

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ...services.session import PageContent

LOGGER = logging.getLogger(__name__)

DEFAULT_OVERHEAD_CHARS = 2_000


def build_page_context(
    body: str,
    *,
    title: str | None = None,
    url: str | None = None,
    description: str | None = None,
) -> str:
    """Render the ``[Page Context]`` block that precedes the user question."""

    lines = ["[Page Context]"]
    if title is not None:
        lines.append(f"Title: {title}")
    if url is not None:
        lines.append(f"URL: {url}")
    if description:
        lines.append(f"Description: {description}")
    lines.append("Content:")
    lines.append(body)
    return "\n".join(lines)


def splice_context(context_block: str, question: str) -> str:
    return f"{context_block}\n\n[User Question]\n{question}"


def to_api_messages(history: Sequence[Message | Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Convert history entries to chat-completions message dicts, preserving order."""

    messages: list[dict[str, Any]] = []
    for entry in history:
        if isinstance(entry, Message):
            messages.append(entry.to_api())
        elif isinstance(entry, Mapping):
            messages.append(dict(entry))
        else:
            raise TypeError(f"Unsupported history entry: {type(entry).__name__}")
    return messages


@dataclass(slots=True)
class PreparedPrompt:
    """Working message list for one run plus what was spliced into it."""

    messages: list[dict[str, Any]]
    user_message: str
    full_prompt: str
    page_context: str | None = None
    page_title: str | None = None
    budget: BudgetDecision | None = None


class MessageBuilder:
    """Splices budgeted page context into the last user message."""

    def __init__(self, budget: TokenBudgetManager, *, overhead_chars: int = DEFAULT_OVERHEAD_CHARS) -> None:
        self._budget = budget
        self._overhead_chars = max(0, overhead_chars)

    @property
    def budget(self) -> TokenBudgetManager:
        return self._budget

    def build(
        self,
        history: Sequence[Message | Mapping[str, Any]],
        profile: Profile,
        supplementary: "PageContent | str | None" = None,
    ) -> PreparedPrompt:
        messages = to_api_messages(history)
        if not messages:
            raise ValueError("Conversation history must contain at least one message")

        user_index = _last_user_index(messages)
        question = ""
        if user_index is not None:
            content = messages[user_index].get("content")
            question = content if isinstance(content, str) else ""

        if supplementary is None:
            return PreparedPrompt(messages=messages, user_message=question, full_prompt=question)
        if user_index is None:
            LOGGER.warning("Supplementary content ignored: history has no user message")
            return PreparedPrompt(messages=messages, user_message=question, full_prompt=question)

        reserved = len(question) + self._overhead_chars
        if isinstance(supplementary, str):
            body = self._budget.fit(supplementary, profile, reserved)
            context_block = build_page_context(body)
            page_title = None
        else:
            body = self._budget.fit(supplementary.content_for_llm, profile, reserved)
            context_block = build_page_context(
                body,
                title=supplementary.title,
                url=supplementary.url,
                description=supplementary.description,
            )
            page_title = supplementary.title or None

        full_prompt = splice_context(context_block, question)
        messages[user_index] = {**messages[user_index], "content": full_prompt}
        return PreparedPrompt(
            messages=messages,
            user_message=question,
            full_prompt=full_prompt,
            page_context=context_block,
            page_title=page_title,
            budget=self._budget.last_decision,
        )


def _last_user_index(messages: Sequence[Mapping[str, Any]]) -> int | None:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].get("role") == Role.USER.value:
            return index
    return None


__all__ = [
    "DEFAULT_OVERHEAD_CHARS",
    "MessageBuilder",
    "PreparedPrompt",
    "build_page_context",
    "splice_context",
    "to_api_messages",
]
