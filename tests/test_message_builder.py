"""Tests for splicing page context into the conversation."""

from __future__ import annotations

import pytest

from pagepilot.ai.orchestration.budget_manager import TokenBudgetManager
from pagepilot.ai.orchestration.message_builder import (
    MessageBuilder,
    build_page_context,
    splice_context,
    to_api_messages,
)
from pagepilot.ai.orchestration.model_types import Message
from pagepilot.services.session import PageContent
from pagepilot.services.settings import Profile


def test_page_context_block_layout() -> None:
    block = build_page_context("Body", title="T", url="https://u.test", description="D")

    assert block == "[Page Context]\nTitle: T\nURL: https://u.test\nDescription: D\nContent:\nBody"
    assert splice_context(block, "Q?").endswith("Content:\nBody\n\n[User Question]\nQ?")


def test_empty_description_is_omitted() -> None:
    assert build_page_context("Body", title="T", url="u", description="") == "[Page Context]\nTitle: T\nURL: u\nContent:\nBody"


def test_only_last_user_message_is_spliced(profile: Profile, page: PageContent) -> None:
    builder = MessageBuilder(TokenBudgetManager())
    history = [Message.user("first"), Message.assistant("reply"), Message.user("second")]

    prepared = builder.build(history, profile, page)

    assert prepared.messages[0]["content"] == "first"
    assert prepared.messages[2]["content"].startswith("[Page Context]\nTitle: Example Article")
    assert prepared.user_message == "second"
    assert prepared.page_title == "Example Article"
    assert prepared.budget is not None and not prepared.budget.truncated


def test_history_without_user_message_is_left_alone(profile: Profile, page: PageContent) -> None:
    builder = MessageBuilder(TokenBudgetManager())

    prepared = builder.build([Message.system("sys")], profile, page)

    assert prepared.messages == [{"role": "system", "content": "sys"}]
    assert prepared.page_context is None


def test_builder_does_not_mutate_history(profile: Profile) -> None:
    history = [{"role": "user", "content": "q"}]

    MessageBuilder(TokenBudgetManager()).build(history, profile, "extra")

    assert history == [{"role": "user", "content": "q"}]


def test_reserved_chars_include_question_and_overhead() -> None:
    profile = Profile(name="p", base_url="u", model="m", max_tokens=0, context_limit=1_000)
    budget = TokenBudgetManager()
    builder = MessageBuilder(budget, overhead_chars=500)

    builder.build([Message.user("x" * 100)], profile, "y" * 5_000)

    assert budget.last_decision is not None
    assert budget.last_decision.budget_chars == 4_000 - 600


def test_unsupported_history_entries_raise() -> None:
    with pytest.raises(TypeError):
        to_api_messages([42])  # type: ignore[list-item]
