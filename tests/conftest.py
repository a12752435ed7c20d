"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
import pytest

from pagepilot.ai.orchestration.event_log import EventRecorder
from pagepilot.services.session import BrowserSession, PageContent
from pagepilot.services.settings import Profile

from tests.helpers import FakeChannel


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def events_path(tmp_path: Path) -> Path:
    return tmp_path / "events" / "browser_events.jsonl"


@pytest.fixture
def recorder(events_path: Path) -> EventRecorder:
    return EventRecorder(events_path)


@pytest.fixture
def session() -> BrowserSession:
    return BrowserSession()


@pytest.fixture
def page() -> PageContent:
    return PageContent(
        url="https://example.com/article",
        title="Example Article",
        text="Python is a language. Python is popular.",
        description="An article about Python",
    )


@pytest.fixture
def profile() -> Profile:
    return Profile(name="Test", base_url="http://local/v1", model="gpt-4o-mini")
