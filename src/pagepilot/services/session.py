"""Browser session state shared between the inbound router and the tools."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..ai.orchestration.event_log import BrowserEvent, EventType

_LOGGER = logging.getLogger(__name__)

_TAB_CHANGING_EVENTS = frozenset({EventType.TAB_SWITCH, EventType.PAGE_LOAD})


@dataclass(slots=True, frozen=True)
class PageImage:
    url: str
    alt: str | None = None
    width: int = 0
    height: int = 0
    position: str = "inline"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PageImage":
        width = data.get("width")
        height = data.get("height")
        return cls(
            url=_text(data.get("url")),
            alt=data.get("alt") if isinstance(data.get("alt"), str) else None,
            width=width if isinstance(width, int) and not isinstance(width, bool) else 0,
            height=height if isinstance(height, int) and not isinstance(height, bool) else 0,
            position=_text(data.get("position")) or "inline",
        )


@dataclass(slots=True, frozen=True)
class PageContent:
    """Content extracted from the active page by the browser extension.

    ``markdown`` is filled by an external converter when available; tools and
    the prompt builder prefer it over ``text``.
    """

    url: str
    title: str
    text: str
    markdown: str | None = None
    html: str | None = None
    description: str | None = None
    site_name: str | None = None
    images: tuple[PageImage, ...] = field(default_factory=tuple)

    @property
    def content_for_llm(self) -> str:
        return self.markdown if self.markdown is not None else self.text

    @property
    def content_format(self) -> str:
        return "markdown" if self.markdown is not None else "plaintext"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PageContent":
        raw_images = data.get("images")
        images: tuple[PageImage, ...] = ()
        if isinstance(raw_images, list):
            images = tuple(PageImage.from_dict(item) for item in raw_images if isinstance(item, Mapping))
        return cls(
            url=_text(data.get("url")),
            title=_text(data.get("title")),
            text=_text(data.get("text")),
            markdown=_optional_text(data.get("markdown")),
            html=_optional_text(data.get("html")),
            description=_optional_text(data.get("description")),
            site_name=_optional_text(data.get("siteName")),
            images=images,
        )


class BrowserSession:
    """Connection flag and current-tab snapshot for the automation surface.

    Only the inbound router mutates the session; everything else reads the
    properties. Mutations hold a lock because responses may arrive off-loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connected = False
        self._tab_id: int | None = None
        self._tab_url: str | None = None
        self._tab_title: str | None = None
        self._page_content: PageContent | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def current_tab_id(self) -> int | None:
        return self._tab_id

    @property
    def current_tab_url(self) -> str | None:
        return self._tab_url

    @property
    def current_tab_title(self) -> str | None:
        return self._tab_title

    @property
    def page_content(self) -> PageContent | None:
        return self._page_content

    def mark_connected(self) -> None:
        with self._lock:
            if not self._connected:
                _LOGGER.info("Browser extension connected")
            self._connected = True

    def mark_disconnected(self) -> None:
        with self._lock:
            if self._connected:
                _LOGGER.warning("Browser extension disconnected")
            self._connected = False

    def set_page_content(self, content: PageContent) -> None:
        with self._lock:
            self._page_content = content
            if content.url:
                self._tab_url = content.url
            if content.title:
                self._tab_title = content.title
        _LOGGER.debug("Page content updated: %s (%s chars)", content.url, len(content.text))

    def apply_event(self, event: BrowserEvent) -> None:
        """Update the tab snapshot from a tab-changing browser event."""

        if event.type not in _TAB_CHANGING_EVENTS:
            return
        with self._lock:
            if event.tab_id is not None:
                self._tab_id = event.tab_id
            self._tab_url = event.url
            self._tab_title = event.title
            self._page_content = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "connected": self._connected,
            "tabId": self._tab_id,
            "url": self._tab_url,
            "title": self._tab_title,
            "hasPageContent": self._page_content is not None,
        }


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _optional_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


__all__ = ["BrowserSession", "PageContent", "PageImage"]
