"""Type definitions for the browser automation bridge."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol


class Action:
    """Envelope ``action`` values exchanged with the browser extension."""

    # outbound
    TOOL_CALL = "toolCall"
    PING = "ping"
    GET_PAGE_CONTENT = "getPageContent"
    OPEN_TAB = "openTab"

    # inbound
    TOOL_RESPONSE = "toolResponse"
    BROWSER_EVENT = "browserEvent"
    PAGE_CONTENT = "pageContent"
    PONG = "pong"
    EXTENSION_READY = "extensionReady"
    ERROR = "error"


class ChannelClosedError(ConnectionError):
    """Raised by a channel when an envelope cannot be delivered."""


class Channel(Protocol):
    """One-way, best-effort envelope transport toward the browser."""

    async def send(self, envelope: Mapping[str, Any]) -> None:
        ...


@dataclass(slots=True)
class PendingRequest:
    """One in-flight bridge round trip.

    Lives in the bridge's table from dispatch until the matching response
    arrives or the timer fires, whichever happens first.
    """

    correlation_id: str
    tool_name: str
    future: asyncio.Future[Any]
    timeout: float
    created_at: float = field(default_factory=time.monotonic)
    timer: asyncio.TimerHandle | None = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.created_at

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


__all__ = ["Action", "Channel", "ChannelClosedError", "PendingRequest"]
