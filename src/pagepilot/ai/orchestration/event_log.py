"""Append-only browser/AI event log with an in-memory buffer for live views."""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

LOGGER = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 500
DEFAULT_STARTUP_TAIL = 100
_TITLE_PREVIEW_CHARS = 100

EventListener = Callable[["BrowserEvent"], None]


class EventType(str, Enum):
    """Kinds of events that end up in the browser event log."""

    TAB_SWITCH = "tab_switch"
    TAB_OPEN = "tab_open"
    TAB_CLOSE = "tab_close"
    PAGE_LOAD = "page_load"
    LINK_CLICK = "link_click"
    AI_QUERY = "ai_query"
    AI_RESPONSE = "ai_response"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> "EventType | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            return None


_DISPLAY_NAMES: dict[EventType, str] = {
    EventType.TAB_SWITCH: "Tab Switch",
    EventType.TAB_OPEN: "Tab Opened",
    EventType.TAB_CLOSE: "Tab Closed",
    EventType.PAGE_LOAD: "Page Loaded",
    EventType.LINK_CLICK: "Link Clicked",
    EventType.AI_QUERY: "AI Query",
    EventType.AI_RESPONSE: "AI Response",
    EventType.TOOL_CALL: "Tool Call",
    EventType.TOOL_RESULT: "Tool Result",
}


@dataclass(slots=True, frozen=True)
class BrowserEvent:
    """Immutable record of something that happened in the browser or the chat."""

    type: EventType
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    tab_id: int | None = None
    url: str | None = None
    title: str | None = None
    details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def is_error(self) -> bool:
        return self.details.get("status") == "error"

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "BrowserEvent | None":
        """Parse an event reported by the browser extension.

        The extension sends millisecond epoch timestamps and may send empty
        strings for url/title; only string detail values are kept.
        """

        event_type = EventType.parse(data.get("type"))
        raw_timestamp = data.get("timestamp")
        raw_details = data.get("details")
        if not isinstance(raw_details, Mapping):
            raw_details = {}
        if event_type is None or isinstance(raw_timestamp, bool) or not isinstance(raw_timestamp, (int, float)):
            return None
        return cls(
            type=event_type,
            timestamp=datetime.fromtimestamp(raw_timestamp / 1000.0, tz=UTC),
            tab_id=_coerce_tab_id(data.get("tabId")),
            url=_non_empty(data.get("url")),
            title=_non_empty(data.get("title")),
            details={
                str(key): value
                for key, value in raw_details.items()
                if isinstance(value, str)
            },
        )

    @classmethod
    def from_log_dict(cls, data: Mapping[str, Any]) -> "BrowserEvent | None":
        event_type = EventType.parse(data.get("type"))
        raw_timestamp = data.get("timestamp")
        if event_type is None or not isinstance(raw_timestamp, str):
            return None
        try:
            timestamp = datetime.fromisoformat(raw_timestamp)
        except ValueError:
            return None
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        details = data.get("details")
        return cls(
            type=event_type,
            id=str(data.get("id") or uuid.uuid4()),
            timestamp=timestamp,
            tab_id=_coerce_tab_id(data.get("tabId")),
            url=data.get("url") if isinstance(data.get("url"), str) else None,
            title=data.get("title") if isinstance(data.get("title"), str) else None,
            details=_coerce_details(details) if isinstance(details, Mapping) else {},
        )

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.astimezone(UTC).isoformat().replace("+00:00", "Z"),
            "type": self.type.value,
            "tabId": self.tab_id,
            "url": self.url,
            "title": self.title,
            "details": dict(self.details),
        }

    def log_format(self) -> str:
        """Render a single human-readable line."""

        local_time = self.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        parts = [f"{local_time} [{self.type.display_name}]"]
        if self.title:
            parts.append(self.title)
        if self.url:
            parts.append(f"({self.url})")
        if self.tab_id is not None:
            parts.append(f"tab:{self.tab_id}")
        if self.details:
            rendered = ", ".join(f"{key}={value}" for key, value in self.details.items())
            parts.append(f"{{{rendered}}}")
        return " ".join(parts)


class EventRecorder:
    """Records events to a JSON Lines file and keeps the newest in memory.

    The on-disk log is unbounded and append-only. The in-memory buffer keeps
    at most ``capacity`` events and evicts the oldest first. Write failures
    are logged and never propagate to callers.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        capacity: int = DEFAULT_BUFFER_SIZE,
        startup_tail: int = DEFAULT_STARTUP_TAIL,
    ) -> None:
        self.path = Path(path).expanduser()
        self._capacity = max(1, int(capacity))
        self._startup_tail = max(0, int(startup_tail))
        self._buffer: deque[BrowserEvent] = deque(maxlen=self._capacity)
        self._lock = Lock()
        self._listeners: list[EventListener] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def startup_tail(self) -> int:
        return self._startup_tail

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def record(self, event: BrowserEvent) -> BrowserEvent:
        """Append ``event`` to the buffer and the log file."""

        with self._lock:
            self._buffer.append(event)
            self._append_line(event)
        LOGGER.debug("%s: %s", event.type.display_name, event.title or event.url or "")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - listener failures are only logged
                LOGGER.exception("Event listener failed for %s", event.type.value)
        return event

    def recent_events(self, limit: int | None = None) -> list[BrowserEvent]:
        """Return up to ``limit`` of the newest buffered events, oldest first."""

        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        if limit <= 0:
            return []
        return events[-limit:]

    def load_on_startup(self) -> int:
        """Prime the buffer from the tail of the log file.

        Returns the number of events loaded. Malformed lines are skipped.
        """

        if not self.path.exists():
            LOGGER.info("No event log found at %s", self.path)
            return 0
        try:
            with self.path.open("rb") as handle:
                tail = deque((line for line in handle if line.strip()), maxlen=self._startup_tail)
        except OSError:
            LOGGER.warning("Unable to read event log %s", self.path, exc_info=True)
            return 0

        loaded = list(self._parse_lines(tail))
        with self._lock:
            self._buffer.clear()
            self._buffer.extend(loaded)
        LOGGER.info("Loaded %s event(s) from %s", len(loaded), self.path)
        return len(loaded)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    # ------------------------------------------------------------------
    # Convenience builders
    # ------------------------------------------------------------------
    def log_tool_call(
        self,
        name: str,
        arguments: str,
        *,
        call_id: str | None = None,
        tab_id: int | None = None,
        url: str | None = None,
    ) -> BrowserEvent:
        details = {"toolName": name, "arguments": arguments}
        if call_id:
            details["toolCallId"] = call_id
        return self.record(
            BrowserEvent(type=EventType.TOOL_CALL, tab_id=tab_id, url=url, title=name, details=details)
        )

    def log_tool_result(
        self,
        name: str,
        result: str,
        *,
        duration: float,
        error: str | None = None,
        call_id: str | None = None,
        tab_id: int | None = None,
        url: str | None = None,
    ) -> BrowserEvent:
        details = {
            "toolName": name,
            "result": result,
            "duration": f"{duration:.2f}",
            "status": "error" if error is not None else "ok",
        }
        if error is not None:
            details["error"] = error
        if call_id:
            details["toolCallId"] = call_id
        return self.record(
            BrowserEvent(type=EventType.TOOL_RESULT, tab_id=tab_id, url=url, title=name, details=details)
        )

    def log_ai_query(
        self,
        *,
        user_message: str,
        full_prompt: str,
        page_context: str | None,
        page_title: str | None = None,
        tab_id: int | None = None,
        url: str | None = None,
    ) -> BrowserEvent:
        display_prompt = f"[pagecontext]\n\n{user_message}" if page_context is not None else user_message
        details = {
            "prompt": display_prompt,
            "fullPrompt": full_prompt,
            "userMessage": user_message,
            "pageContext": page_context or "",
            "messageLength": str(len(user_message)),
            "hasPageContext": "true" if page_context is not None else "false",
            "pageTitle": page_title or "N/A",
        }
        return self.record(
            BrowserEvent(
                type=EventType.AI_QUERY,
                tab_id=tab_id,
                url=url,
                title=user_message[:_TITLE_PREVIEW_CHARS],
                details=details,
            )
        )

    def log_ai_response(
        self,
        *,
        response_length: int,
        model: str | None,
        error: str | None = None,
        error_kind: str | None = None,
        tab_id: int | None = None,
        url: str | None = None,
    ) -> BrowserEvent:
        details = {
            "responseLength": str(response_length),
            "model": model or "unknown",
        }
        title = "Response received"
        if error is not None:
            details["status"] = "error"
            details["error"] = error
            details["errorKind"] = error_kind or "unknown"
            title = "Response failed"
        return self.record(
            BrowserEvent(type=EventType.AI_RESPONSE, tab_id=tab_id, url=url, title=title, details=details)
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _append_line(self, event: BrowserEvent) -> None:
        try:
            line = json.dumps(event.to_log_dict(), ensure_ascii=False)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
                handle.write("\n")
        except (OSError, TypeError, ValueError):
            LOGGER.error("Failed to append event %s to %s", event.id, self.path, exc_info=True)

    @staticmethod
    def _parse_lines(lines: Iterable[bytes]) -> Iterable[BrowserEvent]:
        for line in lines:
            try:
                payload = json.loads(line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                LOGGER.debug("Skipping malformed event log line")
                continue
            if not isinstance(payload, Mapping):
                continue
            event = BrowserEvent.from_log_dict(payload)
            if event is not None:
                yield event


def _non_empty(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _coerce_tab_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _coerce_details(details: Mapping[str, Any]) -> dict[str, str]:
    return {str(key): value if isinstance(value, str) else str(value) for key, value in details.items() if value is not None}


__all__ = [
    "BrowserEvent",
    "EventRecorder",
    "EventType",
    "EventListener",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_STARTUP_TAIL",
]
