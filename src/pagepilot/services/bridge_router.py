"""Routes inbound extension envelopes to the bridge, recorder and session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from ..ai.orchestration.event_log import BrowserEvent
from ..ai.tools.errors import BridgeUnavailableError
from .bridge import ToolBridge
from .bridge_types import Action
from .session import BrowserSession, PageContent

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..ai.orchestration.event_log import EventRecorder

_LOGGER = logging.getLogger(__name__)


class InboundRouter:
    """Single entry point for envelopes arriving from the browser.

    The router is the only writer of ``BrowserSession`` state.
    """

    def __init__(
        self,
        bridge: ToolBridge,
        session: BrowserSession,
        *,
        recorder: "EventRecorder | None" = None,
        page_content_options: Mapping[str, Any] | None = None,
    ) -> None:
        self._bridge = bridge
        self._session = session
        self._recorder = recorder
        self._page_content_options = dict(page_content_options) if page_content_options else None

    @property
    def session(self) -> BrowserSession:
        return self._session

    async def handle(self, envelope: Mapping[str, Any]) -> None:
        action = envelope.get("action") if isinstance(envelope, Mapping) else None
        if not isinstance(action, str):
            _LOGGER.warning("Ignoring envelope without an action: %r", envelope)
            return

        if action == Action.TOOL_RESPONSE:
            self._handle_tool_response(envelope)
        elif action == Action.BROWSER_EVENT:
            self._handle_browser_event(envelope)
        elif action == Action.PAGE_CONTENT:
            self._handle_page_content(envelope)
        elif action == Action.PONG:
            self._session.mark_connected()
        elif action == Action.EXTENSION_READY:
            self._session.mark_connected()
            try:
                await self._bridge.request_page_content(self._page_content_options)
            except BridgeUnavailableError as exc:
                _LOGGER.warning("Could not request page content after handshake: %s", exc)
        elif action == Action.ERROR:
            _LOGGER.error("Extension reported an error: %s", envelope.get("error") or envelope.get("message"))
        else:
            _LOGGER.debug("Ignoring unknown action %s", action)

    def _handle_tool_response(self, envelope: Mapping[str, Any]) -> None:
        correlation_id = envelope.get("correlationId") or envelope.get("requestId")
        if not isinstance(correlation_id, str) or not correlation_id:
            _LOGGER.warning("toolResponse without a correlation id")
            return
        self._bridge.on_response(correlation_id, envelope)

    def _handle_browser_event(self, envelope: Mapping[str, Any]) -> None:
        raw_event = envelope.get("event")
        event = BrowserEvent.from_wire(raw_event) if isinstance(raw_event, Mapping) else None
        if event is None:
            _LOGGER.warning("Dropping malformed browser event: %r", raw_event)
            return
        if self._recorder is not None:
            self._recorder.record(event)
        self._session.apply_event(event)

    def _handle_page_content(self, envelope: Mapping[str, Any]) -> None:
        raw_content = envelope.get("data", envelope.get("content"))
        if not isinstance(raw_content, Mapping):
            _LOGGER.warning("pageContent envelope without content")
            return
        self._session.set_page_content(PageContent.from_dict(raw_content))
        self._session.mark_connected()


__all__ = ["InboundRouter"]
