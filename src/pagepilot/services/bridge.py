"""Request/response correlation over the one-way browser channel."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import TYPE_CHECKING, Any, Mapping

from ..ai.tools.errors import BridgeUnavailableError, ToolExecutionError, ToolTimeoutError
from .bridge_types import Action, Channel, ChannelClosedError, PendingRequest

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .session import BrowserSession

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ToolBridge:
    """Pairs outbound ``toolCall`` envelopes with inbound ``toolResponse`` envelopes.

    Each ``invoke`` registers a ``PendingRequest`` keyed by a fresh correlation
    id and arms its own timer. The response handler and the timer race; both
    pop the entry under a lock, so whichever runs first settles the future
    and the other finds nothing. ``on_response`` may be called from any
    thread; settlement always happens on the loop that owns the future.
    """

    def __init__(
        self,
        channel: Channel | None = None,
        *,
        default_timeout: float = DEFAULT_TIMEOUT,
        session: "BrowserSession | None" = None,
    ) -> None:
        self._channel = channel
        self._default_timeout = default_timeout if default_timeout > 0 else DEFAULT_TIMEOUT
        self._session = session
        self._pending: dict[str, PendingRequest] = {}
        self._lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def attach_channel(self, channel: Channel | None) -> None:
        self._channel = channel
        if channel is not None:
            self._closed = False

    # ------------------------------------------------------------------
    # Round trips
    # ------------------------------------------------------------------
    async def invoke(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a ``toolCall`` envelope and wait for the matching response.

        Raises:
            ToolTimeoutError: No response arrived within ``timeout`` seconds.
            ToolExecutionError: The browser answered with an ``error``.
            BridgeUnavailableError: The envelope could not be delivered or
                the bridge was closed while waiting.
        """

        if self._closed:
            raise BridgeUnavailableError(message="Tool bridge is closed")
        effective_timeout = timeout if timeout is not None and timeout > 0 else self._default_timeout
        loop = asyncio.get_running_loop()
        correlation_id = uuid.uuid4().hex
        pending = PendingRequest(
            correlation_id=correlation_id,
            tool_name=name,
            future=loop.create_future(),
            timeout=effective_timeout,
        )
        with self._lock:
            self._pending[correlation_id] = pending
        pending.timer = loop.call_later(effective_timeout, self._expire, correlation_id)
        _LOGGER.debug("Dispatching %s (correlationId=%s, timeout=%.1fs)", name, correlation_id, effective_timeout)

        try:
            await self._deliver(
                {
                    "action": Action.TOOL_CALL,
                    "correlationId": correlation_id,
                    "toolName": name,
                    "arguments": dict(arguments or {}),
                }
            )
            return await pending.future
        finally:
            self._discard(correlation_id)
            if pending.future.done() and not pending.future.cancelled():
                pending.future.exception()

    def on_response(self, correlation_id: str, payload: Mapping[str, Any]) -> bool:
        """Settle the pending request for ``correlation_id``.

        Returns ``False`` when no entry exists (late, duplicate or unknown id).
        """

        with self._lock:
            pending = self._pending.pop(correlation_id, None)
        if pending is None:
            _LOGGER.debug("Ignoring response for unknown correlation id %s", correlation_id)
            return False

        loop = pending.future.get_loop()
        if _running_loop() is loop:
            self._settle(pending, payload)
        else:
            loop.call_soon_threadsafe(self._settle, pending, payload)
        return True

    def cancel_all(self, reason: str = "Tool bridge closed") -> int:
        """Reject every in-flight request with ``BridgeUnavailableError``."""

        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            loop = entry.future.get_loop()
            if loop.is_closed():
                continue
            if _running_loop() is loop:
                self._reject(entry, BridgeUnavailableError(message=reason))
            else:
                loop.call_soon_threadsafe(self._reject, entry, BridgeUnavailableError(message=reason))
        if pending:
            _LOGGER.info("Cancelled %s pending tool request(s): %s", len(pending), reason)
        return len(pending)

    def close(self) -> None:
        self._closed = True
        self.cancel_all()

    # ------------------------------------------------------------------
    # Fire-and-forget helpers
    # ------------------------------------------------------------------
    async def ping(self) -> None:
        await self._deliver({"action": Action.PING})

    async def request_page_content(self, options: Mapping[str, Any] | None = None) -> None:
        envelope: dict[str, Any] = {"action": Action.GET_PAGE_CONTENT}
        if options:
            envelope["options"] = dict(options)
        await self._deliver(envelope)

    async def request_open_tab(self, url: str) -> None:
        await self._deliver({"action": Action.OPEN_TAB, "url": url})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _deliver(self, envelope: Mapping[str, Any]) -> None:
        action = envelope.get("action")
        if self._channel is None:
            self._mark_disconnected()
            raise BridgeUnavailableError(message="Browser extension is not connected")
        try:
            await self._channel.send(envelope)
        except (ChannelClosedError, OSError) as exc:
            _LOGGER.error("Send '%s' failed: %s", action, exc)
            self._mark_disconnected()
            raise BridgeUnavailableError(message=f"Failed to send '{action}': {exc}") from exc

    def _expire(self, correlation_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return
        pending.timer = None
        error = ToolTimeoutError(tool_name=pending.tool_name, timeout=pending.timeout)
        _LOGGER.error("%s", error.message)
        if not pending.future.done():
            pending.future.set_exception(error)

    def _discard(self, correlation_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(correlation_id, None)
        if pending is not None:
            pending.cancel_timer()

    @staticmethod
    def _settle(pending: PendingRequest, payload: Mapping[str, Any]) -> None:
        pending.cancel_timer()
        if pending.future.done():
            return
        error = payload.get("error")
        if error:
            pending.future.set_exception(ToolExecutionError(message=str(error), tool_name=pending.tool_name))
        elif "result" in payload and payload["result"] is not None:
            pending.future.set_result(payload["result"])
        else:
            pending.future.set_exception(
                ToolExecutionError(message="Invalid response format", tool_name=pending.tool_name)
            )

    @staticmethod
    def _reject(pending: PendingRequest, error: Exception) -> None:
        pending.cancel_timer()
        if not pending.future.done():
            pending.future.set_exception(error)

    def _mark_disconnected(self) -> None:
        if self._session is not None:
            self._session.mark_disconnected()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


__all__ = ["DEFAULT_TIMEOUT", "ToolBridge"]
