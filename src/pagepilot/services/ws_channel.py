"""WebSocket transport for the browser automation channel."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Mapping

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve

from .bridge_types import ChannelClosedError

_LOGGER = logging.getLogger(__name__)

EnvelopeHandler = Callable[[Mapping[str, Any]], Awaitable[None]]
DisconnectHandler = Callable[[], None]


class WebSocketChannel:
    """Serves one browser-extension connection over a local WebSocket.

    Outbound envelopes go to the most recently connected client. Inbound
    frames are decoded and passed to the envelope handler, usually
    ``InboundRouter.handle``.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        *,
        handler: EnvelopeHandler | None = None,
        on_disconnect: DisconnectHandler | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._handler = handler
        self._on_disconnect = on_disconnect
        self._connection: ServerConnection | None = None
        self._server: Server | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def send(self, envelope: Mapping[str, Any]) -> None:
        connection = self._connection
        if connection is None:
            raise ChannelClosedError("No browser extension is connected")
        try:
            await connection.send(json.dumps(dict(envelope), ensure_ascii=False))
        except websockets.ConnectionClosed as exc:
            raise ChannelClosedError(f"Connection closed: {exc}") from exc

    async def handle_client(self, connection: ServerConnection) -> None:
        """Handle one extension connection until it closes."""

        previous = self._connection
        self._connection = connection
        _LOGGER.info("Browser extension connected from %s", connection.remote_address)
        if previous is not None and previous is not connection:
            _LOGGER.info("Replacing previous extension connection")
            await previous.close(1000, "replaced by a newer connection")

        try:
            async for raw_msg in connection:
                await self.dispatch_frame(raw_msg)
        except websockets.ConnectionClosed:
            pass
        finally:
            if self._connection is connection:
                self._connection = None
                _LOGGER.info("Browser extension disconnected")
                if self._on_disconnect is not None:
                    self._on_disconnect()

    async def dispatch_frame(self, raw_msg: str | bytes) -> bool:
        """Decode one frame and hand it to the handler; returns ``False`` when skipped."""

        try:
            data = json.loads(raw_msg)
        except (TypeError, ValueError):
            _LOGGER.warning("Skipping non-JSON frame (%s bytes)", len(raw_msg))
            return False
        if not isinstance(data, dict):
            _LOGGER.warning("Skipping frame that is not a JSON object")
            return False
        if self._handler is None:
            _LOGGER.debug("No handler installed; dropping %s", data.get("action"))
            return False
        await self._handler(data)
        return True

    async def start(self) -> Server:
        if self._server is None:
            self._server = await serve(self.handle_client, self.host, self.port, max_size=None)
            _LOGGER.info("Listening on ws://%s:%d", self.host, self.port)
        return self._server

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.close()
        await server.wait_closed()
        self._connection = None

    async def serve_forever(self) -> None:
        server = await self.start()
        try:
            await asyncio.Future()  # run forever
        finally:
            if self._server is server:
                await self.stop()


__all__ = ["WebSocketChannel"]
