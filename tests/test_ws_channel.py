"""Tests for the WebSocket transport."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

import pytest
from websockets.asyncio.client import connect

from pagepilot.services.bridge_types import ChannelClosedError
from pagepilot.services.ws_channel import WebSocketChannel


class _Collector:
    def __init__(self) -> None:
        self.envelopes: list[Mapping[str, Any]] = []

    async def __call__(self, envelope: Mapping[str, Any]) -> None:
        self.envelopes.append(envelope)


async def _until(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_send_without_connection_raises() -> None:
    channel = WebSocketChannel()

    with pytest.raises(ChannelClosedError):
        await channel.send({"action": "ping"})


@pytest.mark.asyncio
async def test_dispatch_frame_skips_bad_frames() -> None:
    collector = _Collector()
    channel = WebSocketChannel(handler=collector)

    assert await channel.dispatch_frame("not json") is False
    assert await channel.dispatch_frame("[1, 2, 3]") is False
    assert await channel.dispatch_frame('{"action": "pong"}') is True
    assert collector.envelopes == [{"action": "pong"}]


@pytest.mark.asyncio
async def test_dispatch_frame_without_handler_drops() -> None:
    channel = WebSocketChannel()

    assert await channel.dispatch_frame('{"action": "pong"}') is False


@pytest.mark.asyncio
async def test_round_trip_over_local_socket() -> None:
    collector = _Collector()
    disconnects: list[bool] = []
    channel = WebSocketChannel("127.0.0.1", 0, handler=collector, on_disconnect=lambda: disconnects.append(True))
    server = await channel.start()
    port = next(iter(server.sockets)).getsockname()[1]

    try:
        async with connect(f"ws://127.0.0.1:{port}") as websocket:
            await _until(lambda: channel.connected)
            await websocket.send(json.dumps({"action": "extensionReady"}))
            await _until(lambda: bool(collector.envelopes))

            await channel.send({"action": "ping"})
            assert json.loads(await asyncio.wait_for(websocket.recv(), 2.0)) == {"action": "ping"}

        await _until(lambda: bool(disconnects))
        assert channel.connected is False
        assert collector.envelopes == [{"action": "extensionReady"}]
    finally:
        await channel.stop()
