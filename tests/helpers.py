"""Test doubles shared across test modules."""

from __future__ import annotations

from typing import Any, Mapping

from pagepilot.ai.orchestration.model_types import ChatResponse, ToolCall
from pagepilot.services.bridge_types import ChannelClosedError


class FakeChannel:
    """In-memory channel that records outbound envelopes."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send(self, envelope: Mapping[str, Any]) -> None:
        if self.fail:
            raise ChannelClosedError("channel is down")
        self.sent.append(dict(envelope))

    def last(self, action: str) -> dict[str, Any]:
        for envelope in reversed(self.sent):
            if envelope.get("action") == action:
                return envelope
        raise AssertionError(f"no {action} envelope sent")

    def tool_call(self, tool_name: str) -> dict[str, Any]:
        for envelope in self.sent:
            if envelope.get("action") == "toolCall" and envelope.get("toolName") == tool_name:
                return envelope
        raise AssertionError(f"no toolCall for {tool_name}")


class ScriptedChatClient:
    """Chat client double that replays scripted responses or errors."""

    def __init__(self, responses: list[Any] | None = None, *, repeat: Any | None = None) -> None:
        self._responses = list(responses or [])
        self._repeat = repeat
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    async def chat(self, messages, *, tools=None, max_tokens=None, temperature=None):
        self.requests.append(
            {
                "messages": [dict(message) for message in messages],
                "tools": list(tools) if tools is not None else None,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self._responses:
            response = self._responses.pop(0)
        elif self._repeat is not None:
            response = self._repeat
        else:
            raise AssertionError("no scripted response left")
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


def text_response(content: str | None, *, model: str = "gpt-4o-mini") -> ChatResponse:
    return ChatResponse(
        assistant_message={"role": "assistant", "content": content},
        content=content,
        model=model,
        finish_reason="stop",
    )


def tool_response(*calls: ToolCall) -> ChatResponse:
    return ChatResponse(
        assistant_message={"role": "assistant", "content": None, "tool_calls": [call.to_api() for call in calls]},
        content=None,
        tool_calls=list(calls),
        finish_reason="tool_calls",
    )
