"""Internal data classes for conversation turns and tool calls."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping

from ..errors import ChatError


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(slots=True, frozen=True)
class Message:
    """One entry of the conversation; the ordered list forms the prompt."""

    role: Role
    content: str
    tool_call_id: str | None = None

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)

    def to_api(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(slots=True, frozen=True)
class ToolCall:
    """Tool call directive emitted by the model inside an assistant message."""

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode the JSON arguments; raises ``ValueError`` when they are not an object."""

        raw = (self.arguments or "").strip()
        if not raw:
            return {}
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return parsed

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "ToolCall | None":
        function = payload.get("function")
        call_id = payload.get("id")
        if not isinstance(function, Mapping) or not isinstance(call_id, str):
            return None
        name = function.get("name")
        if not isinstance(name, str):
            return None
        arguments = function.get("arguments")
        if isinstance(arguments, Mapping):
            arguments = json.dumps(arguments)
        return cls(id=call_id, name=name, arguments=arguments if isinstance(arguments, str) else "{}")

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(slots=True, frozen=True)
class ToolResult:
    tool_call_id: str
    content: str


@dataclass(slots=True)
class ChatResponse:
    """Normalized first choice of a chat completion."""

    assistant_message: Dict[str, Any]
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str | None = None
    finish_reason: str | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


@dataclass(slots=True)
class ChatTurnResult:
    """Outcome of one ``ConversationEngine.run``.

    Exactly one of ``error`` or a successful ``text`` applies; on failure
    ``text`` carries the single user-visible message describing it.
    """

    text: str
    error: ChatError | None = None
    iterations: int = 0
    tool_calls: list[ToolCall] = field(default_factory=list)
    messages: list[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "Role",
    "Message",
    "ToolCall",
    "ToolResult",
    "ChatResponse",
    "ChatTurnResult",
]
