"""Standardized error types for browser tools.

Tool failures are ordinary conversation events: the invoker converts every
``ToolError`` into a JSON payload that is handed back to the model.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Values of the ``code`` field in tool error payloads."""

    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_FAILED = "execution_failed"
    NO_PAGE_CONTENT = "no_page_content"
    TIMEOUT = "timeout"
    BRIDGE_UNAVAILABLE = "bridge_unavailable"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ToolError(Exception):
    """A tool failure that is reported back to the model instead of raised.

    ``message`` is what the model reads; ``error_code`` lets it tell a bad
    argument from an unreachable browser. ``details`` is optional context.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{"error": message}`` payload the model sees."""
        payload: dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        return self.message


@dataclass
class UnknownToolError(ToolError):
    """Raised when the model asks for a tool the catalog does not define."""

    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL)
    message: str = field(default="Unknown tool")
    details: dict[str, Any] = field(default_factory=dict)

    tool_name: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.tool_name and self.message == "Unknown tool":
            self.message = f"Unknown tool: {self.tool_name}"
        super().__post_init__()


@dataclass
class InvalidArgumentsError(ToolError):
    """Raised when tool arguments are malformed or miss a required field."""

    error_code: str = field(default=ErrorCode.INVALID_ARGUMENTS)
    message: str = field(default="Invalid arguments")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class NoPageContentError(ToolError):
    """Raised by local tools when no page content has been captured yet."""

    error_code: str = field(default=ErrorCode.NO_PAGE_CONTENT)
    message: str = field(default="No page content available")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolExecutionError(ToolError):
    """The tool ran but failed logically (reported by the browser or a handler)."""

    error_code: str = field(default=ErrorCode.EXECUTION_FAILED)
    message: str = field(default="Tool execution failed")
    details: dict[str, Any] = field(default_factory=dict)

    tool_name: str | None = field(default=None)


@dataclass
class ToolTimeoutError(ToolError):
    """A bridge round trip exceeded its deadline."""

    error_code: str = field(default=ErrorCode.TIMEOUT)
    message: str = field(default="Tool timed out")
    details: dict[str, Any] = field(default_factory=dict)

    tool_name: str | None = field(default=None)
    timeout: float | None = field(default=None)

    def __post_init__(self) -> None:
        if self.tool_name and self.timeout is not None and self.message == "Tool timed out":
            self.message = f"Tool '{self.tool_name}' timed out after {self.timeout:g}s"
        super().__post_init__()


@dataclass
class BridgeUnavailableError(ToolError):
    """The request could not be delivered, or the bridge was shut down."""

    error_code: str = field(default=ErrorCode.BRIDGE_UNAVAILABLE)
    message: str = field(default="Browser extension is not reachable")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "ToolError",
    "UnknownToolError",
    "InvalidArgumentsError",
    "NoPageContentError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "BridgeUnavailableError",
]
