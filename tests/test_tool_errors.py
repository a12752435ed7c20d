"""Tests for tool error payloads."""

from __future__ import annotations

import json

from pagepilot.ai.tools.errors import (
    ErrorCode,
    InvalidArgumentsError,
    ToolError,
    ToolTimeoutError,
    UnknownToolError,
)


def test_unknown_tool_message_includes_name() -> None:
    error = UnknownToolError(tool_name="fly")

    assert error.message == "Unknown tool: fly"
    assert error.to_dict() == {"error": "Unknown tool: fly", "code": ErrorCode.UNKNOWN_TOOL}


def test_timeout_message_formats_seconds() -> None:
    assert ToolTimeoutError(tool_name="getTabs", timeout=10.0).message == "Tool 'getTabs' timed out after 10s"
    assert str(ToolTimeoutError(tool_name="getTabs", timeout=0.5)) == "Tool 'getTabs' timed out after 0.5s"


def test_details_are_included_when_present() -> None:
    error = InvalidArgumentsError(message="Invalid arguments", details={"arguments": "{"})

    assert json.loads(error.to_json()) == {
        "error": "Invalid arguments",
        "code": "invalid_arguments",
        "details": {"arguments": "{"},
    }


def test_tool_errors_are_exceptions() -> None:
    error = ToolError(error_code="custom", message="boom")

    assert isinstance(error, Exception)
    assert error.args == ("boom",)
