"""Browser tool definitions and tool error types."""

from .errors import (
    BridgeUnavailableError,
    ErrorCode,
    InvalidArgumentsError,
    NoPageContentError,
    ToolError,
    ToolExecutionError,
    ToolTimeoutError,
    UnknownToolError,
)
from .browser_tools import DEFAULT_TOOLS, build_default_catalog

__all__ = [
    "BridgeUnavailableError",
    "DEFAULT_TOOLS",
    "ErrorCode",
    "InvalidArgumentsError",
    "NoPageContentError",
    "ToolError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "UnknownToolError",
    "build_default_catalog",
]
