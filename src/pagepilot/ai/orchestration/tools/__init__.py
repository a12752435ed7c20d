"""Tool catalog and invoker used by the conversation loop."""

from .executor import DEFAULT_TOOL_TIMEOUT, ToolInvoker
from .registry import DuplicateToolError, ToolCatalog
from .types import BridgeInvoker, DispatchStrategy, LocalToolHandler, ToolContext, ToolSpec

__all__ = [
    "DEFAULT_TOOL_TIMEOUT",
    "BridgeInvoker",
    "DispatchStrategy",
    "DuplicateToolError",
    "LocalToolHandler",
    "ToolCatalog",
    "ToolContext",
    "ToolInvoker",
    "ToolSpec",
]
