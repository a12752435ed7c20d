"""Tool system types for the conversation loop.

A tool is one catalog entry: the schema shown to the model plus the dispatch
strategy the invoker uses to run it. Local tools answer from cached browser
state; bridge tools round-trip through the automation channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Protocol, Union

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ....services.session import BrowserSession

__all__ = [
    "DispatchStrategy",
    "ToolSpec",
    "ToolContext",
    "LocalToolHandler",
    "BridgeInvoker",
]


class DispatchStrategy(str, Enum):
    """How the invoker satisfies a tool call."""

    LOCAL = "local"
    BRIDGE = "bridge"


class BridgeInvoker(Protocol):
    """Subset of ``ToolBridge`` the invoker depends on."""

    async def invoke(
        self,
        name: str,
        arguments: Mapping[str, Any],
        timeout: float | None = None,
    ) -> Any:
        ...

    async def request_open_tab(self, url: str) -> None:
        ...


@dataclass(slots=True)
class ToolContext:
    """State handed to local tool handlers.

    Attributes:
        session: Browser session snapshot maintained by the inbound router.
        bridge: Bridge used for fire-and-forget outbound requests.
        timeout: Round-trip deadline applied to bridge tools, in seconds.
    """

    session: "BrowserSession | None" = None
    bridge: BridgeInvoker | None = None
    timeout: float | None = None


LocalToolHandler = Callable[[Mapping[str, Any], ToolContext], Union[Any, Awaitable[Any]]]


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Declaration of one tool exposed to the model.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: JSON Schema for the tool's parameters.
        strategy: Whether the call is answered locally or via the bridge.
        handler: Callable for ``LOCAL`` tools; ignored for bridge tools.
    """

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    strategy: DispatchStrategy = DispatchStrategy.BRIDGE
    handler: LocalToolHandler | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must be a non-empty string")
        if self.strategy is DispatchStrategy.LOCAL and self.handler is None:
            raise ValueError(f"Local tool '{self.name}' requires a handler")

    @property
    def required_arguments(self) -> tuple[str, ...]:
        required = self.parameters.get("required") if self.parameters else None
        return tuple(required or ())

    def to_openai_tool(self) -> dict[str, Any]:
        """Convert to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters) if self.parameters else {
                    "type": "object",
                    "properties": {},
                },
            },
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters) if self.parameters else {},
            "strategy": self.strategy.value,
        }
