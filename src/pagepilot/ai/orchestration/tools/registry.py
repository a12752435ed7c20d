"""Static catalog of tools offered to the model."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from .types import DispatchStrategy, ToolSpec

__all__ = [
    "ToolCatalog",
    "DuplicateToolError",
]

LOGGER = logging.getLogger(__name__)


class DuplicateToolError(Exception):
    """Raised when attempting to register a tool with a name that already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class ToolCatalog:
    """Name-keyed table of ``ToolSpec`` entries.

    Adding a tool means registering one spec; the invoker reads the dispatch
    strategy from the entry instead of branching on tool names.

    Example:
        catalog = ToolCatalog()
        catalog.register(ToolSpec(name="getTabs", description="List tabs"))
        catalog.openai_tools()
    """

    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec, *, allow_override: bool = False) -> ToolSpec:
        """Register a tool spec.

        Raises:
            DuplicateToolError: If the name is taken and ``allow_override`` is False.
        """
        if spec.name in self._tools and not allow_override:
            raise DuplicateToolError(spec.name)
        self._tools[spec.name] = spec
        LOGGER.debug("Registered tool: %s (%s)", spec.name, spec.strategy.value)
        return spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def list_specs(self, strategy: DispatchStrategy | None = None) -> list[ToolSpec]:
        """Return specs in registration order, optionally filtered by strategy."""
        specs = list(self._tools.values())
        if strategy is not None:
            specs = [spec for spec in specs if spec.strategy is strategy]
        return specs

    def openai_tools(self) -> list[dict[str, Any]]:
        """Tool declarations in the chat-completions ``tools`` format."""
        return [spec.to_openai_tool() for spec in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(list(self._tools.values()))
