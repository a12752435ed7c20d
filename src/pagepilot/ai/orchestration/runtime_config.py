"""Runtime configuration for conversation runs."""

from __future__ import annotations

from dataclasses import dataclass

from ...services.settings import Settings


@dataclass(slots=True)
class ConversationRuntimeConfig:
    """Settings governing the tool loop of ``ConversationEngine``."""

    max_iterations: int = 5
    enable_tools: bool = True
    overhead_chars: int = 2_000
    temperature: float | None = 0.7

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.overhead_chars = max(0, self.overhead_chars)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConversationRuntimeConfig":
        return cls(
            max_iterations=settings.max_tool_iterations,
            enable_tools=settings.enable_tools,
            temperature=settings.temperature,
        )


__all__ = ["ConversationRuntimeConfig"]
