"""Conversation orchestration types, budgeting, and event logging."""

from .budget_manager import TRUNCATION_MARKER, BudgetDecision, TokenBudgetManager
from .event_log import BrowserEvent, EventRecorder, EventType
from .model_types import ChatResponse, ChatTurnResult, Message, Role, ToolCall, ToolResult
from .runtime_config import ConversationRuntimeConfig

__all__ = [
    "TRUNCATION_MARKER",
    "BrowserEvent",
    "BudgetDecision",
    "ChatResponse",
    "ChatTurnResult",
    "ConversationRuntimeConfig",
    "EventRecorder",
    "EventType",
    "Message",
    "Role",
    "TokenBudgetManager",
    "ToolCall",
    "ToolResult",
]
