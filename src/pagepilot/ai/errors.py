"""Error taxonomy for chat-endpoint and conversation-loop failures."""

from __future__ import annotations

from typing import Any, Mapping


class ChatError(Exception):
    """Base class for failures that abort a conversation run."""

    kind = "chat_error"
    default_user_message = "Something went wrong while talking to the model."

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        self.message = message or self.default_user_message
        self.status_code = status_code
        super().__init__(self.message)

    def user_message(self) -> str:
        """Plain-language description shown as the terminal assistant message."""
        return self.default_user_message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        return payload


class AuthError(ChatError):
    kind = "auth_error"
    default_user_message = "Invalid or missing API key. Please check your settings."


class RateLimited(ChatError):
    kind = "rate_limited"
    default_user_message = "Rate limit exceeded. Please try again later."


class ModelNotFound(ChatError):
    kind = "model_not_found"
    default_user_message = "The selected model was not found at this endpoint."


class ProviderError(ChatError):
    """5xx responses and any 4xx without a more specific mapping."""

    kind = "provider_error"
    default_user_message = "The model provider returned an error."

    def user_message(self) -> str:
        if self.message and self.message != self.default_user_message:
            return f"Error: {self.message}"
        return self.default_user_message


class InvalidResponseError(ProviderError):
    kind = "invalid_response"
    default_user_message = "No response from the model provider."

    def user_message(self) -> str:
        return self.default_user_message


class NetworkError(ChatError):
    kind = "network_error"
    default_user_message = "Network error while contacting the model provider."

    def user_message(self) -> str:
        if self.message and self.message != self.default_user_message:
            return f"Network error: {self.message}"
        return self.default_user_message


class TooManyIterations(ChatError):
    kind = "too_many_iterations"
    default_user_message = "Too many tool iterations without a final answer."

    def __init__(self, iterations: int) -> None:
        self.iterations = iterations
        super().__init__(f"No final answer after {iterations} iteration(s)")


def error_for_status(status_code: int, message: str | None = None) -> ChatError:
    """Map a non-2xx HTTP status onto the taxonomy."""

    text = message or f"HTTP {status_code}"
    if status_code in (401, 403):
        return AuthError(text, status_code=status_code)
    if status_code == 404:
        return ModelNotFound(text, status_code=status_code)
    if status_code == 429:
        return RateLimited(text, status_code=status_code)
    return ProviderError(text, status_code=status_code)


def extract_error_message(body: Any) -> str | None:
    """Pull ``error.message`` out of an OpenAI-style error body."""

    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(body, str) and body:
        return body
    return None


__all__ = [
    "ChatError",
    "AuthError",
    "RateLimited",
    "ModelNotFound",
    "ProviderError",
    "InvalidResponseError",
    "NetworkError",
    "TooManyIterations",
    "error_for_status",
    "extract_error_message",
]
