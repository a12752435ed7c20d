"""Chat-completions client for OpenAI-compatible endpoints.

``AIClient`` is the only code that talks HTTP to the model provider. It
returns normalized ``ChatResponse`` objects and reports every endpoint
failure as a ``ChatError`` subclass.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, InternalServerError
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..services.settings import Profile, Settings, redact_secret
from .errors import (
    AuthError,
    InvalidResponseError,
    NetworkError,
    error_for_status,
    extract_error_message,
)
from .orchestration.model_types import ChatResponse, Message, ToolCall

LOGGER = logging.getLogger(__name__)

_KEYLESS_PLACEHOLDER = "not-needed"
_RETRYABLE = (APIConnectionError, InternalServerError, httpx.TimeoutException)


@dataclass(slots=True)
class ClientSettings:
    """Endpoint, credential and transport options for one ``AIClient``."""

    base_url: str
    api_key: str
    model: str
    requires_key: bool = True
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float | None = 0.7
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_profile(cls, profile: Profile, *, api_key: str | None, settings: Settings | None = None) -> "ClientSettings":
        base = settings or Settings()
        return cls(
            base_url=profile.base_url,
            api_key=api_key or "",
            model=profile.model,
            requires_key=profile.has_key,
            request_timeout=base.request_timeout,
            max_retries=base.max_retries,
            retry_min_seconds=base.retry_min_seconds,
            retry_max_seconds=base.retry_max_seconds,
            temperature=base.temperature,
            debug_logging=base.debug_logging,
        )


class AIClient:
    """Async chat-completions client that maps failures onto ``ChatError``.

    Retries happen only when ``max_retries`` is above 1 and only for
    transport failures and 5xx responses; 4xx responses surface at once.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client
        self._models: List[str] | None = None
        self._models_lock = asyncio.Lock()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def chat(
        self,
        messages: Iterable[Message | Mapping[str, Any]],
        *,
        tools: Iterable[ChatCompletionToolParam | Mapping[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **extra_params: Any,
    ) -> ChatResponse:
        """Send one chat completion request and normalize the first choice.

        Raises:
            ChatError: on missing credentials, non-2xx status, transport
                failure, or a 2xx body without a message.
        """

        request = self._request_payload(
            _api_messages(messages),
            tools=list(tools or ()),
            max_tokens=max_tokens,
            temperature=self._settings.temperature if temperature is None else temperature,
            extra=extra_params,
        )
        self._log_request(request)

        client = self._require_client()
        with _translate_errors("chat completion"):
            async for attempt in self._retrying():
                with attempt:
                    completion = await client.chat.completions.create(**request)
        return _normalize_completion(completion)

    async def list_models(self, *, force_refresh: bool = False) -> List[str]:
        """Model ids advertised by ``GET /models``; cached after the first success."""

        async with self._models_lock:
            if self._models is None or force_refresh:
                client = self._require_client()
                with _translate_errors("model listing"):
                    page = await client.models.list()
                self._models = [entry.id for entry in page.data if getattr(entry, "id", None)]
                LOGGER.debug("Endpoint %s advertises %s model(s)", self._settings.base_url, len(self._models))
            return list(self._models)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client, if one was created."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        outcome = close()
        if inspect.isawaitable(outcome):
            await outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_client(self) -> AsyncOpenAI:
        if self._settings.requires_key and not self._settings.api_key.strip():
            raise AuthError("API key is not configured")
        if self._client is None:
            LOGGER.debug(
                "Creating OpenAI client for %s (key %s)",
                self._settings.base_url,
                redact_secret(self._settings.api_key) or "none",
            )
            self._client = AsyncOpenAI(
                api_key=self._settings.api_key or _KEYLESS_PLACEHOLDER,
                base_url=self._settings.base_url,
                timeout=self._settings.request_timeout,
                max_retries=0,
                default_headers=dict(self._settings.default_headers or {}) or None,
            )
        return self._client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(multiplier=self._settings.retry_min_seconds, max=self._settings.retry_max_seconds),
            retry=retry_if_exception_type(_RETRYABLE),
        )

    def _request_payload(
        self,
        messages: List[ChatCompletionMessageParam],
        *,
        tools: List[Any],
        max_tokens: int | None,
        temperature: float | None,
        extra: Mapping[str, Any],
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {"model": self._settings.model, "messages": messages}
        optional = {"tools": tools or None, "max_tokens": max_tokens, "temperature": temperature}
        request.update({key: value for key, value in optional.items() if value is not None})
        request.update(extra)
        return request

    def _log_request(self, request: Mapping[str, Any]) -> None:
        roles = ",".join(message.get("role", "?") for message in request["messages"])
        LOGGER.debug(
            "Chat request to %s: model=%s roles=[%s] tools=%s",
            self._settings.base_url,
            request["model"],
            roles,
            len(request.get("tools", ())),
        )
        if self._settings.debug_logging:
            LOGGER.debug("Chat request body:\n%s", json.dumps(request, ensure_ascii=False, indent=2, default=str))


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except APIStatusError as exc:
        message = extract_error_message(getattr(exc, "body", None)) or exc.message
        LOGGER.error("%s failed with HTTP %s: %s", operation, exc.status_code, message)
        raise error_for_status(exc.status_code, message) from exc
    except (APIConnectionError, httpx.TransportError) as exc:
        LOGGER.error("%s failed, endpoint unreachable: %s", operation, exc)
        raise NetworkError(str(exc) or exc.__class__.__name__) from exc


def _api_messages(messages: Iterable[Message | Mapping[str, Any]]) -> List[ChatCompletionMessageParam]:
    converted: List[Any] = [
        message.to_api() if isinstance(message, Message) else dict(message) for message in messages
    ]
    if not converted:
        raise ValueError("At least one message is required to start a chat")
    return converted


def _normalize_completion(completion: Any) -> ChatResponse:
    body = _as_mapping(completion)
    choices = body.get("choices") or []
    if not choices:
        raise InvalidResponseError("Response contained no choices")
    choice = _as_mapping(choices[0])
    message = _as_mapping(choice.get("message"))
    if not message:
        raise InvalidResponseError("Response choice contained no message")

    calls: list[ToolCall] = []
    for raw in message.get("tool_calls") or ():
        call = ToolCall.from_api(_as_mapping(raw))
        if call is None:
            LOGGER.warning("Skipping malformed tool call in response: %s", raw)
        else:
            calls.append(call)

    content = message.get("content") if isinstance(message.get("content"), str) else None
    assistant: Dict[str, Any] = {"role": "assistant", "content": content}
    if calls:
        assistant["tool_calls"] = [call.to_api() for call in calls]
    return ChatResponse(
        assistant_message=assistant,
        content=content,
        tool_calls=calls,
        model=body.get("model"),
        finish_reason=choice.get("finish_reason"),
    )


def _as_mapping(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dict(dump())
    return dict(getattr(value, "__dict__", {}))


__all__ = ["AIClient", "ClientSettings"]
