"""Conversation engine driving the tool-calling loop for one user submission."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Protocol, Sequence

from ...services.settings import Profile, Settings
from ..client import AIClient, ClientSettings
from ..errors import ChatError, InvalidResponseError, TooManyIterations
from .budget_manager import TokenBudgetManager
from .message_builder import MessageBuilder, PreparedPrompt
from .model_types import ChatResponse, ChatTurnResult, Message, ToolCall
from .runtime_config import ConversationRuntimeConfig
from .tools.executor import ToolInvoker

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ...services.session import BrowserSession, PageContent
    from .event_log import EventRecorder

LOGGER = logging.getLogger(__name__)


class ChatClient(Protocol):
    async def chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        tools: Iterable[Mapping[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ChatResponse:
        ...


ClientFactory = Callable[[Profile, str | None], ChatClient]


class ConversationEngine:
    """Runs the bounded chat/tool loop for one exchange.

    ``run`` splices budgeted page context into the last user message, then
    alternates chat requests and tool execution until the model answers in
    plain text or ``max_iterations`` requests have been sent. Endpoint
    failures end the run with a ``ChatTurnResult`` carrying the error;
    tool failures are fed back to the model by ``ToolInvoker``.
    """

    def __init__(
        self,
        invoker: ToolInvoker,
        *,
        client: ChatClient | None = None,
        client_factory: ClientFactory | None = None,
        budget: TokenBudgetManager | None = None,
        recorder: "EventRecorder | None" = None,
        session: "BrowserSession | None" = None,
        config: ConversationRuntimeConfig | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._invoker = invoker
        self._client = client
        self._settings = settings or Settings()
        self._client_factory = client_factory or self._default_client_factory
        self._config = config or ConversationRuntimeConfig.from_settings(self._settings)
        self._builder = MessageBuilder(budget or TokenBudgetManager(), overhead_chars=self._config.overhead_chars)
        self._recorder = recorder
        self._session = session

    @property
    def config(self) -> ConversationRuntimeConfig:
        return self._config

    @property
    def invoker(self) -> ToolInvoker:
        return self._invoker

    async def run(
        self,
        history: Sequence[Message | Mapping[str, Any]],
        profile: Profile,
        supplementary: "PageContent | str | None" = None,
        *,
        api_key: str | None = None,
    ) -> ChatTurnResult:
        """Execute one exchange and return its final text or typed error."""

        prepared = self._builder.build(history, profile, supplementary)
        self._log_query(prepared)
        working = prepared.messages
        tools = self._tool_declarations()
        executed: list[ToolCall] = []
        iteration = 0

        owns_client = self._client is None
        client = self._client if self._client is not None else self._client_factory(profile, api_key)
        try:
            while iteration < self._config.max_iterations:
                iteration += 1
                LOGGER.debug("Chat iteration %s/%s via %s", iteration, self._config.max_iterations, profile.model)
                response = await client.chat(
                    working,
                    tools=tools,
                    max_tokens=profile.max_tokens,
                    temperature=self._config.temperature,
                )

                if response.wants_tools and tools is not None:
                    working.append(dict(response.assistant_message))
                    for call in response.tool_calls:
                        result = await self._invoker.execute(call)
                        working.append(Message.tool(call.id, result).to_api())
                        executed.append(call)
                    continue

                if response.content is None:
                    raise InvalidResponseError("Response message had no content")
                self._log_response(len(response.content), response.model or profile.model)
                return ChatTurnResult(
                    text=response.content,
                    iterations=iteration,
                    tool_calls=executed,
                    messages=working,
                )

            raise TooManyIterations(iteration)
        except ChatError as exc:
            LOGGER.warning("Conversation run failed (%s): %s", exc.kind, exc.message)
            self._log_response(0, profile.model, error=exc)
            return ChatTurnResult(
                text=exc.user_message(),
                error=exc,
                iterations=iteration,
                tool_calls=executed,
                messages=working,
            )
        finally:
            if owns_client:
                await _close_client(client)

    def _tool_declarations(self) -> list[dict[str, Any]] | None:
        if not self._config.enable_tools:
            return None
        declarations = self._invoker.catalog.openai_tools()
        return declarations or None

    def _default_client_factory(self, profile: Profile, api_key: str | None) -> ChatClient:
        return AIClient(ClientSettings.from_profile(profile, api_key=api_key, settings=self._settings))

    def _log_query(self, prepared: PreparedPrompt) -> None:
        if self._recorder is None:
            return
        tab_id, url = self._tab_snapshot()
        self._recorder.log_ai_query(
            user_message=prepared.user_message,
            full_prompt=prepared.full_prompt,
            page_context=prepared.page_context,
            page_title=prepared.page_title,
            tab_id=tab_id,
            url=url,
        )

    def _log_response(self, length: int, model: str | None, *, error: ChatError | None = None) -> None:
        if self._recorder is None:
            return
        tab_id, url = self._tab_snapshot()
        self._recorder.log_ai_response(
            response_length=length,
            model=model,
            error=error.message if error is not None else None,
            error_kind=error.kind if error is not None else None,
            tab_id=tab_id,
            url=url,
        )

    def _tab_snapshot(self) -> tuple[int | None, str | None]:
        if self._session is None:
            return None, None
        return self._session.current_tab_id, self._session.current_tab_url


async def _close_client(client: Any) -> None:
    close = getattr(client, "aclose", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


__all__ = ["ChatClient", "ClientFactory", "ConversationEngine"]
