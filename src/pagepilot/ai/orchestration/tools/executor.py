"""Tool invoker for the conversation loop.

``ToolInvoker.execute`` is the single place where tool calls are dispatched
and where the matching ``tool_call``/``tool_result`` events are recorded.
It always returns a JSON string: either the tool's payload or an
``{"error": ...}`` object the model can read and react to.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Mapping

from ...tools.errors import (
    BridgeUnavailableError,
    ErrorCode,
    InvalidArgumentsError,
    ToolError,
    ToolExecutionError,
    UnknownToolError,
)
from ..model_types import ToolCall
from .registry import ToolCatalog
from .types import BridgeInvoker, DispatchStrategy, ToolContext, ToolSpec

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ....services.session import BrowserSession
    from ..event_log import EventRecorder

__all__ = ["ToolInvoker"]

LOGGER = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 10.0


class ToolInvoker:
    """Run model-issued tool calls against a ``ToolCatalog``.

    Example:
        invoker = ToolInvoker(build_default_catalog(), bridge=bridge, recorder=recorder)
        payload = await invoker.execute(tool_call)
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        *,
        bridge: BridgeInvoker | None = None,
        recorder: "EventRecorder | None" = None,
        session: "BrowserSession | None" = None,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        log_arguments: bool = False,
    ) -> None:
        self._catalog = catalog
        self._bridge = bridge
        self._recorder = recorder
        self._session = session
        self._timeout = timeout if timeout > 0 else DEFAULT_TOOL_TIMEOUT
        self._log_arguments = log_arguments

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def timeout(self) -> float:
        return self._timeout

    async def execute(self, call: ToolCall) -> str:
        """Execute ``call`` and return its JSON-encoded result; never raises for tool failures."""

        tab_id, url = self._tab_snapshot()
        if self._log_arguments:
            LOGGER.debug("Executing tool %s (call_id=%s) with arguments: %s", call.name, call.id, call.arguments)
        else:
            LOGGER.debug("Executing tool %s (call_id=%s)", call.name, call.id)

        if self._recorder is not None:
            self._recorder.log_tool_call(call.name, call.arguments, call_id=call.id, tab_id=tab_id, url=url)

        start_time = time.perf_counter()
        error_message: str | None = None
        try:
            result = await self._dispatch(call)
            payload = _encode_result(result)
        except ToolError as exc:
            error_message = exc.message
            payload = exc.to_json()
        except Exception as exc:
            LOGGER.exception("Tool %s raised unexpectedly", call.name)
            error_message = str(exc) or exc.__class__.__name__
            payload = json.dumps({"error": error_message, "code": ErrorCode.INTERNAL_ERROR}, ensure_ascii=False)

        duration = time.perf_counter() - start_time
        if error_message is None:
            LOGGER.debug("Tool %s completed in %.2fs", call.name, duration)
        else:
            LOGGER.warning("Tool %s failed after %.2fs: %s", call.name, duration, error_message)

        if self._recorder is not None:
            self._recorder.log_tool_result(
                call.name,
                payload,
                duration=duration,
                error=error_message,
                call_id=call.id,
                tab_id=tab_id,
                url=url,
            )
        return payload

    async def _dispatch(self, call: ToolCall) -> Any:
        spec = self._catalog.get(call.name)
        if spec is None:
            raise UnknownToolError(tool_name=call.name)

        arguments = _parse_arguments(call)
        _check_required(spec, arguments)

        if spec.strategy is DispatchStrategy.LOCAL:
            assert spec.handler is not None
            context = ToolContext(session=self._session, bridge=self._bridge, timeout=self._timeout)
            result = spec.handler(arguments, context)
            if inspect.isawaitable(result):
                result = await result
            return result

        if self._bridge is None:
            raise BridgeUnavailableError(message="Browser extension is not connected")
        return await self._bridge.invoke(spec.name, arguments, self._timeout)

    def _tab_snapshot(self) -> tuple[int | None, str | None]:
        if self._session is None:
            return None, None
        return self._session.current_tab_id, self._session.current_tab_url


def _parse_arguments(call: ToolCall) -> dict[str, Any]:
    try:
        return call.parsed_arguments()
    except ValueError as exc:
        raise InvalidArgumentsError(
            message=f"Invalid arguments for {call.name}: {exc}",
            details={"arguments": call.arguments},
        ) from exc


def _check_required(spec: ToolSpec, arguments: Mapping[str, Any]) -> None:
    for key in spec.required_arguments:
        value = arguments.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidArgumentsError(message=f"Invalid arguments: {key} required")


def _encode_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ToolExecutionError(message="Failed to encode result") from exc
