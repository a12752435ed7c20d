"""Application bootstrap: builds the runtime from ``Settings`` and serves the browser channel."""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence

from .ai.orchestration.chat_orchestrator import ClientFactory, ConversationEngine
from .ai.orchestration.event_log import EventRecorder
from .ai.orchestration.model_types import ChatTurnResult, Message
from .ai.orchestration.tools import ToolInvoker
from .ai.services.model_limits import ModelLimitsService
from .ai.tools import build_default_catalog
from .services.bridge import ToolBridge
from .services.bridge_router import InboundRouter
from .services.session import BrowserSession
from .services.settings import Profile, Settings
from .services.ws_channel import WebSocketChannel
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(slots=True)
class BrowserRuntime:
    """Container returned by :func:`build_runtime`."""

    settings: Settings
    recorder: EventRecorder
    session: BrowserSession
    bridge: ToolBridge
    router: InboundRouter
    channel: WebSocketChannel
    invoker: ToolInvoker
    engine: ConversationEngine
    model_limits: ModelLimitsService

    def resolve_profile(self, profile: Profile | None = None) -> Profile:
        """Return ``profile``, or the settings' default profile sized from the model-limit table."""

        if profile is not None:
            return profile
        default = self.settings.default_profile()
        match = self.model_limits.find(default.model)
        if match is None:
            return default
        return replace(
            default,
            context_limit=match.limit.context_window,
            max_tokens=min(default.max_tokens, match.limit.max_output),
        )

    async def ask(
        self,
        history: Sequence[Message | Mapping[str, Any]],
        profile: Profile | None = None,
    ) -> ChatTurnResult:
        """Run one exchange with the cached page content as supplementary context."""

        return await self.engine.run(
            history,
            self.resolve_profile(profile),
            self.session.page_content,
            api_key=self.settings.api_key or None,
        )

    async def serve_forever(self) -> None:
        await self.model_limits.refresh_if_needed()
        try:
            await self.channel.serve_forever()
        finally:
            self.bridge.close()

    async def aclose(self) -> None:
        self.bridge.close()
        await self.channel.stop()


def build_runtime(
    settings: Settings | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> BrowserRuntime:
    """Wire the recorder, session, bridge, router, channel and engine from ``settings``."""

    settings = settings or Settings.from_env()

    recorder = EventRecorder(
        settings.resolve_events_log_path(),
        capacity=settings.event_buffer_size,
        startup_tail=settings.event_startup_tail,
    )
    recorder.load_on_startup()

    session = BrowserSession()
    bridge = ToolBridge(default_timeout=settings.effective_tool_timeout, session=session)
    router = InboundRouter(bridge, session, recorder=recorder)

    def on_disconnect() -> None:
        session.mark_disconnected()
        bridge.cancel_all("Browser extension disconnected")

    channel = WebSocketChannel(
        settings.channel_host,
        settings.channel_port,
        handler=router.handle,
        on_disconnect=on_disconnect,
    )
    bridge.attach_channel(channel)

    invoker = ToolInvoker(
        build_default_catalog(),
        bridge=bridge,
        recorder=recorder,
        session=session,
        timeout=settings.effective_tool_timeout,
        log_arguments=settings.debug_logging,
    )
    engine = ConversationEngine(
        invoker,
        client_factory=client_factory,
        recorder=recorder,
        session=session,
        settings=settings,
    )

    model_limits = ModelLimitsService(
        settings.resolve_model_cache_path(),
        refresh_interval=settings.model_refresh_days * _SECONDS_PER_DAY,
        request_timeout=settings.request_timeout,
    )
    model_limits.load_cache()

    _LOGGER.debug("Runtime assembled with settings %s", settings.redacted())
    return BrowserRuntime(
        settings=settings,
        recorder=recorder,
        session=session,
        bridge=bridge,
        router=router,
        channel=channel,
        invoker=invoker,
        engine=engine,
        model_limits=model_limits,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``pagepilot`` console script."""

    parser = argparse.ArgumentParser(
        prog="pagepilot",
        description="Serve the browser automation channel for the pagepilot assistant.",
    )
    parser.add_argument("--host", help="Interface to listen on (overrides PAGEPILOT_CHANNEL_HOST).")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides PAGEPILOT_CHANNEL_PORT).")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    args = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.host:
        overrides["channel_host"] = args.host
    if args.port is not None:
        overrides["channel_port"] = args.port
    if args.debug:
        overrides["debug_logging"] = True
    settings = replace(Settings.from_env(), **overrides)
    logging_utils.configure_from_settings(settings)

    runtime = build_runtime(settings)
    try:
        asyncio.run(runtime.serve_forever())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
