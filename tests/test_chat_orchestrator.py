"""Tests for the conversation engine's tool loop."""

from __future__ import annotations

import json

import pytest

from pagepilot.ai.errors import AuthError, InvalidResponseError, RateLimited, TooManyIterations
from pagepilot.ai.orchestration.budget_manager import TRUNCATION_MARKER
from pagepilot.ai.orchestration.chat_orchestrator import ConversationEngine
from pagepilot.ai.orchestration.event_log import EventRecorder, EventType
from pagepilot.ai.orchestration.model_types import Message, ToolCall
from pagepilot.ai.orchestration.runtime_config import ConversationRuntimeConfig
from pagepilot.ai.orchestration.tools import ToolInvoker
from pagepilot.ai.tools import build_default_catalog
from pagepilot.services.session import BrowserSession, PageContent
from pagepilot.services.settings import Profile

from tests.helpers import ScriptedChatClient, text_response, tool_response


@pytest.fixture
def invoker(session: BrowserSession, recorder: EventRecorder) -> ToolInvoker:
    return ToolInvoker(build_default_catalog(), recorder=recorder, session=session, timeout=1.0)


def _engine(
    invoker: ToolInvoker,
    client: ScriptedChatClient,
    recorder: EventRecorder | None = None,
    **config: object,
) -> ConversationEngine:
    return ConversationEngine(
        invoker,
        client=client,
        recorder=recorder,
        config=ConversationRuntimeConfig(**config),
    )


@pytest.mark.asyncio
async def test_plain_question_without_tools_sends_one_request(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient([text_response("4")])
    engine = _engine(invoker, client, enable_tools=False)

    result = await engine.run([Message.user("What is 2+2?")], profile)

    assert result.ok
    assert result.text == "4"
    assert result.iterations == 1
    assert len(client.requests) == 1
    request = client.requests[0]
    assert request["messages"] == [{"role": "user", "content": "What is 2+2?"}]
    assert request["tools"] is None
    assert request["max_tokens"] == profile.max_tokens


@pytest.mark.asyncio
async def test_history_order_is_preserved(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient([text_response("Paris")])
    engine = _engine(invoker, client, enable_tools=False)
    history = [
        Message.system("Be brief."),
        Message.user("Capital of Italy?"),
        Message.assistant("Rome"),
        {"role": "user", "content": "And France?"},
    ]

    await engine.run(history, profile)

    assert [message["content"] for message in client.requests[0]["messages"]] == [
        "Be brief.",
        "Capital of Italy?",
        "Rome",
        "And France?",
    ]


@pytest.mark.asyncio
async def test_tool_results_follow_assistant_message_in_call_order(
    invoker: ToolInvoker, session: BrowserSession, profile: Profile, page: PageContent
) -> None:
    session.set_page_content(page)
    first = ToolCall(id="call_a", name="getPageText")
    second = ToolCall(id="call_b", name="searchOnPage", arguments='{"query": "python"}')
    client = ScriptedChatClient([tool_response(first, second), text_response("Python appears twice.")])
    engine = _engine(invoker, client)

    result = await engine.run([Message.user("How often is Python mentioned?")], profile)

    assert result.text == "Python appears twice."
    assert result.iterations == 2
    assert [call.id for call in result.tool_calls] == ["call_a", "call_b"]

    follow_up = client.requests[1]["messages"]
    assert follow_up[1]["role"] == "assistant"
    assert [entry["id"] for entry in follow_up[1]["tool_calls"]] == ["call_a", "call_b"]
    tool_messages = follow_up[2:]
    assert [message["role"] for message in tool_messages] == ["tool", "tool"]
    assert [message["tool_call_id"] for message in tool_messages] == ["call_a", "call_b"]
    assert json.loads(tool_messages[1]["content"])["totalMatches"] == 2
    assert client.requests[0]["tools"] is not None


@pytest.mark.asyncio
async def test_tool_failure_is_fed_back_to_the_model(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient(
        [tool_response(ToolCall(id="call_x", name="doesNotExist")), text_response("I could not do that.")]
    )
    engine = _engine(invoker, client)

    result = await engine.run([Message.user("Use a made up tool")], profile)

    assert result.ok
    tool_message = client.requests[1]["messages"][-1]
    assert json.loads(tool_message["content"]) == {"error": "Unknown tool: doesNotExist", "code": "unknown_tool"}


@pytest.mark.asyncio
async def test_endless_tool_calls_stop_at_iteration_ceiling(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient(repeat=tool_response(ToolCall(id="call_loop", name="getTabs")))
    engine = _engine(invoker, client)

    result = await engine.run([Message.user("Loop forever")], profile)

    assert len(client.requests) == 5
    assert isinstance(result.error, TooManyIterations)
    assert result.error.iterations == 5
    assert result.text == TooManyIterations.default_user_message
    assert not result.ok


@pytest.mark.asyncio
async def test_iteration_ceiling_is_configurable(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient(repeat=tool_response(ToolCall(id="call_loop", name="getTabs")))
    engine = _engine(invoker, client, max_iterations=2)

    result = await engine.run([Message.user("Loop")], profile)

    assert len(client.requests) == 2
    assert isinstance(result.error, TooManyIterations)


@pytest.mark.asyncio
async def test_tool_calls_are_ignored_when_tools_were_not_offered(invoker: ToolInvoker, profile: Profile) -> None:
    response = tool_response(ToolCall(id="call_1", name="getTabs"))
    response.content = "Here is my answer anyway."
    client = ScriptedChatClient([response])
    engine = _engine(invoker, client, enable_tools=False)

    result = await engine.run([Message.user("hi")], profile)

    assert result.text == "Here is my answer anyway."
    assert result.tool_calls == []


@pytest.mark.asyncio
async def test_page_context_is_budgeted_and_spliced(invoker: ToolInvoker) -> None:
    profile = Profile(name="Small", base_url="http://local/v1", model="m", max_tokens=1_000, context_limit=2_000)
    page = PageContent(url="https://example.com", title="Big Page", text="a" * 10_000, description="Lots of a")
    client = ScriptedChatClient([text_response("ok")])
    engine = _engine(invoker, client, enable_tools=False)

    await engine.run([Message.user("Summarize")], profile, page)

    content = client.requests[0]["messages"][0]["content"]
    assert content.startswith(
        "[Page Context]\nTitle: Big Page\nURL: https://example.com\nDescription: Lots of a\nContent:\n"
    )
    assert content.endswith("\n\n[User Question]\nSummarize")
    body = content.split("Content:\n", 1)[1].split(TRUNCATION_MARKER, 1)[0]
    assert body == "a" * (4_000 - len("Summarize") - 2_000)


@pytest.mark.asyncio
async def test_plain_string_supplement_has_no_title(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient([text_response("ok")])
    engine = _engine(invoker, client, enable_tools=False)

    await engine.run([Message.user("What is this?")], profile, "Some selected text")

    content = client.requests[0]["messages"][0]["content"]
    assert content == "[Page Context]\nContent:\nSome selected text\n\n[User Question]\nWhat is this?"


@pytest.mark.asyncio
async def test_endpoint_error_becomes_terminal_message(
    invoker: ToolInvoker, profile: Profile, recorder: EventRecorder
) -> None:
    client = ScriptedChatClient([AuthError("Incorrect API key provided", status_code=401)])
    engine = _engine(invoker, client, recorder)

    result = await engine.run([Message.user("hi")], profile)

    assert isinstance(result.error, AuthError)
    assert result.text == "Invalid or missing API key. Please check your settings."
    events = recorder.recent_events()
    assert [event.type for event in events] == [EventType.AI_QUERY, EventType.AI_RESPONSE]
    assert events[-1].is_error
    assert events[-1].details["errorKind"] == "auth_error"


@pytest.mark.asyncio
async def test_rate_limit_after_tool_round_keeps_executed_calls(
    invoker: ToolInvoker, profile: Profile, session: BrowserSession, page: PageContent
) -> None:
    session.set_page_content(page)
    client = ScriptedChatClient([tool_response(ToolCall(id="call_1", name="getPageText")), RateLimited("slow down")])
    engine = _engine(invoker, client)

    result = await engine.run([Message.user("Read the page")], profile)

    assert isinstance(result.error, RateLimited)
    assert result.text == "Rate limit exceeded. Please try again later."
    assert [call.id for call in result.tool_calls] == ["call_1"]


@pytest.mark.asyncio
async def test_response_without_content_is_invalid(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient([text_response(None)])
    engine = _engine(invoker, client)

    result = await engine.run([Message.user("hi")], profile)

    assert isinstance(result.error, InvalidResponseError)
    assert result.text == "No response from the model provider."


@pytest.mark.asyncio
async def test_success_logs_query_and_response_events(
    invoker: ToolInvoker, profile: Profile, recorder: EventRecorder, page: PageContent
) -> None:
    client = ScriptedChatClient([text_response("Short answer", model="gpt-4o-mini-2024")])
    engine = _engine(invoker, client, recorder, enable_tools=False)

    await engine.run([Message.user("Explain")], profile, page)

    query, response = recorder.recent_events()
    assert query.type is EventType.AI_QUERY
    assert query.details["userMessage"] == "Explain"
    assert query.details["hasPageContext"] == "true"
    assert query.details["prompt"] == "[pagecontext]\n\nExplain"
    assert query.details["pageTitle"] == "Example Article"
    assert response.details["responseLength"] == str(len("Short answer"))
    assert response.details["model"] == "gpt-4o-mini-2024"


@pytest.mark.asyncio
async def test_factory_client_is_built_per_run_and_closed(invoker: ToolInvoker, profile: Profile) -> None:
    created: list[tuple[ScriptedChatClient, str | None]] = []

    def factory(run_profile: Profile, api_key: str | None) -> ScriptedChatClient:
        client = ScriptedChatClient([text_response(f"answer from {run_profile.model}")])
        created.append((client, api_key))
        return client

    engine = ConversationEngine(
        invoker, client_factory=factory, config=ConversationRuntimeConfig(enable_tools=False)
    )

    result = await engine.run([Message.user("hi")], profile, api_key="sk-123")

    assert result.text == "answer from gpt-4o-mini"
    assert len(created) == 1
    client, api_key = created[0]
    assert api_key == "sk-123"
    assert client.closed


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(invoker: ToolInvoker, profile: Profile) -> None:
    client = ScriptedChatClient([text_response("ok")])
    engine = _engine(invoker, client, enable_tools=False)

    await engine.run([Message.user("hi")], profile)

    assert client.closed is False


@pytest.mark.asyncio
async def test_empty_history_is_rejected(invoker: ToolInvoker, profile: Profile) -> None:
    engine = _engine(invoker, ScriptedChatClient([]))

    with pytest.raises(ValueError):
        await engine.run([], profile)


def test_runtime_config_requires_positive_ceiling() -> None:
    with pytest.raises(ValueError):
        ConversationRuntimeConfig(max_iterations=0)
