from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from gaka_backend.config import Settings
from gaka_backend.openrouter import OpenRouterError
from gaka_backend.schemas.chat import ChatCompletionRequest
from gaka_backend.schemas.voice import ToolAction
from gaka_backend.services.intent_service import FALLBACK_REPLY, IntentService
from gaka_backend.services.intent_tools import GakaTools


class RecordingBus:
    def __init__(self) -> None:
        self.notifications: list[tuple[ToolAction, str]] = []

    def notify(self, action: ToolAction, target: str) -> None:
        self.notifications.append((action, target))


class ScriptedCompletionClient:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.requests: list[ChatCompletionRequest] = []

    async def create_completion(self, request: ChatCompletionRequest) -> dict[str, Any]:
        self.requests.append(request.model_copy(deep=True))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def tool_call(name: str, arguments: dict[str, Any], call_id: str = "call_1") -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": json.dumps(arguments)},
    }


def completion(content: str | None = None, tool_calls: list[dict[str, Any]] | None = None):
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {"choices": [{"message": message}]}


def make_service(responses: list[Any], **overrides: Any):
    settings = Settings(openrouter_api_key=SecretStr("test"), **overrides)
    client = ScriptedCompletionClient(responses)
    bus = RecordingBus()
    service = IntentService(client, GakaTools(bus), settings)  # type: ignore[arg-type]
    return service, client, bus


@pytest.mark.asyncio
async def test_navigate_tool_sets_nav_url_and_notifies() -> None:
    service, client, bus = make_service(
        [
            completion(tool_calls=[tool_call("navigate", {"feature_name": "library"})]),
            completion("Taking you to the library."),
        ]
    )

    result = await service.process("open my library")

    assert result.tts_text == "Taking you to the library."
    assert result.nav_url == "library"
    assert [a.action for a in result.actions] == [ToolAction.NAVIGATE]
    assert bus.notifications == [(ToolAction.NAVIGATE, "library")]

    first, second = client.requests
    assert first.tool_choice == "auto"
    assert {t["function"]["name"] for t in first.tools or []} == {"navigate", "search", "read"}
    assert [m.role for m in second.messages] == ["system", "user", "assistant", "tool"]
    tool_message = second.messages[-1]
    assert tool_message.tool_call_id == "call_1"
    assert json.loads(tool_message.content)["tts_text"] == "Navigating to library"  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_plain_reply_without_tools() -> None:
    service, client, bus = make_service([completion("Hello! How can I help?")])

    result = await service.process("hi")

    assert result.tts_text == "Hello! How can I help?"
    assert result.nav_url is None
    assert result.actions == []
    assert bus.notifications == []
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_tool_text_used_when_final_reply_is_empty() -> None:
    service, _, bus = make_service(
        [
            completion(tool_calls=[tool_call("search", {"query": "dragons"})]),
            completion(""),
        ]
    )

    result = await service.process("find dragon books")

    assert result.tts_text == "Searching for dragons"
    assert result.nav_url is None
    assert bus.notifications == [(ToolAction.SEARCH, "dragons")]


@pytest.mark.asyncio
async def test_model_failure_returns_fallback() -> None:
    service, _, bus = make_service([OpenRouterError(503, "upstream down")])

    result = await service.process("read the hobbit")

    assert result.tts_text == FALLBACK_REPLY
    assert result.nav_url is None
    assert bus.notifications == []


@pytest.mark.asyncio
async def test_malformed_response_returns_fallback() -> None:
    service, _, _ = make_service([{"choices": []}])

    result = await service.process("anything")

    assert result.tts_text == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_back_to_model() -> None:
    service, client, bus = make_service(
        [
            completion(tool_calls=[tool_call("delete_everything", {})]),
            completion("Sorry, I can't do that."),
        ]
    )

    result = await service.process("delete it all")

    assert result.tts_text == "Sorry, I can't do that."
    assert result.actions == []
    assert bus.notifications == []
    error = json.loads(client.requests[1].messages[-1].content)  # type: ignore[arg-type]
    assert "Unknown tool" in error["error"]


@pytest.mark.asyncio
async def test_tool_rounds_are_capped() -> None:
    rounds = [
        completion(tool_calls=[tool_call("read", {"content_name": f"Book {i}"}, f"c{i}")])
        for i in range(5)
    ]
    service, client, bus = make_service(rounds, intent_max_tool_rounds=2)

    result = await service.process("read everything")

    assert len(client.requests) == 2
    assert [target for _, target in bus.notifications] == ["Book 0", "Book 1"]
    assert result.tts_text == "Opening Book 0 for reading Opening Book 1 for reading"


@pytest.mark.asyncio
async def test_last_navigation_wins() -> None:
    service, _, _ = make_service(
        [
            completion(
                tool_calls=[
                    tool_call("navigate", {"feature_name": "contests"}, "a"),
                    tool_call("search", {"query": "winners"}, "b"),
                    tool_call("navigate", {"feature_name": "leaderboard"}, "c"),
                ]
            ),
            completion("Done."),
        ]
    )

    result = await service.process("show contest winners")

    assert result.nav_url == "leaderboard"
    assert len(result.actions) == 3


def test_dispatch_validates_arguments() -> None:
    tools = GakaTools(RecordingBus())  # type: ignore[arg-type]

    with pytest.raises(ValueError, match="Unknown tool"):
        tools.dispatch("fly", "{}")
    with pytest.raises(ValueError, match="Invalid arguments"):
        tools.dispatch("search", "{not json")
    with pytest.raises(ValueError, match="Missing 'query'"):
        tools.dispatch("search", {})
    with pytest.raises(ValueError, match="must be an object"):
        tools.dispatch("search", "[1, 2]")


def test_dispatch_accepts_renamed_single_argument() -> None:
    bus = MagicMock()
    tools = GakaTools(bus)

    result = tools.dispatch("read", {"title": "  Matilda "})

    assert result.action is ToolAction.READ
    assert result.target == "Matilda"
    assert result.tts_text == "Opening Matilda for reading"
    bus.notify.assert_called_once_with(ToolAction.READ, "Matilda")
