"""Intent handling: let the model pick an assistant action and execute it."""

import json
import logging
from typing import Any, Mapping, Optional

from fastapi import status

from gaka_backend.config import Settings
from gaka_backend.openrouter import OpenRouterClient, OpenRouterError
from gaka_backend.schemas.chat import ChatCompletionRequest, ChatMessage
from gaka_backend.schemas.voice import IntentResponse, ToolAction, ToolResponse
from gaka_backend.services.intent_tools import GakaTools

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I processed that, but encountered an error."


class IntentService:
    """Routes a spoken query through the model's tool calls."""

    def __init__(self, client: OpenRouterClient, tools: GakaTools, settings: Settings):
        self._client = client
        self._tools = tools
        self._settings = settings

    async def process(self, query: str) -> IntentResponse:
        """Resolve `query` into actions and the sentence to speak back.

        The model may call tools for up to `intent_max_tool_rounds` rounds;
        each tool result is fed back so the final reply can refer to it.
        Failures never escape: the caller receives a fallback reply.
        """
        logger.info(f"Received query: {query}")

        messages = [
            ChatMessage(role="system", content=self._settings.intent_system_prompt),
            ChatMessage(role="user", content=query),
        ]
        actions: list[ToolResponse] = []
        reply = ""

        try:
            for round_index in range(self._settings.intent_max_tool_rounds):
                request = ChatCompletionRequest(
                    model=self._settings.default_model,
                    messages=messages,
                    tools=GakaTools.definitions(),
                    tool_choice="auto",
                    temperature=0,
                )
                body = await self._client.create_completion(request)
                message = _first_message(body)
                reply = _message_text(message)
                tool_calls = message.get("tool_calls") or []

                if not tool_calls:
                    break

                logger.debug(f"Intent round {round_index + 1}: {len(tool_calls)} tool call(s)")
                messages.append(
                    ChatMessage(role="assistant", content=reply or None, tool_calls=tool_calls)
                )
                for call in tool_calls:
                    messages.append(self._execute(call, actions))
            else:
                logger.warning(
                    f"Intent stopped after {self._settings.intent_max_tool_rounds} tool rounds"
                )
        except OpenRouterError as exc:
            logger.error(f"Intent model call failed ({exc.status_code}): {exc.detail}")
            return IntentResponse(tts_text=FALLBACK_REPLY, actions=actions)
        except Exception as exc:
            logger.error(f"Intent processing failed: {exc}", exc_info=True)
            return IntentResponse(tts_text=FALLBACK_REPLY, actions=actions)

        tts_text = reply.strip() or " ".join(action.tts_text for action in actions)
        return IntentResponse(
            tts_text=tts_text or FALLBACK_REPLY,
            nav_url=_navigation_target(actions),
            actions=actions,
        )

    def _execute(self, call: Mapping[str, Any], actions: list[ToolResponse]) -> ChatMessage:
        function = call.get("function") or {}
        name = function.get("name", "")
        call_id = call.get("id")

        try:
            result = self._tools.dispatch(name, function.get("arguments"))
        except ValueError as exc:
            logger.warning(f"Rejected tool call {name!r}: {exc}")
            content = json.dumps({"error": str(exc)})
        else:
            actions.append(result)
            content = result.model_dump_json()

        return ChatMessage(role="tool", content=content, tool_call_id=call_id, name=name)


def _first_message(body: Mapping[str, Any]) -> Mapping[str, Any]:
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        raise OpenRouterError(status.HTTP_502_BAD_GATEWAY, "Completion response missing choices")
    message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
    if not isinstance(message, Mapping):
        raise OpenRouterError(status.HTTP_502_BAD_GATEWAY, "Completion response missing message")
    return message


def _message_text(message: Mapping[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            item.get("text", "")
            for item in content
            if isinstance(item, Mapping) and item.get("type") == "text"
        )
    return ""


def _navigation_target(actions: list[ToolResponse]) -> Optional[str]:
    for action in reversed(actions):
        if action.action is ToolAction.NAVIGATE:
            return action.target
    return None


__all__ = ["FALLBACK_REPLY", "IntentService"]
