"""LLM token sources feeding the streaming speech pipeline."""

import json
import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional, Protocol

from fastapi import status

from gaka_backend.config import Settings
from gaka_backend.openrouter import OpenRouterClient, OpenRouterError
from gaka_backend.schemas.chat import ChatCompletionRequest, ChatMessage

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    """
    Asynchronous producer of text tokens for one prompt.

    Exhausting the iterator is the completion signal; raising from it is the
    error signal. Consumers call `aclose()` on the iterator to unsubscribe.
    """

    def stream_tokens(self, prompt: str) -> AsyncIterator[str]: ...


class OpenRouterTokenSource:
    """Streams assistant text deltas for a prompt from OpenRouter."""

    def __init__(self, client: OpenRouterClient, settings: Settings):
        self._client = client
        self._settings = settings

    def build_request(self, prompt: str) -> ChatCompletionRequest:
        messages = [ChatMessage(role="user", content=prompt)]
        if self._settings.voice_system_prompt:
            messages.insert(
                0, ChatMessage(role="system", content=self._settings.voice_system_prompt)
            )
        return ChatCompletionRequest(
            model=self._settings.default_model,
            messages=messages,
        )

    async def stream_tokens(self, prompt: str) -> AsyncIterator[str]:
        """Yield non-empty text deltas until the model finishes.

        Raises:
            OpenRouterError: on transport failures or an error payload
                inside the stream.
        """
        request = self.build_request(prompt)
        logger.info(f"Voice streaming LLM request: model={request.model}, prompt_len={len(prompt)}")

        token_count = 0
        async with aclosing(self._client.stream_chat(request)) as events:
            async for event in events:
                if event.get("event") != "message":
                    continue
                data = event.get("data")
                if not data:
                    continue
                if data == "[DONE]":
                    break

                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping non-JSON stream payload: {data[:80]}")
                    continue

                content = _extract_delta_text(chunk)
                if content:
                    token_count += 1
                    yield content

        logger.info(f"Voice streaming LLM finished after {token_count} tokens")


def _extract_delta_text(chunk: object) -> Optional[str]:
    if not isinstance(chunk, dict):
        return None

    error = chunk.get("error")
    if error:
        raise OpenRouterError(status.HTTP_502_BAD_GATEWAY, error)

    fragments: list[str] = []
    for choice in chunk.get("choices") or []:
        if not isinstance(choice, dict):
            continue
        delta = choice.get("delta") or {}
        content = delta.get("content")
        if isinstance(content, str) and content:
            fragments.append(content)
    return "".join(fragments) or None


__all__ = ["OpenRouterTokenSource", "TokenSource"]
