"""Pydantic models for chat requests sent to OpenRouter."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Represents a single chat message."""

    role: Literal["system", "user", "assistant", "tool"]
    content: Union[str, List[Dict[str, Any]], None]
    name: Optional[str] = None
    tool_call_id: Optional[str] = Field(default=None, alias="tool_call_id")
    tool_calls: Optional[List[Dict[str, Any]]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChatCompletionRequest(BaseModel):
    """Outgoing chat completion request payload."""

    model: Optional[str] = None
    messages: List[ChatMessage]

    # Basic generation parameters
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    # Tool calling
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    parallel_tool_calls: Optional[bool] = None

    # Metadata and tracking
    user: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_openrouter_payload(
        self, default_model: str, *, stream: bool = True
    ) -> Dict[str, Any]:
        """Serialize the request for OpenRouter, enforcing defaults."""

        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload.setdefault("model", default_model)
        payload["stream"] = stream
        return payload


__all__ = ["ChatMessage", "ChatCompletionRequest"]
