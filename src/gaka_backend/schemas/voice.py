"""Request and response models for the voice assistant endpoints."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ToolAction(str, Enum):
    """UI actions announced on the command bus."""

    NAVIGATE = "NAVIGATE"
    SEARCH = "SEARCH"
    READ = "READ"


class ToolResponse(BaseModel):
    """Outcome of one executed assistant tool."""

    action: ToolAction
    target: str
    tts_text: str


class IntentRequest(BaseModel):
    query: str = Field(..., min_length=1)


class IntentResponse(BaseModel):
    """Spoken reply for a query plus the actions it triggered."""

    tts_text: str
    nav_url: Optional[str] = None
    actions: List[ToolResponse] = Field(default_factory=list)


__all__ = ["IntentRequest", "IntentResponse", "ToolAction", "ToolResponse"]
