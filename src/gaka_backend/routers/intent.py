"""Intent endpoint: map a spoken query onto navigate/search/read actions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ..schemas.voice import IntentRequest, IntentResponse
from ..services.intent_service import IntentService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/gaka", tags=["intent"])


def get_intent_service(request: Request) -> IntentService:
    service = getattr(request.app.state, "intent_service", None)
    if service is None:
        logger.error("Intent service not initialized")
        raise HTTPException(status_code=503, detail="Intent service is not available")
    return service


async def parse_intent_request(request: Request) -> IntentRequest:
    """Parse `{"query": ...}`; malformed or empty bodies are a 400."""

    raw = await request.body()
    try:
        intent = IntentRequest.model_validate_json(raw or b"{}")
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "body"
        raise HTTPException(
            status_code=400, detail=f"Invalid request ({location}): {first['msg']}"
        ) from exc
    if not intent.query.strip():
        raise HTTPException(status_code=400, detail="'query' must not be empty")
    return intent


@router.post("/intent", response_model=IntentResponse)
async def process_intent(
    payload: IntentRequest = Depends(parse_intent_request),
    service: IntentService = Depends(get_intent_service),
) -> IntentResponse:
    return await service.process(payload.query)
