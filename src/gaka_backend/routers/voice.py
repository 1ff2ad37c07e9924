"""Non-streaming text-to-speech endpoint."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..services.tts import EngineNotReady, VoiceSynthesisService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/voice", tags=["voice"])

PCM_MEDIA_TYPE = "application/octet-stream"


def get_synthesis_service(request: Request) -> VoiceSynthesisService:
    service = getattr(request.app.state, "synthesis_service", None)
    if service is None:
        logger.error("Voice synthesis service not initialized")
        raise HTTPException(status_code=503, detail="Speech engine is not available")
    return service


def audio_headers(sample_rate: int) -> dict[str, str]:
    return {
        "X-Sample-Rate": str(sample_rate),
        "X-Audio-Encoding": "pcm_s16le",
        "X-Audio-Channels": "1",
    }


async def read_text_body(request: Request, field: str) -> str:
    """Return the request text from a raw body or a JSON `{field: ...}` object."""

    raw = await request.body()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Body must be UTF-8 text") from exc

    content_type = request.headers.get("content-type", "")
    if "json" in content_type:
        try:
            payload = json.loads(text) if text.strip() else ""
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {exc.msg}") from exc
        if isinstance(payload, dict):
            payload = payload.get(field, "")
        if not isinstance(payload, str):
            raise HTTPException(status_code=400, detail=f"'{field}' must be a string")
        text = payload

    if not text.strip():
        raise HTTPException(status_code=400, detail=f"'{field}' must not be empty")
    return text


@router.post("/synthesize", response_class=Response)
async def synthesize_text(
    request: Request,
    service: VoiceSynthesisService = Depends(get_synthesis_service),
) -> Response:
    """Synthesize text and return raw little-endian 16-bit PCM."""

    text = await read_text_body(request, "text")
    logger.info(f"Synthesizing ({len(text)} chars): {text[:50]}")

    try:
        audio = await service.synthesize_bytes(text)
        sample_rate = service.sample_rate
    except EngineNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return Response(
        content=audio,
        media_type=PCM_MEDIA_TYPE,
        headers=audio_headers(sample_rate),
    )
