"""Chat-to-speech streaming endpoint."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from ..services.token_source import TokenSource
from ..services.tts import AudioChannel, SpeechStreamEmitter, VoiceSynthesisService
from .voice import PCM_MEDIA_TYPE, audio_headers, get_synthesis_service, read_text_body

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/gemini-voice", tags=["voice"])


class AudioStreamResponse(StreamingResponse):
    """Streaming response that runs `on_close` however the response ends.

    The callback also fires when the client is gone before the first body
    chunk is pulled, where the body generator never starts.
    """

    def __init__(self, content, *, on_close: Callable[[], None], **kwargs):
        super().__init__(content, **kwargs)
        self._on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_close()


def get_speech_emitter(request: Request) -> SpeechStreamEmitter:
    emitter = getattr(request.app.state, "speech_emitter", None)
    if emitter is None:
        raise HTTPException(status_code=503, detail="Speech streaming is not available")
    return emitter


def get_token_source(request: Request) -> TokenSource:
    source = getattr(request.app.state, "token_source", None)
    if source is None:
        raise HTTPException(status_code=503, detail="Language model is not available")
    return source


@router.post("/chat-stream", response_class=StreamingResponse)
async def chat_and_speak(
    request: Request,
    emitter: SpeechStreamEmitter = Depends(get_speech_emitter),
    token_source: TokenSource = Depends(get_token_source),
    synthesizer: VoiceSynthesisService = Depends(get_synthesis_service),
) -> StreamingResponse:
    """
    Stream PCM audio for the model's reply to the prompt, sentence by sentence.

    The worker is scheduled before the response starts, so this handler
    returns as soon as the channel exists. Each chunk holds the audio of one
    sentence unit. If the model stream fails mid-way the response body is
    aborted instead of ending cleanly.
    """

    prompt = await read_text_body(request, "prompt")
    if not synthesizer.is_ready:
        raise HTTPException(status_code=503, detail="Speech engine is not initialized")

    channel = AudioChannel(max_pending=emitter.max_pending)
    task = emitter.start(token_source.stream_tokens(prompt), channel)

    async def audio_publisher():
        async for chunk in channel.stream():
            yield chunk

    def stop_stream() -> None:
        channel.abandon()
        if not task.done():
            logger.info("Client left before the speech stream finished, cancelling")
            task.cancel()

    return AudioStreamResponse(
        audio_publisher(),
        on_close=stop_stream,
        media_type=PCM_MEDIA_TYPE,
        headers=audio_headers(synthesizer.sample_rate),
    )
