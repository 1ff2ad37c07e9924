"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .openrouter import OpenRouterClient
from .routers.gemini_voice import router as gemini_voice_router
from .routers.intent import router as intent_router
from .routers.voice import router as voice_router
from .services.command_bus import SupabaseCommandBus
from .services.intent_service import IntentService
from .services.intent_tools import GakaTools
from .services.token_source import OpenRouterTokenSource
from .services.tts import SpeechStreamEmitter, VoiceSynthesisService

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Always add console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("gaka_backend").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Request bodies of the LLM and Supabase calls only at DEBUG
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    else:
        logging.getLogger("httpx").setLevel(log_level)
        logging.getLogger("httpcore").setLevel(log_level)


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()

    synthesis_service = VoiceSynthesisService(
        settings.picovoice_access_key.get_secret_value()
        if settings.picovoice_access_key
        else None,
        model_path=settings.orca_model_path,
        library_path=settings.orca_library_path,
    )
    speech_emitter = SpeechStreamEmitter(
        synthesis_service,
        max_pending=settings.voice_stream_max_pending,
    )

    openrouter_client = OpenRouterClient(settings)
    token_source = OpenRouterTokenSource(openrouter_client, settings)

    command_bus = SupabaseCommandBus(settings)
    intent_service = IntentService(openrouter_client, GakaTools(command_bus), settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Engine failures must stop startup rather than surface on first request
        synthesis_service.init()
        try:
            yield
        finally:
            await speech_emitter.aclose()
            try:
                await asyncio.wait_for(command_bus.aclose(), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Command bus shutdown timed out after 10s")
            await OpenRouterClient.aclose_shared()
            synthesis_service.cleanup()

    app = FastAPI(
        title="GaKa Voice Backend",
        version="0.1.0",
        description="Voice assistant intents and streaming speech synthesis.",
        lifespan=lifespan,
    )

    app.state.synthesis_service = synthesis_service
    app.state.speech_emitter = speech_emitter
    app.state.token_source = token_source
    app.state.command_bus = command_bus
    app.state.intent_service = intent_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Sample-Rate", "X-Audio-Encoding", "X-Audio-Channels"],
    )

    app.include_router(intent_router)
    app.include_router(voice_router)
    app.include_router(gemini_voice_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, object]:
        ready = synthesis_service.is_ready
        return {
            "status": "ok" if ready else "degraded",
            "engine_ready": ready,
            "sample_rate": synthesis_service.sample_rate if ready else None,
            "default_model": settings.default_model,
            "active_streams": speech_emitter.active_streams,
            "notifications_enabled": command_bus.enabled,
        }

    return app


__all__ = ["create_app"]
