"""Speech synthesis backed by a single process-wide Picovoice Orca engine."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np
import pvorca

from .pcm import as_pcm, empty_pcm, encode_pcm16le

logger = logging.getLogger(__name__)


class EngineInitError(RuntimeError):
    """The speech engine could not be created at startup."""


class EngineNotReady(RuntimeError):
    """Synthesis was requested before `init()` or after `cleanup()`."""

    def __init__(self, detail: str = "Speech engine is not initialized"):
        super().__init__(detail)


class SynthesisFailure(Exception):
    """The engine rejected or failed on one text unit."""

    def __init__(self, text: str, cause: BaseException):
        super().__init__(f"Synthesis failed for {len(text)} chars: {cause}")
        self.text = text
        self.cause = cause


class VoiceSynthesisService:
    """
    Owns the Orca engine handle and serializes every native call into it.

    The handle is created once by `init()` during application startup and
    released once by `cleanup()` at shutdown. Requests borrow it through
    `synthesize()`, which runs the blocking engine call on a worker thread.

    Two locks guard the engine:
    - `_engine_lock` (threading) is held on the worker thread for the
      duration of each native call, including `cleanup()`.
    - `_queue_lock` (asyncio) orders waiting requests; a request cancelled
      while queued leaves without ever reaching the engine.
    """

    def __init__(
        self,
        access_key: Optional[str],
        *,
        model_path: Optional[Path] = None,
        library_path: Optional[Path] = None,
        engine_factory: Callable[..., Any] = pvorca.create,
    ):
        self._access_key = access_key
        self._model_path = model_path
        self._library_path = library_path
        self._engine_factory = engine_factory
        self._engine: Any = None
        self._engine_lock = threading.Lock()
        self._queue_lock = asyncio.Lock()

    def init(self) -> None:
        """Create the engine. Raises EngineInitError so startup fails loudly."""
        with self._engine_lock:
            if self._engine is not None:
                return
            if not self._access_key:
                raise EngineInitError("Picovoice access key is not configured")

            kwargs: dict[str, Any] = {"access_key": self._access_key}
            if self._model_path is not None:
                kwargs["model_path"] = str(self._model_path)
            if self._library_path is not None:
                kwargs["library_path"] = str(self._library_path)

            try:
                self._engine = self._engine_factory(**kwargs)
            except pvorca.OrcaError as exc:
                raise EngineInitError(f"Failed to initialize Orca: {exc}") from exc

        logger.info(
            "Orca voice engine initialized (version=%s, sample_rate=%s)",
            getattr(self._engine, "version", "unknown"),
            self._engine.sample_rate,
        )

    def cleanup(self) -> None:
        """Release the native engine. Safe to call more than once."""
        with self._engine_lock:
            engine, self._engine = self._engine, None
            if engine is None:
                return
            engine.delete()
        logger.info("Orca voice engine released")

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    @property
    def sample_rate(self) -> int:
        engine = self._engine
        if engine is None:
            raise EngineNotReady()
        return int(engine.sample_rate)

    async def synthesize(self, text: str) -> np.ndarray:
        """
        Synthesize one text unit to int16 PCM samples.

        Engine errors are logged and reported as an empty buffer so one bad
        sentence cannot abort a stream. Only EngineNotReady propagates.
        """
        if not self.is_ready:
            raise EngineNotReady()

        text = text.strip()
        if not text:
            return empty_pcm()

        async with self._queue_lock:
            try:
                return await asyncio.to_thread(self._synthesize_blocking, text)
            except SynthesisFailure as exc:
                logger.error("%s", exc)
                return empty_pcm()

    async def synthesize_bytes(self, text: str) -> bytes:
        """Synthesize the whole input and return little-endian PCM bytes."""
        pcm = await self.synthesize(text)
        return encode_pcm16le(pcm)

    def _synthesize_blocking(self, text: str) -> np.ndarray:
        with self._engine_lock:
            engine = self._engine
            if engine is None:
                raise EngineNotReady("Speech engine was released during synthesis")
            try:
                pcm, _alignments = engine.synthesize(text)
            except pvorca.OrcaError as exc:
                raise SynthesisFailure(text, exc) from exc

        logger.debug("Synthesized %d samples for: %s", len(pcm), text[:50])
        return as_pcm(pcm)


__all__ = [
    "EngineInitError",
    "EngineNotReady",
    "SynthesisFailure",
    "VoiceSynthesisService",
]
