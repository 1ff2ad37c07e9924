"""
Streaming Emitter: LLM tokens in, PCM audio chunks out.

This module drives one chat-to-speech request from start to finish:

    token iterator → SentenceSegmenter → unit_queue → synthesize → encode → AudioChannel

Each request runs as its own asyncio task made of two cooperating halves:
- a reader that pulls tokens, feeds the segmenter and pushes sentence units
  into a bounded FIFO queue;
- the emitter loop that takes units in order, synthesizes them through the
  shared VoiceSynthesisService and sends the encoded bytes to the channel.

Token consumption therefore continues while a unit is being synthesized, but
only up to `max_pending` units ahead. A slow HTTP consumer blocks
`AudioChannel.send()`, the unit queue fills up, and the reader stops pulling
tokens until the consumer catches up.

Usage:
    emitter = SpeechStreamEmitter(synthesis_service, max_pending=4)
    channel = AudioChannel(max_pending=4)
    emitter.start(token_source.stream_tokens(prompt), channel)

    async for chunk in channel.stream():
        ...  # write chunk to the HTTP response
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Union

from .pcm import encode_pcm16le
from .synthesis import EngineNotReady, VoiceSynthesisService
from .text_segmenter import SentenceSegmenter

logger = logging.getLogger(__name__)


class TokenSourceError(Exception):
    """The upstream token stream failed; terminal for the request."""


class TransportFailure(Exception):
    """The output channel can no longer accept audio; terminal for the request."""


class ChannelClosedError(RuntimeError):
    """An audio channel was closed a second time."""


class EmitterState(str, Enum):
    AWAITING_TOKENS = "awaiting_tokens"
    EMITTING = "emitting"
    FLUSHING = "flushing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class _ChannelClosed:
    error: Optional[BaseException] = None


class AudioChannel:
    """
    Bounded, single-producer output channel for one streaming response.

    At most `max_pending` chunks wait for the consumer; `send()` blocks when
    they are all taken. The channel is closed exactly once with `close()`;
    a second close raises ChannelClosedError.
    """

    def __init__(self, max_pending: int = 4):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self._queue: asyncio.Queue[Union[bytes, _ChannelClosed]] = asyncio.Queue()
        self._slots = asyncio.Semaphore(max_pending)
        self._max_pending = max_pending
        self._closed = False
        self._abandoned = False
        self.chunks_sent = 0
        self.bytes_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    async def send(self, chunk: bytes) -> None:
        """Queue one audio chunk, waiting while the consumer is behind."""
        if self._closed:
            raise ChannelClosedError("Cannot send on a closed audio channel")
        if self._abandoned:
            raise TransportFailure("Audio consumer disconnected")
        if not chunk:
            return

        await self._slots.acquire()
        if self._abandoned:
            raise TransportFailure("Audio consumer disconnected")

        self._queue.put_nowait(chunk)
        self.chunks_sent += 1
        self.bytes_sent += len(chunk)

    def close(self, error: Optional[BaseException] = None) -> None:
        """Signal the end of the stream, successfully or with `error`."""
        if self._closed:
            raise ChannelClosedError("Audio channel already closed")
        self._closed = True
        if not self._abandoned:
            self._queue.put_nowait(_ChannelClosed(error))

    def abandon(self) -> None:
        """Consumer side: stop reading and fail any further sends."""
        if self._abandoned:
            return
        self._abandoned = True
        # Wake senders blocked on a slot so they observe the abandonment
        for _ in range(self._max_pending):
            self._slots.release()

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield chunks until the channel closes; re-raise a close error."""
        while True:
            item = await self._queue.get()
            if isinstance(item, _ChannelClosed):
                if item.error is not None:
                    raise item.error
                return
            self._slots.release()
            yield item


@dataclass(frozen=True)
class _Unit:
    text: str


@dataclass(frozen=True)
class _Flush:
    text: Optional[str]


@dataclass(frozen=True)
class _SourceFailed:
    error: BaseException


_QueueItem = Union[_Unit, _Flush, _SourceFailed]


class SpeechStreamEmitter:
    """
    Runs chat-to-speech requests against the shared synthesis service.

    Attributes:
        synthesizer: Process-wide VoiceSynthesisService
        max_pending: Sentence units buffered ahead of synthesis per request
    """

    def __init__(self, synthesizer: VoiceSynthesisService, *, max_pending: int = 4):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.synthesizer = synthesizer
        self.max_pending = max_pending
        self._tasks: set[asyncio.Task] = set()
        self._ids = itertools.count(1)

    def start(
        self, tokens: AsyncIterator[str], channel: AudioChannel
    ) -> asyncio.Task[EmitterState]:
        """Schedule a request on its own task and return immediately."""
        stream_id = next(self._ids)
        task = asyncio.create_task(
            self.run(tokens, channel, stream_id=stream_id),
            name=f"speech-stream-{stream_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def active_streams(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        """Cancel every in-flight stream (application shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d in-flight speech stream(s)", len(tasks))

    async def run(
        self,
        tokens: AsyncIterator[str],
        channel: AudioChannel,
        *,
        stream_id: int = 0,
    ) -> EmitterState:
        """
        Drive one request to COMPLETED or FAILED and close the channel.

        The channel is closed here and nowhere else.
        """
        start_time = time.monotonic()
        units: asyncio.Queue[_QueueItem] = asyncio.Queue(maxsize=self.max_pending)
        reader = asyncio.create_task(
            self._read_tokens(tokens, units, stream_id),
            name=f"speech-stream-{stream_id}-reader",
        )

        state = EmitterState.AWAITING_TOKENS
        error: Optional[BaseException] = None
        first_chunk = True

        try:
            while state is not EmitterState.COMPLETED:
                item = await units.get()

                if isinstance(item, _SourceFailed):
                    detail = str(item.error) or type(item.error).__name__
                    raise TokenSourceError(detail) from item.error

                if isinstance(item, _Flush):
                    state = EmitterState.FLUSHING
                    if item.text is not None:
                        await self._emit(item.text, channel)
                    state = EmitterState.COMPLETED
                    continue

                state = EmitterState.EMITTING
                sent = await self._emit(item.text, channel)
                if sent and first_chunk:
                    elapsed = (time.monotonic() - start_time) * 1000
                    logger.info(f"[stream {stream_id}] First audio chunk in {elapsed:.0f}ms")
                    first_chunk = False
                state = EmitterState.AWAITING_TOKENS

        except (TokenSourceError, TransportFailure, EngineNotReady) as exc:
            state = EmitterState.FAILED
            error = exc
            logger.error(f"[stream {stream_id}] {type(exc).__name__}: {exc}")
        except asyncio.CancelledError:
            state = EmitterState.FAILED
            error = TransportFailure("Speech stream cancelled")
            logger.info(f"[stream {stream_id}] cancelled")
            raise
        except Exception as exc:
            state = EmitterState.FAILED
            error = exc
            logger.error(f"[stream {stream_id}] unexpected error: {exc}", exc_info=True)
        finally:
            if not reader.done():
                reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
            channel.close(error)

        elapsed = (time.monotonic() - start_time) * 1000
        logger.info(
            f"[stream {stream_id}] {state.value}: {channel.chunks_sent} chunks, "
            f"{channel.bytes_sent} bytes in {elapsed:.0f}ms"
        )
        return state

    async def _read_tokens(
        self,
        tokens: AsyncIterator[str],
        units: asyncio.Queue[_QueueItem],
        stream_id: int,
    ) -> None:
        segmenter = SentenceSegmenter()
        try:
            try:
                async for token in tokens:
                    unit = segmenter.accept(token)
                    if unit is not None:
                        await units.put(_Unit(unit))
            finally:
                aclose = getattr(tokens, "aclose", None)
                if aclose is not None:
                    await aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await units.put(_SourceFailed(exc))
            return

        final = segmenter.flush()
        logger.debug(
            f"[stream {stream_id}] token stream finished, "
            f"{segmenter.units_emitted} sentence unit(s)"
        )
        await units.put(_Flush(final))

    async def _emit(self, text: str, channel: AudioChannel) -> bool:
        """Synthesize one unit and send it; empty audio is skipped."""
        pcm = await self.synthesizer.synthesize(text)
        if pcm.size == 0:
            logger.debug(f"No audio for unit ({len(text)} chars), skipping")
            return False
        await channel.send(encode_pcm16le(pcm))
        return True


__all__ = [
    "AudioChannel",
    "ChannelClosedError",
    "EmitterState",
    "SpeechStreamEmitter",
    "TokenSourceError",
    "TransportFailure",
]
