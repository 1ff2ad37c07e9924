"""
TTS (Text-to-Speech) Services Package.

This package contains the chat-to-speech pipeline:

- text_segmenter: Splits streaming LLM tokens into sentence units
- synthesis: Process-wide Orca engine wrapper (PCM synthesis)
- pcm: 16-bit little-endian PCM encoding
- stream_emitter: Per-request worker writing audio chunks to an AudioChannel

Architecture Overview:

    ┌─────────────┐     ┌───────────────────┐     ┌────────────┐
    │ Token Source│────▶│ SentenceSegmenter │────▶│ unit_queue │
    └─────────────┘     └───────────────────┘     └────────────┘
                                                        │
                                                        ▼
                                              ┌───────────────────────┐
                                              │ VoiceSynthesisService │
                                              │  (shared, serialized) │
                                              └───────────────────────┘
                                                        │
                                                        ▼
                                                 ┌──────────────┐
                                                 │ AudioChannel │──▶ HTTP response
                                                 └──────────────┘

One sentence unit becomes one PCM buffer and one audio chunk. Units that
synthesize to nothing produce no chunk, and chunks are written in the order
their units were produced.
"""

from .pcm import decode_pcm16le, encode_pcm16le
from .stream_emitter import (
    AudioChannel,
    ChannelClosedError,
    EmitterState,
    SpeechStreamEmitter,
    TokenSourceError,
    TransportFailure,
)
from .synthesis import (
    EngineInitError,
    EngineNotReady,
    SynthesisFailure,
    VoiceSynthesisService,
)
from .text_segmenter import SentenceSegmenter

__all__ = [
    "AudioChannel",
    "ChannelClosedError",
    "EmitterState",
    "EngineInitError",
    "EngineNotReady",
    "SentenceSegmenter",
    "SpeechStreamEmitter",
    "SynthesisFailure",
    "TokenSourceError",
    "TransportFailure",
    "VoiceSynthesisService",
    "decode_pcm16le",
    "encode_pcm16le",
]
