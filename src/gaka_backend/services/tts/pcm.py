"""16-bit PCM helpers shared by the synthesis endpoints."""

from __future__ import annotations

from typing import Iterable

import numpy as np

# Signed 16-bit little-endian, independent of the host byte order
PCM16_LE = np.dtype("<i2")
SAMPLE_WIDTH = PCM16_LE.itemsize


def empty_pcm() -> np.ndarray:
    """Return a zero-length PCM buffer."""
    return np.zeros(0, dtype=np.int16)


def as_pcm(samples: Iterable[int] | np.ndarray) -> np.ndarray:
    """Coerce engine output to a 1-D int16 buffer."""
    if isinstance(samples, np.ndarray):
        return samples.astype(np.int16, copy=False).reshape(-1)
    return np.fromiter(samples, dtype=np.int16)


def encode_pcm16le(pcm: np.ndarray) -> bytes:
    """Serialize PCM samples as little-endian 16-bit bytes."""
    return np.asarray(pcm, dtype=np.int16).astype(PCM16_LE, copy=False).tobytes()


def decode_pcm16le(data: bytes) -> np.ndarray:
    """Parse little-endian 16-bit bytes back into int16 samples."""
    if len(data) % SAMPLE_WIDTH != 0:
        raise ValueError(
            f"PCM payload must be a multiple of {SAMPLE_WIDTH} bytes, got {len(data)}"
        )
    return np.frombuffer(data, dtype=PCM16_LE).astype(np.int16)


__all__ = [
    "PCM16_LE",
    "SAMPLE_WIDTH",
    "as_pcm",
    "decode_pcm16le",
    "empty_pcm",
    "encode_pcm16le",
]
