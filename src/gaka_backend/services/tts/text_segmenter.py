"""
Sentence Segmenter for the Streaming TTS Pipeline.

Accumulates streaming LLM tokens and decides when the buffered text is a
complete enough unit to hand to the speech engine.

Architecture:
    LLM tokens → SentenceSegmenter.accept() → sentence unit queue

The boundary check looks at the *incoming token*, not at the buffer: as soon
as a token containing `.`, `!`, `?` or a newline arrives, the whole buffer
(including that token) is emitted as one unit. A token carrying several
sentences ("Hi! Bye.") is not split further; the speech engine receives it
as a single unit.

Usage:
    segmenter = SentenceSegmenter()

    async for token in token_source.stream_tokens(prompt):
        unit = segmenter.accept(token)
        if unit is not None:
            await unit_queue.put(unit)

    final = segmenter.flush()
    if final is not None:
        await unit_queue.put(final)
"""

import re
from typing import Optional

SENTENCE_BOUNDARY = re.compile(r"[.!?\n]")


class SentenceSegmenter:
    """
    Stateful segmenter turning a token stream into sentence units.

    The buffer is owned by the single task driving the segmenter; instances
    must not be shared across requests.
    """

    def __init__(self, boundary: re.Pattern = SENTENCE_BOUNDARY):
        self._boundary = boundary
        self._parts: list[str] = []
        self._size = 0
        self._units_emitted = 0

    def accept(self, token: str) -> Optional[str]:
        """
        Append a token and return the buffered unit if the token closes it.

        Args:
            token: Text fragment from the LLM stream

        Returns:
            The full buffer content when the token contains a sentence
            boundary, otherwise None
        """
        if not token:
            return None

        self._parts.append(token)
        self._size += len(token)

        if not self._boundary.search(token):
            return None

        return self._take()

    def flush(self) -> Optional[str]:
        """
        Return the remaining buffer once the token stream has completed.

        An all-whitespace remainder is dropped rather than emitted.
        """
        if not self._parts:
            return None
        if not "".join(self._parts).strip():
            self.reset()
            return None
        return self._take()

    def reset(self) -> None:
        """Discard buffered text."""
        self._parts.clear()
        self._size = 0

    def _take(self) -> str:
        unit = "".join(self._parts)
        self.reset()
        self._units_emitted += 1
        return unit

    @property
    def buffer_size(self) -> int:
        """Current buffer size in characters."""
        return self._size

    @property
    def units_emitted(self) -> int:
        return self._units_emitted
