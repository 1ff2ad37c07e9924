import pathlib
import sys
import threading
import time
from typing import Callable, Iterable, Optional

import pvorca
import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gaka_backend.services.tts import VoiceSynthesisService  # noqa: E402


def samples_for(text: str) -> list[int]:
    """Deterministic fake audio: one sample per character."""
    return [ord(char) % 32768 for char in text]


class FakeOrcaEngine:
    """Stands in for a pvorca.Orca handle."""

    sample_rate = 22050
    version = "fake-1.0"

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.fail_on = set(fail_on)
        self.delay = delay
        self.calls: list[str] = []
        self.deleted = 0
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def synthesize(self, text: str):
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append(text)
            if self.delay:
                time.sleep(self.delay)
            if text in self.fail_on:
                raise pvorca.OrcaError(f"cannot synthesize {text!r}")
            return samples_for(text), []
        finally:
            with self._guard:
                self.active -= 1

    def delete(self) -> None:
        self.deleted += 1


@pytest.fixture
def fake_engine() -> FakeOrcaEngine:
    return FakeOrcaEngine()


@pytest.fixture
def make_synthesis_service() -> Callable[..., tuple[VoiceSynthesisService, FakeOrcaEngine]]:
    def _make(
        engine: Optional[FakeOrcaEngine] = None,
        *,
        init: bool = True,
    ) -> tuple[VoiceSynthesisService, FakeOrcaEngine]:
        engine = engine or FakeOrcaEngine()
        service = VoiceSynthesisService(
            "test-access-key",
            engine_factory=lambda **_: engine,
        )
        if init:
            service.init()
        return service, engine

    return _make
