from __future__ import annotations

import functools

import pytest
from fastapi.testclient import TestClient

from conftest import FakeOrcaEngine
from gaka_backend import app as app_module
from gaka_backend.config import Settings
from gaka_backend.services.tts import EngineInitError, VoiceSynthesisService


@pytest.fixture(autouse=True)
def app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("LOG_FILE", raising=False)
    for name in (
        "PICOVOICE_ACCESS_KEY",
        "accessKey",
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "broadcastEndpoint",
        "broadcastKey",
        "OPENROUTER_DEFAULT_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    # Ignore any developer .env so the tests see only the variables above
    monkeypatch.setattr(app_module, "get_settings", lambda: Settings(_env_file=None))


def test_startup_fails_without_access_key() -> None:
    app = app_module.create_app()

    with pytest.raises(EngineInitError):
        with TestClient(app):
            pass


def test_lifespan_owns_engine_and_reports_health(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = FakeOrcaEngine()
    monkeypatch.setenv("PICOVOICE_ACCESS_KEY", "orca-key")
    monkeypatch.setattr(
        app_module,
        "VoiceSynthesisService",
        functools.partial(VoiceSynthesisService, engine_factory=lambda **_: engine),
    )

    app = app_module.create_app()
    with TestClient(app) as client:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "engine_ready": True,
            "sample_rate": FakeOrcaEngine.sample_rate,
            "default_model": "google/gemini-2.0-flash-001",
            "active_streams": 0,
            "notifications_enabled": False,
        }

        synthesized = client.post("/api/voice/synthesize", content="Hello.")
        assert synthesized.status_code == 200
        assert engine.calls == ["Hello."]

    assert engine.deleted == 1
    assert not app.state.synthesis_service.is_ready
