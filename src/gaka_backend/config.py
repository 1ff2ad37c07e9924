"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Picovoice Orca speech engine
    picovoice_access_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "PICOVOICE_ACCESS_KEY",
            "accessKey",
            "picovoice_access_key",
        ),
    )
    orca_model_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("ORCA_MODEL_PATH", "orca_model_path"),
    )
    orca_library_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("ORCA_LIBRARY_PATH", "orca_library_path"),
    )

    # Supabase command bus (PostgREST insert into the events table)
    supabase_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUPABASE_URL",
            "broadcastEndpoint",
            "supabase_url",
        ),
    )
    supabase_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUPABASE_KEY",
            "broadcastKey",
            "supabase_key",
        ),
    )
    supabase_events_table: str = Field(
        default="gaka_events",
        validation_alias=AliasChoices(
            "SUPABASE_EVENTS_TABLE", "supabase_events_table"
        ),
    )
    notification_timeout: float = Field(
        default=10.0,
        ge=0.1,
        validation_alias=AliasChoices(
            "NOTIFICATION_TIMEOUT", "notification_timeout"
        ),
    )

    openrouter_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "openrouter_api_key"),
    )
    openrouter_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://openrouter.ai/api/v1"),
        validation_alias=AliasChoices("OPENROUTER_BASE_URL", "base_url"),
    )
    openrouter_app_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices(
            "OPENROUTER_APP_URL",
            "HTTP_REFERER",
            "http_referer",
            "REFERER",
        ),
    )
    openrouter_app_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "OPENROUTER_APP_TITLE",
            "X_TITLE",
            "x_title",
        ),
    )
    default_model: str = Field(
        default="google/gemini-2.0-flash-001",
        validation_alias=AliasChoices(
            "OPENROUTER_DEFAULT_MODEL",
            "default_model",
        ),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("OPENROUTER_TIMEOUT", "timeout"),
        ge=1,
    )

    voice_system_prompt: Optional[str] = Field(
        default=(
            "You are Hey GaKa, a friendly voice assistant. Your answers are read "
            "aloud, so reply in short, plain sentences without markdown, lists or emoji."
        ),
        validation_alias=AliasChoices(
            "VOICE_SYSTEM_PROMPT",
            "voice_system_prompt",
        ),
    )
    intent_system_prompt: str = Field(
        default=(
            "You are Hey GaKa, an intelligent voice assistant. You have tools to "
            "navigate, search, and read content. Always use the appropriate tool "
            "to satisfy the user's request."
        ),
        validation_alias=AliasChoices(
            "INTENT_SYSTEM_PROMPT",
            "intent_system_prompt",
        ),
    )
    intent_max_tool_rounds: int = Field(
        default=3,
        ge=1,
        le=10,
        validation_alias=AliasChoices(
            "INTENT_MAX_TOOL_ROUNDS",
            "intent_max_tool_rounds",
        ),
    )

    # Sentence units and audio chunks allowed in flight per streaming request
    voice_stream_max_pending: int = Field(
        default=4,
        ge=1,
        le=64,
        validation_alias=AliasChoices(
            "VOICE_STREAM_MAX_PENDING",
            "voice_stream_max_pending",
        ),
    )

    @property
    def notifications_enabled(self) -> bool:
        return bool(
            self.supabase_url
            and self.supabase_key
            and self.supabase_key.get_secret_value()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
