import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load .env for local dev; in prod the real environment wins
load_dotenv(override=False)


def _bool(name: str, default: bool) -> bool:
    """
    Helper to parse boolean environment variables.
    Accepts: 1, true, yes, on (case-insensitive).
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _split_csv(value: str | None) -> list[str]:
    """Split a comma-separated env value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _norm_db_url(url: str | None) -> str | None:
    """
    Normalize database URL to use async drivers for SQLAlchemy.

    Ensures ``postgres`` URLs use ``asyncpg`` and plain ``sqlite`` URLs use
    ``aiosqlite``. URLs already specifying an async driver are returned as-is.
    """
    if not url:
        return None
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    if url.startswith("sqlite://"):
        url = "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return url


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Uses pydantic for validation and parsing.
    """

    DATABASE_URL: str = Field(..., description="Database URL")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # External generation
    EXTERNAL_MODEL: bool = Field(
        default_factory=lambda: _bool("EXTERNAL_MODEL", False),
        description="Call an external model; when off the canned mock provider is used",
    )
    MODEL_PROVIDER: Literal["openai", "gemini"] = Field(
        "openai", description="openai = single-model chat, gemini = multi-model fallback"
    )

    # OpenAI-compatible chat completions
    MODEL_BASE_URL: str = Field("https://api.openai.com/v1", description="Chat API base URL")
    MODEL_API_KEY: str | None = Field(None, description="Chat API key")
    MODEL_NAME: str = Field("gpt-4o-mini", description="Chat model id")
    MODEL_MAX_TOKENS: int = Field(4096, description="Output token cap for chat calls")

    # Generative Language (Gemini) REST
    GEMINI_API_BASE: str = Field(
        "https://generativelanguage.googleapis.com/v1", description="Primary Gemini API base"
    )
    GEMINI_API_BASES: str = Field("", description="Extra API bases (comma-separated)")
    GEMINI_API_KEY: str | None = Field(None, description="Gemini API key")
    GEMINI_MODEL: str = Field("gemini-2.5-flash", description="Primary Gemini model")
    GEMINI_FALLBACK_MODELS: str = Field(
        "gemini-1.5-flash", description="Fallback model ids tried in order (comma-separated)"
    )
    GEMINI_MAX_OUTPUT_TOKENS: int = Field(4096, description="Output token cap for Gemini calls")

    # Resilience
    AI_TIMEOUT_SECONDS: float = Field(120.0, description="Per-call network timeout")
    AI_RETRY_MAX: int = Field(3, description="Retries after the first attempt")
    AI_RETRY_BASE_DELAY: float = Field(0.5, description="Backoff base delay in seconds")
    AI_RETRY_JITTER: float = Field(0.2, description="Max random jitter added to backoff")
    AI_AUTO_CONTINUE_MAX_ROUNDS: int = Field(1, description="Continuation calls on truncation")
    AI_FALLBACK_ON_ERROR: bool = Field(
        default_factory=lambda: _bool("AI_FALLBACK_ON_ERROR", False),
        description="Fail open to the canned response when every attempt fails",
    )
    AI_TEMPERATURE: float = Field(0.6, description="Sampling temperature for plan calls")

    # HTTP
    HOST: str = Field("0.0.0.0", description="Bind address")
    PORT: int = Field(8080, description="Bind port")
    CORS_ORIGINS: str = Field(
        "http://localhost:3000,http://127.0.0.1:3000",
        description="Allowed browser origins (comma-separated)",
    )

    # Alerts
    ALERT_WEBHOOK_URL: str | None = Field(None, description="Webhook receiving error logs")
    FF_ADMIN_ALERTS: bool = Field(
        default_factory=lambda: _bool("FF_ADMIN_ALERTS", True),
        description="Admin alerts feature flag",
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL environment variable is required")
        return _norm_db_url(v)

    @field_validator("AI_RETRY_MAX", "AI_AUTO_CONTINUE_MAX_ROUNDS")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def gemini_api_bases(self) -> list[str]:
        bases = [self.GEMINI_API_BASE, *_split_csv(self.GEMINI_API_BASES)]
        return list(dict.fromkeys(b.rstrip("/") for b in bases if b))

    @property
    def gemini_models(self) -> list[str]:
        models = [self.GEMINI_MODEL, *_split_csv(self.GEMINI_FALLBACK_MODELS)]
        return list(dict.fromkeys(m for m in models if m))


SETTINGS = Config()  # pyright: ignore[reportCallIssue]
