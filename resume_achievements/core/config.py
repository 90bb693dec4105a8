"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the websocket pipeline and
the housekeeping worker share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os
import tempfile

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_PACKAGE_DIR = Path(__file__).resolve().parents[1]


class _Settings(BaseSettings):
    """Shared settings behaviour: allow construction by field name."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class GeminiSettings(_Settings):
    """Configuration for Gemini model access.

    Leaving ``GEMINI_API_KEY`` unset runs the service in degraded mode: uploads
    and exports still work but no remote summarization happens.
    """

    api_key: Optional[str] = Field(None, validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-flash", validation_alias="GEMINI_MODEL_NAME")
    temperature: float = Field(0.3, validation_alias="AI_TEMPERATURE")
    max_output_tokens: int = Field(4000, validation_alias="AI_MAX_OUTPUT_TOKENS")
    request_timeout_seconds: float = Field(
        120.0,
        validation_alias="AI_REQUEST_TIMEOUT_SECONDS",
        description="Upper bound for a single remote call before it counts as failed.",
    )
    max_attempts: int = Field(3, validation_alias="AI_MAX_ATTEMPTS", ge=1)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class BatchingSettings(_Settings):
    """Controls how uploaded rows are grouped before summarization."""

    max_batch_tokens: int = Field(6000, validation_alias="MAX_BATCH_TOKENS", ge=1)
    chars_to_tokens_factor: float = Field(
        0.25,
        validation_alias="CHARS_TO_TOKENS_FACTOR",
        gt=0,
        description="Estimated tokens per character of rendered record text.",
    )
    max_records_per_batch: Optional[int] = Field(
        50,
        validation_alias="MAX_RECORDS_PER_BATCH",
        description="Optional hard cap on records per batch. Unset to disable.",
    )

    @field_validator("max_records_per_batch", mode="before")
    @classmethod
    def _blank_disables_cap(cls, value: object) -> object:
        """Treat empty strings and zero as 'no cap'."""
        if value in ("", 0, "0"):
            return None
        return value


class SessionSettings(_Settings):
    """Lifetime and recovery behaviour of per-user session state."""

    max_age_seconds: int = Field(7200, validation_alias="SESSION_MAX_AGE_SECONDS")
    expiry_grace_seconds: float = Field(
        600.0,
        validation_alias="SESSION_EXPIRY_GRACE_SECONDS",
        description="Delay before expired session data is released.",
    )
    download_cleanup_delay_seconds: float = Field(
        5.0, validation_alias="DOWNLOAD_CLEANUP_DELAY_SECONDS"
    )
    fallback_recovery: bool = Field(
        True,
        validation_alias="SESSION_FALLBACK_RECOVERY",
        description=(
            "Recover the most recent matching session when a lookup by id misses. "
            "Assumes a single active user; disable for shared deployments."
        ),
    )
    cookie_name: str = Field("session_id", validation_alias="SESSION_COOKIE_NAME")


class StorageSettings(_Settings):
    """Temporary file storage for uploads and exports."""

    temp_dir: Path = Field(
        Path(tempfile.gettempdir()) / "resume-achievements",
        validation_alias="TEMP_DIR",
    )
    file_size_limit_bytes: int = Field(
        50 * 1024 * 1024, validation_alias="FILE_SIZE_LIMIT_BYTES"
    )
    temp_file_max_age_seconds: int = Field(
        7200, validation_alias="TEMP_FILE_MAX_AGE_SECONDS"
    )
    cleanup_interval_seconds: float = Field(
        3600.0, validation_alias="CLEANUP_INTERVAL_SECONDS"
    )
    sample_csv_path: Path = Field(
        _PACKAGE_DIR / "sample" / "sample.csv",
        validation_alias="SAMPLE_CSV_PATH",
        description="Example export offered to users who have no data yet.",
    )


class AppSettings(_Settings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    batching: BatchingSettings = Field(default_factory=BatchingSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BatchingSettings",
    "GeminiSettings",
    "SessionSettings",
    "StorageSettings",
    "get_settings",
]
