# src/config/settings.py — v1
"""Typed configuration loaded from environment / .env via pydantic-settings.

Every variable is prefixed with MARATHON_CLOUD_ (e.g. MARATHON_CLOUD_API_KEY).
Command-line flags override these values through load_settings(**overrides).
"""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marathon_cloud.core.concurrency import default_worker_limit
from marathon_cloud.core.errors import MarathonCloudError

DEFAULT_BASE_URL = "https://cloud.marathonlabs.io/api"


class ConfigurationError(MarathonCloudError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="MARATHON_CLOUD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === API ===
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    http_timeout_s: float = 60.0

    # === Polling ===
    poll_interval_s: float = 5.0
    max_wait_s: float | None = None

    # === Transfers ===
    worker_limit: int | None = None
    download_max_attempts: int = 3
    download_retry_delay_s: float = 1.0
    upload_strategy: Literal["presigned", "multipart"] = "presigned"
    upload_chunk_size: int = 64 * 1024

    # === Logging ===
    log_level: str = "WARNING"
    log_format: Literal["text", "json"] = "text"

    # --- Validators ---

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:  # noqa: N805
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        errors: list[str] = []

        if self.poll_interval_s < 0:
            errors.append("POLL_INTERVAL_S must be >= 0")
        if self.max_wait_s is not None and self.max_wait_s <= 0:
            errors.append("MAX_WAIT_S must be > 0 when set")
        if self.worker_limit is not None and self.worker_limit < 1:
            errors.append("WORKER_LIMIT must be >= 1")
        if self.download_max_attempts < 1:
            errors.append("DOWNLOAD_MAX_ATTEMPTS must be >= 1")
        if self.upload_chunk_size < 1:
            errors.append("UPLOAD_CHUNK_SIZE must be >= 1")
        if not self.base_url.startswith(("http://", "https://")):
            errors.append("BASE_URL must be an http(s) URL")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def effective_worker_limit(self) -> int:
        """Configured worker limit, defaulting to the CPU count."""
        return self.worker_limit or default_worker_limit()


def load_settings(**overrides: object) -> Settings:
    """Load settings from env / .env, ignoring overrides that are None.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**values)  # type: ignore[arg-type]
