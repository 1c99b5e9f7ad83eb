# src/config/settings.py — v2
"""Typed configuration loaded from .env and BUCKETSYNC_* variables via pydantic-settings.

Single source of truth for run settings. The instance is built once and
passed down explicitly; nothing in the package reads global state.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bucketsync.headers.models import HeaderRule
from bucketsync.headers.resolver import DEFAULT_HEADER_RULES


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


def default_workers() -> int:
    """Twice the CPU count: uploads are I/O bound."""
    return (os.cpu_count() or 1) * 2


class Settings(BaseSettings):
    """Run settings loaded from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="BUCKETSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Target ===
    bucket_name: str = ""
    key_prefix: str = ""
    region: str = ""
    profile: str = ""
    endpoint_url: str = ""

    # === Source and cache ===
    source: Path = Path("output")
    cache_file: Path = Path(".bucketsync-cache.txt")
    trust_mtime: bool = False
    exclude: str = ""

    # === Pipeline ===
    workers_count: int = Field(default_factory=default_workers)
    queue_size: int = 0
    max_tries: int = 10
    retry_base_delay_s: float = 0.1
    retry_jitter: bool = False
    max_pending_retries: int = 10_000

    # === Behaviour switches ===
    encrypt: bool = False
    dry_run: bool = False
    do_upload: bool = True
    do_cache: bool = True

    # === Headers ===
    header_rules: list[HeaderRule] = Field(
        default_factory=lambda: list(DEFAULT_HEADER_RULES)
    )

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("key_prefix")
    @classmethod
    def normalize_key_prefix(cls, v: str) -> str:
        """Store the prefix as ``a/b/`` (or empty)."""
        v = v.strip("/")
        return f"{v}/" if v else ""

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        errors: list[str] = []

        if self.workers_count < 1:
            errors.append("WORKERS_COUNT must be >= 1")
        if self.queue_size < 0:
            errors.append("QUEUE_SIZE must be >= 0")
        if self.max_tries < 1:
            errors.append("MAX_TRIES must be >= 1")
        if self.retry_base_delay_s < 0:
            errors.append("RETRY_BASE_DELAY_S must be >= 0")
        if self.max_pending_retries < 1:
            errors.append("MAX_PENDING_RETRIES must be >= 1")
        if not self.bucket_name and self.do_upload and not self.dry_run:
            errors.append("BUCKET_NAME is required unless dry_run or do_upload is off")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def exclude_list(self) -> list[str]:
        """Parse comma-separated exclude globs."""
        return [p.strip() for p in self.exclude.split(",") if p.strip()]

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.workers_count * 2


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env and the environment with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
