"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, and a cached ``get_settings()`` accessor.

IMPORTANT: This module has ZERO imports from the ``invitations`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000

    # -- Storage ---------------------------------------------------------------
    db_path: Path = Path("data/invitations.db")
    store_timeout_seconds: float = 5.0

    # -- Collaborators ---------------------------------------------------------
    directory_path: Path = Path("config/directory.yaml")

    # -- Lifecycle -------------------------------------------------------------
    default_validity_days: int = 7
    conflict_retry_attempts: int = 3
    sweep_batch_size: int = 500
    sweep_interval_seconds: int = 0

    # -- Notifications ---------------------------------------------------------
    notification_max_attempts: int = 3
    notification_retry_initial_wait: float = 0.5

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    @field_validator("default_validity_days", "conflict_retry_attempts", "notification_max_attempts")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Reject zero or negative counts."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def default_validity_window(self) -> timedelta:
        """The default invitation validity window as a ``timedelta``."""
        return timedelta(days=self.default_validity_days)


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)
