"""
Runtime configuration for Quillguard.

Settings are read from ``QUILLGUARD_*`` environment variables so the web
server, the CLI and the test-suite can point the application at different
data directories without code changes.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .paths import ensure_dir, get_user_data_dir


class Settings(BaseSettings):
    """
    Application settings.

    ``articles_dir`` and ``sessions_dir`` default to subdirectories of
    ``data_dir``, which in turn defaults to the platform user data directory.
    Both directories are created if missing.
    """

    model_config = SettingsConfigDict(
        env_prefix="QUILLGUARD_",
        env_ignore_empty=True,
        extra="ignore",
    )

    data_dir: Path | None = None
    articles_dir: Path | None = None
    sessions_dir: Path | None = None

    csrf_ttl_seconds: int = Field(
        default=1800,
        gt=0,
        validation_alias=AliasChoices("csrf_ttl_seconds", "QUILLGUARD_CSRF_TTL"),
    )
    session_ttl_hours: int = Field(default=24, gt=0)
    # Chance that opening a new session also sweeps expired ones.
    session_gc_probability: float = Field(default=0.01, ge=0, le=1)
    max_title_length: int = Field(default=255, gt=0)
    max_body_length: int = Field(default=10_000, gt=0)
    cookie_name: str = "quillguard_session"

    @model_validator(mode="after")
    def _derive_directories(self) -> "Settings":
        if self.articles_dir is None or self.sessions_dir is None:
            data_dir = self.data_dir or get_user_data_dir()
            if self.articles_dir is None:
                self.articles_dir = data_dir / "articles"
            if self.sessions_dir is None:
                self.sessions_dir = data_dir / "sessions"
        ensure_dir(self.articles_dir)
        ensure_dir(self.sessions_dir)
        return self
