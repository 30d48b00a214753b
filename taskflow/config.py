"""Application configuration loaded from environment variables."""

from __future__ import annotations

import functools
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """TaskFlow backend settings.

    Required fields must be set via environment variables (or ``.env`` file).
    Optional fields have sensible defaults for local development.
    """

    # Required
    session_secret: str

    # Optional with defaults
    database_url: str = "sqlite:///taskflow.db"
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    database_readers: int = 5
    cors_origins: str = "http://localhost:5173"
    session_cookie_name: str = "taskflow.sid"
    session_duration_days: int = 14
    secure_cookies: bool = False
    bcrypt_rounds: int = 12
    fanout_timeout_seconds: float = 5.0
    handshake_timeout_seconds: float = 10.0
    seed_admin: bool = True
    admin_password: str = "admin123"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 4000

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@functools.lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance (singleton)."""
    return Settings()
