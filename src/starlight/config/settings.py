"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.  Every
tunable of the persistence layer is read through this module. Never call
``os.getenv`` directly elsewhere in the codebase.

Environment variables are prefixed with ``STARLIGHT_``::

    STARLIGHT_STORAGE_URL=sqlite:///./starlight.db
    STARLIGHT_LOG_LEVEL=DEBUG

Usage::

    from starlight.config.settings import get_settings

    settings = get_settings()
    backend = build_backend(settings.storage_url)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables and an optional .env file.

    Every field has a default so the store can run with zero configuration
    against an in-memory backend.
    """

    model_config = SettingsConfigDict(
        env_prefix="STARLIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    storage_url: str = "memory://"
    """Location of the host key-value text store.

    - ``memory://``: process-local dict, lost on exit (tests, demos).
    - ``redis://host:6379/0``: one Redis string key per slot.
    - any other SQLAlchemy URL (``sqlite:///./starlight.db``): one row per
      slot in the ``kv_slots`` table.
    """

    key_prefix: str = "starlight:"
    """Prefix prepended to every slot name before it reaches the backend."""

    # ------------------------------------------------------------------
    # Identity & moderation
    # ------------------------------------------------------------------

    admin_email: str = "admin@starlight.app"
    """Identity that is treated as administrator (and therefore premium)."""

    temporary_block_days: int = Field(default=15, ge=1)
    """Default duration of a temporary block issued by an administrator."""

    # ------------------------------------------------------------------
    # Credits & libraries
    # ------------------------------------------------------------------

    starting_credit_grant: int = Field(default=5, ge=0)
    """Free promotion credits per counter granted to premium identities."""

    history_limit: int = Field(default=50, ge=1)
    """Maximum number of snapshots kept in an identity's watch history."""

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "Starlight"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    allowed_origins: list[str] = ["http://localhost:5173"]
    """Origins permitted by the CORS middleware (the UI host)."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    In tests, call ``get_settings.cache_clear()`` after patching environment
    variables.
    """
    return Settings()
