"""Service configuration loaded from SHELFMARK_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ShelfmarkSettings(BaseSettings):
    """Shelfmark server settings.

    All fields are read from environment variables with the ``SHELFMARK_``
    prefix.  For example, ``SHELFMARK_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHELFMARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    environment: str = "development"
    """Reported by the health endpoint (``development``, ``production``, ...)."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """SQLAlchemy async URL, e.g. ``postgresql+psycopg://user:pw@host/db``."""

    db_echo: bool = False

    # -- Link previews ---------------------------------------------------------
    preview_timeout: float = 5.0
    """Upper bound in seconds for a single preview fetch, including the body read."""

    preview_user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    favicon_service: str = "https://www.google.com/s2/favicons?domain={host}&sz=128"
    """Template for degraded previews; ``{host}`` is replaced by the URL's hostname."""

    # -- Workspaces ------------------------------------------------------------
    default_workspace_id: str = "default-workspace"
    """Workspace the web client opens on a first visit."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000

    ui_dir: str = "ui/dist"
    """Directory holding the built single-page client.  Not served if missing."""

    cors_origins: list[str] = []
    """Extra origins allowed to call the API from a browser (JSON list)."""


def get_settings() -> ShelfmarkSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> ShelfmarkSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return ShelfmarkSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
