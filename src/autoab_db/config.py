"""
Configuration settings loaded from the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = "~/.autoab_db/autoab.duckdb"


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden with an ``AUTOAB_``-prefixed environment
    variable, e.g. ``AUTOAB_DB_PATH`` or ``AUTOAB_MAX_PAGE_SIZE``.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: str = DEFAULT_DB_PATH

    # Query limits
    default_page_size: int = 10
    max_page_size: int = 10_000
    max_quick_search: int = 1_000
    max_advanced_results: int = 100
    max_bulk_entries: int = 1_000
    max_biomarker_page_size: int = 500
    max_biomarker_search: int = 5_000

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from an explicit override, settings, or default.

    Precedence:
    1) explicit override_path
    2) AUTOAB_DB_PATH (via settings)
    3) default path
    """
    raw_path = override_path or get_settings().db_path or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)
