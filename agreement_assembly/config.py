"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Agreement Assembly Engine"
    debug: bool = True
    mock_mode: bool = True  # When True, exhibits and rules come from in-memory stores

    # ── MongoDB ──────────────────────────────────────────
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "cpq"
    exhibits_collection: str = "exhibits"
    rules_collection: str = "rules_config"

    # ── File Storage ─────────────────────────────────────
    storage_backend: str = "local"  # "local" only for now
    local_storage_path: str = "./storage"
    templates_dir: str = "templates"

    # ── Exhibit fetching ─────────────────────────────────
    exhibit_fetch_retries: int = 2
    exhibit_fetch_backoff_seconds: float = 0.2
    fetch_concurrency: int = 4

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "AGREEMENT_",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
