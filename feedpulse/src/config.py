"""FeedPulse application configuration.

Pydantic-Settings based configuration. Every setting can be overridden
via environment variables with the ``FEEDPULSE_`` prefix or a ``.env``
file, e.g. ``FEEDPULSE_DB_PATH=/var/lib/feedpulse/feedpulse.db``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from feedpulse.src.classifier import (
    CLASSIFIER_MAX_TOKENS,
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
)


class Settings(BaseSettings):
    """Runtime settings for the FeedPulse server."""

    model_config = SettingsConfigDict(env_prefix="FEEDPULSE_", env_file=".env", extra="ignore")

    app_name: str = "FeedPulse"
    db_path: str = "data/feedpulse.db"
    log_level: str = "INFO"
    allowed_origins: list[str] = ["*"]
    auto_seed: bool = False

    # Workers AI; the mock classifier is used when either value is missing.
    cf_account_id: str | None = None
    cf_api_token: str | None = None
    classifier_model: str = DEFAULT_MODEL
    classifier_base_url: str = DEFAULT_BASE_URL
    classifier_max_tokens: int = CLASSIFIER_MAX_TOKENS
    classifier_timeout: float = 30.0
    classifier_max_attempts: int = 2

    @property
    def classifier_configured(self) -> bool:
        return bool(self.cf_account_id and self.cf_api_token)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, loaded once from the environment."""
    return Settings()
