"""Centralized settings for the church notification core.

Uses pydantic-settings to load from environment variables (prefixed CHURCH_)
with defaults suited to a single Hong Kong congregation deployment.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Notification core settings loaded from environment variables."""

    # --- Deployment ---
    civil_timezone: str = "Asia/Hong_Kong"
    default_user_id: str = "anonymous"

    # --- Redis (local preference cache) ---
    redis_url: str = "redis://localhost:6379/0"
    redis_preferences_ttl: int = 60 * 60 * 24 * 30
    redis_saved_items_ttl: int = 60 * 60 * 24 * 90

    # --- Server API (preference mirror, analytics ingestion, push gateway) ---
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 10.0

    # --- Delivery policy ---
    batch_delay_seconds: float = 120.0
    default_max_per_day: int = 8

    # --- Feature flags ---
    use_redis: bool = False
    use_server_mirror: bool = False
    report_engagement: bool = True

    model_config = {
        "env_prefix": "CHURCH_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
