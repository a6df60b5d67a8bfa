"""Global settings loaded from environment variables via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

NON_PRODUCTION_ENVIRONMENTS = frozenset({"local", "development"})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GIFVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "postgresql+psycopg2://localhost/gifview"
    log_dir: str = "./data/logs"
    log_level: str = "INFO"
    environment: str = "production"
    proxy_url: str = ""
    # External service credentials (secrets, must be env vars)
    openai_api_key: str = ""
    giphy_api_key: str = ""
    tenor_api_key: str = ""
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    # Scheduling
    sync_tick_seconds: int = 60
    enrichment_cron: str = "30 */2 * * *"
    # Queue pacing (seconds between item starts)
    rss_queue_wait_seconds: float = 10.0
    spotify_queue_wait_seconds: float = 10.0
    enrichment_queue_wait_seconds: float = 15.0
    queue_max_size: int = 50
    enrichment_posts_per_run: int = 5
    content_fetch_timeout: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.environment.lower() not in NON_PRODUCTION_ENVIRONMENTS
