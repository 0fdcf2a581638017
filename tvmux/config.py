"""
Configuration management for the TVMux refresh pipeline.
Uses pydantic-settings for environment variable loading.
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CustomSource(BaseModel):
    """One externally supplied M3U playlist source."""
    name: str = Field(min_length=1)
    url: HttpUrl


_custom_sources_adapter = TypeAdapter(list[CustomSource])


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "TVMux"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Trigger protection
    # Required as "Authorization: Bearer <secret>" when environment is production
    cron_secret: Optional[str] = None
    refresh_rate_limit_per_minute: int = 5

    # Data Sources
    iptv_api_base: str = "https://iptv-org.github.io/api"
    directory_source_name: str = "iptv-org"
    # JSON list of {"name": ..., "url": ...}
    custom_m3u_sources: str = "[]"

    # Fetch phase
    fetch_timeout_seconds: float = 60.0
    fetch_max_bytes: int = 50 * 1024 * 1024  # 50MB

    # Probe phase
    probe_timeout_seconds: float = 5.0
    probe_batch_size: int = 200
    probe_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # Cache Configuration
    cache_ttl_seconds: int = 86400  # 24 hours, refreshed sooner by the scheduler
    database_path: str = "data/tvmux_cache.db"

    # Alerting
    alert_webhook_url: Optional[str] = None
    alert_timeout_seconds: float = 5.0

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="TVMUX_", env_file=".env")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def get_custom_sources(self) -> list[CustomSource]:
        """
        Parse the configured custom playlist sources.

        Malformed configuration is logged and treated as no custom sources,
        so the directory source still runs.
        """
        try:
            return _custom_sources_adapter.validate_json(self.custom_m3u_sources or "[]")
        except ValidationError as e:
            logger.error(f"Failed to parse TVMUX_CUSTOM_M3U_SOURCES: {e}")
            return []


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
