"""Application configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from guide_crawler.constants import (
    CACHE_TTL_HOURS,
    CRAWL_RESULT_CACHE_MAX_ENTRIES,
    CRAWL_RESULT_CACHE_TTL_SECONDS,
    DEFAULT_CACHE_DIR,
    SCHEDULER_INTERVAL_HOURS,
    SCHEDULER_WORKER_COUNT,
    USER_AGENT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Load .env first, then .env.local (for local/test overrides)
        # Later files override earlier ones, so .env.local takes precedence
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["local", "railway", "prod"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    # Supabase Configuration (guide directory)
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_service_key: str | None = Field(
        default=None, description="Supabase service role key"
    )
    guides_table: str = Field(
        default="guides", description="Table holding guides (slug, website_url, is_active)"
    )

    # ==========================================================================
    # Access Control
    # ==========================================================================

    api_key: str | None = Field(
        default=None,
        description="Operator API key (X-API-Key header or apiKey query). Unset = open",
    )
    cron_secret: str | None = Field(
        default=None,
        description="X-Cron-Secret value identifying the internal periodic trigger",
    )

    # ==========================================================================
    # Cache Configuration
    # ==========================================================================

    cache_dir: str = Field(
        default=DEFAULT_CACHE_DIR, description="Directory for per-guide cache files"
    )
    cache_ttl_hours: float = Field(
        default=CACHE_TTL_HOURS, description="Time-to-live of a cached crawl (hours)"
    )
    crawl_result_cache_ttl_seconds: float = Field(
        default=CRAWL_RESULT_CACHE_TTL_SECONDS,
        description="Window during which identical crawl requests reuse a result",
    )
    crawl_result_cache_max_entries: int = Field(
        default=CRAWL_RESULT_CACHE_MAX_ENTRIES,
        description="Maximum number of crawl results kept in the window cache",
    )

    # ==========================================================================
    # Scheduler Configuration
    # ==========================================================================

    scheduler_interval_hours: float = Field(
        default=SCHEDULER_INTERVAL_HOURS, description="Hours between sweeps"
    )
    scheduler_autostart: bool = Field(
        default=False, description="Start the periodic sweep on application startup"
    )
    scheduler_worker_count: int = Field(
        default=SCHEDULER_WORKER_COUNT, description="Guides crawled concurrently per sweep"
    )
    scheduler_crawl_via_http: bool = Field(
        default=False,
        description="Run scheduled crawls through POST /website-scraper instead of in-process",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of this service, used by the HTTP crawl runner",
    )

    # ==========================================================================
    # HTTP Client
    # ==========================================================================

    user_agent: str = Field(default=USER_AGENT, description="User-Agent sent when crawling")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
