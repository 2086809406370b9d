"""Configuration management for FeedServe."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="FS_", extra="ignore")

    # Security
    app_secret_key: str

    # Site identity
    site_url: str = "http://localhost:8000"
    site_name: str = "FeedServe"
    site_description: str = ""
    site_language: str = "en-US"

    # Database
    database_url: str = "sqlite+aiosqlite:///./dev.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Cache settings
    cache_max_age_seconds: int = 3600  # Cache-Control max-age
    selection_ttl_seconds: int = 900  # 15 minutes
    render_ttl_seconds: int = 900
    enclosure_size_ttl_seconds: int = 86400  # 24 hours

    # Timeouts
    repository_timeout_seconds: float = 30.0
    validator_timeout_seconds: float = 15.0
    enclosure_head_timeout_seconds: float = 10.0

    # Feed defaults
    default_feed_limit: int = Field(default=10, ge=1, le=100)

    # Capability defaults (overridable per-site through the options table)
    enable_rss2: bool = True
    enable_atom: bool = True
    enable_json_feed: bool = True
    enable_custom_feeds: bool = True
    enable_conditional_requests: bool = True
    enable_etag: bool = True
    enable_gzip: bool = True
    enable_security_headers: bool = True
    enable_render_cache: bool = False
    enable_enclosure_fix: bool = False
    enable_content_cleanup: bool = True
    guid_is_permalink: bool = False  # RSS2 <guid> carries the permalink
    validate_on_publish: bool = False
    enable_monitoring: bool = False
    alert_on_errors: bool = False

    # Scheduled validation
    validation_interval_minutes: int = 60

    # Mailgun (for validation alerts)
    mailgun_api_key: str = Field(default="")
    mailgun_domain: str = Field(default="")
    mailgun_from_email: str = Field(default="noreply@example.com")
    alert_email: str = Field(default="")

    # Admin UI origin allowed to call /api/admin from a browser
    admin_origin: str = "http://localhost:5173"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")
    log_level: str = "INFO"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
