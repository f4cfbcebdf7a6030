"""Application settings and configuration.

This module defines all configuration options for the Chiroport intake service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CSRF_SECRET = "fallback-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    This class defines all configuration options for the intake service.
    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Chiroport", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Edge rate limiting (fixed windows per client IP)
    rate_limit_api: int = Field(default=60, alias="RATE_LIMIT_API")
    rate_limit_api_window_seconds: int = Field(default=60, alias="RATE_LIMIT_API_WINDOW_SECONDS")
    rate_limit_submit: int = Field(default=5, alias="RATE_LIMIT_SUBMIT")
    rate_limit_submit_window_seconds: int = Field(
        default=300,
        alias="RATE_LIMIT_SUBMIT_WINDOW_SECONDS",
    )
    rate_limit_health_per_minute: int = Field(default=60, alias="RATE_LIMIT_HEALTH_PER_MIN")
    rate_limit_fail_open: bool = Field(default=True, alias="RATE_LIMIT_FAIL_OPEN")
    rate_limit_redis_url: str | None = Field(default=None, alias="RATE_LIMIT_REDIS_URL")
    rate_limit_store_timeout_seconds: float = Field(
        default=0.5,
        alias="RATE_LIMIT_STORE_TIMEOUT_SECONDS",
    )

    # CSRF double-submit protection
    csrf_secret: str = Field(default=DEFAULT_CSRF_SECRET, alias="CSRF_SECRET")
    csrf_enforced: bool = Field(default=False, alias="CSRF_ENFORCED")

    # Request screening on the submission endpoint
    security_checks_enabled: bool = Field(default=True, alias="SECURITY_CHECKS_ENABLED")

    # Content Security Policy allow-lists
    content_security_policy: str | None = Field(default=None, alias="CONTENT_SECURITY_POLICY")
    csp_script_origins: list[str] = Field(
        default=["https://cdn.jsdelivr.net"],
        alias="CSP_SCRIPT_ORIGINS",
    )
    csp_style_origins: list[str] = Field(
        default=["https://fonts.googleapis.com"],
        alias="CSP_STYLE_ORIGINS",
    )
    csp_font_origins: list[str] = Field(
        default=["https://fonts.gstatic.com"],
        alias="CSP_FONT_ORIGINS",
    )
    csp_img_sources: list[str] = Field(
        default=["data:", "https:", "blob:"],
        alias="CSP_IMG_SOURCES",
    )

    # Health endpoint protection
    health_check_secret: str | None = Field(default=None, alias="HEALTH_CHECK_SECRET")

    # Queueing provider (Waitwhile)
    waitwhile_api_url: str = Field(default="https://api.waitwhile.com/v2", alias="WAITWHILE_API_URL")
    waitwhile_api_key: str | None = Field(default=None, alias="WAITWHILE_API_KEY")
    waitwhile_timeout_seconds: float = Field(default=10.0, alias="WAITWHILE_TIMEOUT_SECONDS")

    # Identity provider and profile store (Supabase)
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(default=None, alias="SUPABASE_ANON_KEY")
    supabase_secret_key: str | None = Field(default=None, alias="SUPABASE_SECRET_KEY")
    identity_timeout_seconds: float = Field(default=5.0, alias="IDENTITY_TIMEOUT_SECONDS")

    # Analytics embedding (Metabase)
    metabase_site_url: str | None = Field(default=None, alias="METABASE_SITE_URL")
    metabase_embed_secret: str | None = Field(default=None, alias="METABASE_EMBED_SECRET")
    metabase_dashboard_id: int | None = Field(default=None, alias="METABASE_DASHBOARD_ID")
    metabase_embed_ttl_seconds: int = Field(default=600, alias="METABASE_EMBED_TTL_SECONDS")

    # CORS configuration for the web frontend
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_production(self) -> bool:
        """Return True when running with the production profile."""
        return self.environment.lower() == "production"

    @property
    def secure_cookies(self) -> bool:
        """Return True when cookies must carry the ``Secure`` attribute."""
        return self.is_production

    @property
    def csrf_secret_configured(self) -> bool:
        """Return True when a non-default CSRF secret is configured."""
        return bool(self.csrf_secret) and self.csrf_secret != DEFAULT_CSRF_SECRET

    @property
    def waitwhile_configured(self) -> bool:
        """Return True when the queueing provider can be called."""
        return bool(self.waitwhile_api_key)


settings = Settings()
