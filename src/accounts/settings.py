"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your_jwt_secret_key_here_at_least_32_characters"}


class Settings(BaseSettings):
    """Application configuration.

    Built once at startup (``create_app`` or the CLI) and handed to the
    services that need it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "accounts"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json

    # URLs
    base_url: str = "http://localhost:3000"  # Used in password reset links
    client_url: str = "http://localhost:3000"  # Allowed CORS origin(s), comma separated

    # JWT
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Credentials
    bcrypt_rounds: int = 10
    referral_code_length: int = 8
    referral_code_max_attempts: int = 20
    reset_token_ttl_minutes: int = 60

    # Database
    database_url: str = "sqlite:///./accounts.db"
    db_pool_size: int = 10
    db_pool_timeout: int = 30  # Seconds to wait for a free connection
    db_pool_recycle: int = 1800
    db_connect_attempts: int = 3
    db_connect_retry_seconds: float = 5.0

    # Email (SendGrid)
    sendgrid_api_key: str | None = None
    sendgrid_from_email: str = "noreply@localhost"
    sendgrid_from_name: str = "Accounts"

    # Request protection
    rate_limit_enabled: bool = True
    auth_rate_limit: str = "5 per 15 minutes"
    csrf_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.client_url.split(",") if origin.strip()]


def check_production_secret(settings: Settings) -> None:
    """Exit if running in production with a weak or missing JWT secret."""
    if not settings.is_production:
        return

    secret = settings.jwt_secret
    if not secret or secret in _INSECURE_JWT_DEFAULTS or len(secret) < 32:
        print(
            "\n❌  FATAL: JWT_SECRET is missing, insecure or too short (min 32 chars).\n"
            "   Set a strong random value:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)
