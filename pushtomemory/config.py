"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    app_secret_key: str
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (webhook rate limiting)
    redis_url: str = "redis://localhost:6379/0"

    # Encryption (webhook secrets at rest)
    encryption_key: str = ""

    # Sentry
    sentry_dsn: str = ""

    # Owner API auth
    auth_jwt_secret: str = ""
    allowed_origins: str = ""  # Comma-separated CORS origins

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 10.0
    webhook_public_url: str = ""  # Defaults to {app_base_url}/api/v1/webhook/github
    webhook_rate_limit_per_minute: int = 120  # per organization or repository
    webhook_ip_rate_limit_per_minute: int = 3000

    # Notifications (external push-send service)
    notification_service_url: str = ""
    notification_timeout_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def webhook_callback_url(self) -> str:
        """Public URL GitHub delivers hooks to."""
        if self.webhook_public_url:
            return self.webhook_public_url
        return f"{self.app_base_url.rstrip('/')}/api/v1/webhook/github"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
