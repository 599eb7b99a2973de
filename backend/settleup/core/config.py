from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global SettleUp settings.
    Read from environment variables and the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "SettleUp API"
    api_prefix: str = "/api"
    debug: bool = False

    # Security / JWT
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Database
    database_url: str = "sqlite:///./settleup.db"

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Frontend (redirect targets)
    frontend_url: str = "http://localhost:3000"

    # Google sign-in
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_callback_url: str = "http://localhost:5000/api/auth/google/callback"

    # Payments (Stripe Checkout)
    stripe_api_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com/v1"
    stripe_webhook_tolerance_seconds: int = 300
    payment_provider_timeout_seconds: float = 15.0

    # Notifications / reminders
    notification_ttl_days: int = 30
    reminder_offsets_days: List[int] = [7, 3, 1]
    reminder_max_attempts: int = 3
    scheduler_enabled: bool = False
    scheduler_interval_seconds: int = 300

    # Optimistic concurrency
    concurrency_max_retries: int = 3

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def resolved_frontend_url(self) -> str:
        return (self.frontend_url or "http://localhost:3000").strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return the cached global settings instance."""
    return Settings()


settings = get_settings()
