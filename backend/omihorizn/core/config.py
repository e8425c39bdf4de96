"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "OmiHorizn Billing API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Redis - REQUIRED (Celery broker and result backend)
    REDIS_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: list[str] = []

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Flutterwave - REQUIRED for payments
    FLUTTERWAVE_PUBLIC_KEY: str = ""
    FLUTTERWAVE_SECRET_KEY: str = ""
    FLUTTERWAVE_WEBHOOK_HASH: str = ""
    FLUTTERWAVE_BASE_URL: str = "https://api.flutterwave.com/v3"
    FLUTTERWAVE_TIMEOUT_SECONDS: float = 20.0

    # Payments
    PAYMENT_REFERENCE_PREFIX: str = "omihorizn"
    DEFAULT_CURRENCY: str = "EUR"
    PAYMENT_MAX_RETRIES: int = 3

    # Usage metering
    USAGE_RESET_WINDOW_DAYS: int = 30
    USAGE_RESET_ONLY_DUE: bool = False

    # Subscription lifecycle
    PRORATION_DAYS_BASIS: int = 30
    RENEWAL_REMINDER_DAYS: tuple[int, ...] = (7, 1)
    EXTERNAL_SYNC_MAX_ATTEMPTS: int = 10
    SUBSCRIPTION_EXPIRY_SWEEP_ENABLED: bool = False
    SUBSCRIPTION_EXPIRY_GRACE_DAYS: int = 3

    # Notifications: "celery" queues emails, "log" only logs them
    NOTIFICATION_BACKEND: str = "celery"

    # Email (for notifications)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""
    SMTP_TLS: bool = True

    # Optional override for Celery (defaults to REDIS_URL)
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
