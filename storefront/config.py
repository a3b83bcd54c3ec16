from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Storefront Checkout"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Admin access (X-Admin-Key header)
    ADMIN_API_KEY: str = ""

    # Public storefront URL, used for payment redirects
    PUBLIC_URL: str = "http://localhost:3000"

    # Payment gateway (opaque redirect collaborator)
    PAYMENT_GATEWAY_URL: Optional[str] = None  # POST endpoint returning {"paymentUrl": ...}
    PAYMENT_TIMEOUT_SECONDS: float = 10.0

    # Store defaults, seeded into store_settings on first read
    STORE_TAX_RATE_PERCENT: float = 18.0
    STORE_SHIPPING_COST: float = 20.0
    STORE_FREE_SHIPPING_THRESHOLD: float = 350.0
    STORE_CURRENCY: str = "ILS"
    STORE_CURRENCY_SYMBOL: str = "₪"
    ADMIN_NOTIFICATION_EMAIL: str = ""

    # Checkout
    RESERVATION_TTL_SECONDS: int = 1800  # Unpaid orders release stock after 30 minutes
    CHECKOUT_MAX_ATTEMPTS: int = 3  # Attempts on transient database conflicts
    CHECKOUT_RETRY_BACKOFF_SECONDS: float = 0.05  # Linear backoff between attempts

    # Outbox dispatcher
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_POLL_SECONDS: int = 30
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_BACKOFF_BASE_SECONDS: int = 30

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "UTC"
    RESERVATION_SWEEP_MINUTES: int = 5
    ALERT_SWEEP_MINUTES: int = 60

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
