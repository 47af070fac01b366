# backend/barberbook/core/config.py
import logging
import os
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# CI injects its environment directly
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug("Loading environment from %s", env_path)
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )
    is_testing: bool = False

    database_url: str = Field(
        default="sqlite:///./barberbook.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_pool_size: int = Field(default=10, ge=1, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, ge=0, alias="DATABASE_MAX_OVERFLOW")

    # Booking calendar
    booking_timezone: str = Field(
        default="America/Sao_Paulo",
        alias="BOOKING_TIMEZONE",
        description="Timezone in which opening hours and booking days are expressed",
    )
    slot_step_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        alias="SLOT_STEP_MINUTES",
        description="Grid step between offered slot starts",
    )
    slot_buffer_minutes: int = Field(
        default=5,
        ge=0,
        alias="SLOT_BUFFER_MINUTES",
        description="Minimum lead time between now and a bookable start",
    )

    # Exclusive booking section
    booking_lock_redis_url: Optional[str] = Field(
        default=None,
        alias="BOOKING_LOCK_REDIS_URL",
        description="Redis URL for the cross-worker booking lock (in-process only when unset)",
    )
    booking_lock_namespace: str = Field(default="barberbook", alias="BOOKING_LOCK_NAMESPACE")
    booking_lock_ttl_seconds: int = Field(default=30, ge=1, alias="BOOKING_LOCK_TTL_SECONDS")
    booking_lock_wait_seconds: float = Field(default=5.0, ge=0, alias="BOOKING_LOCK_WAIT_SECONDS")

    # Payments
    stripe_secret_key: Optional[SecretStr] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[SecretStr] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    payment_currency: str = Field(default="brl", alias="PAYMENT_CURRENCY")

    # Notifications
    reminder_offsets_hours: List[int] = Field(
        default_factory=lambda: [24, 1],
        alias="REMINDER_OFFSETS_HOURS",
        description="Hours before the booking start at which reminders are scheduled",
    )

    # Waitlist
    waitlist_max_fulfillment_attempts: int = Field(
        default=100,
        ge=1,
        alias="WAITLIST_MAX_FULFILLMENT_ATTEMPTS",
    )

    @field_validator("booking_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        import pytz

        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown booking timezone: {value}") from exc
        return value

    @field_validator("payment_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_url(self) -> str:
        return self.database_url

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()

if is_running_tests():
    settings.is_testing = True
