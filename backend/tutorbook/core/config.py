# backend/tutorbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional, Set

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_ADMIN_TIMEZONE


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


PROD_SITE_MODES: Set[str] = {"prod", "production", "beta", "live"}


def _is_production_mode(raw_site_mode: Optional[str]) -> bool:
    return (raw_site_mode or "").strip().lower() in PROD_SITE_MODES


class Settings(BaseSettings):
    # Environment (derived from SITE_MODE)
    environment: str = (
        "production" if _is_production_mode(os.getenv("SITE_MODE")) else "development"
    )
    is_testing: bool = False  # Set to True when running tests

    # Database
    database_url: str = Field(
        default="sqlite:///./tutorbook.db",
        description="SQLAlchemy URL for the system of record",
    )
    test_database_url: str = Field(
        default="sqlite://",
        description="Database used by the test-suite (in-memory SQLite by default)",
    )
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 5

    # Celery / Redis
    redis_url: Optional[str] = Field(default=None, description="Redis URL for the Celery broker")
    celery_broker_url: Optional[str] = Field(default=None, alias="CELERY_BROKER_URL")

    # Timezones
    admin_timezone: str = Field(
        default=DEFAULT_ADMIN_TIMEZONE,
        alias="ADMIN_TIMEZONE",
        description="Canonical zone in which class dates and times are authored",
    )

    # Scheduling rules
    reschedule_min_notice_hours: float = Field(
        default=2.0,
        description="A class can only be rescheduled this many hours before it starts",
    )
    class_duration_minutes: int = Field(default=60, description="Length of a bookable slot")
    slot_step_minutes: int = Field(default=30, description="Granularity of the slot cursor")
    availability_max_range_days: int = Field(
        default=90, description="Longest date range an availability query may cover"
    )
    availability_max_workers: int = Field(
        default=4, description="Bounded worker pool for per-teacher availability"
    )

    # Lifecycle sweep
    sweep_interval_minutes: int = Field(default=60, description="Beat interval for the sweep")
    sweep_unit_timeout_ms: int = Field(
        default=5000, description="Statement timeout for each sweep sub-transaction"
    )
    time_check_log_size: int = Field(
        default=20, description="How many time-check decisions the diagnostics sink keeps"
    )

    # API
    strict_problem_media_type: bool = Field(
        default=False,
        alias="STRICT_SCHEMAS",
        description="Serve error bodies as application/problem+json",
    )

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("class_duration_minutes", "slot_step_minutes")
    @classmethod
    def _positive_minutes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Durations must be positive minutes")
        return v

    @field_validator("availability_max_workers")
    @classmethod
    def _at_least_one_worker(cls, v: int) -> int:
        return max(1, v)

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if self.is_testing or is_running_tests():
            return self.test_database_url
        return self.database_url

    def get_broker_url(self) -> str:
        """Resolve the Celery broker: CELERY_BROKER_URL -> REDIS_URL -> local default."""
        broker_url = (
            self.celery_broker_url
            or os.getenv("REDIS_URL")
            or self.redis_url
            or "redis://localhost:6379"
        )
        # Ensure Redis URL includes database number
        if not any(broker_url.endswith(f"/{i}") for i in range(16)):
            broker_url = f"{broker_url}/0"
        return broker_url


settings = Settings()
logger.info(
    "[CONFIG] Scheduling configuration: admin_timezone=%s min_notice_hours=%s sweep_interval=%sm",
    settings.admin_timezone,
    settings.reschedule_min_notice_hours,
    settings.sweep_interval_minutes,
)
