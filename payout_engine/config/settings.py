"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payout_engine.config.constants import (
    ACTIVATION_THRESHOLD,
    DEFAULT_TRIGGER_HOUR,
    HEARTBEAT_INTERVAL_HOURS,
    MAX_REFERRAL_DEPTH,
    RETRY_BACKOFF_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/payout_engine.log"
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Payout scheduling
    payout_trigger_hour: int = Field(
        default=DEFAULT_TRIGGER_HOUR,
        description="Local hour (0-23) of the daily payout run",
    )
    payout_timezone: str = Field(
        default="UTC",
        description="Timezone defining calendar-day boundaries and trigger hour",
    )
    payout_retry_delay_seconds: int = Field(
        default=RETRY_BACKOFF_SECONDS,
        gt=0,
        description="Delay before retrying a failed scheduled run",
    )
    scheduler_heartbeat_hours: int = Field(
        default=HEARTBEAT_INTERVAL_HOURS, gt=0
    )
    rank_evaluation_interval_hours: int = Field(
        default=24, gt=0, description="Cadence of the rank evaluation job"
    )

    # Business rules
    activation_threshold: Decimal = Field(
        default=ACTIVATION_THRESHOLD,
        ge=0,
        description="Lifetime approved deposits required to activate an account",
    )
    max_referral_depth: int = Field(
        default=MAX_REFERRAL_DEPTH, ge=1, le=MAX_REFERRAL_DEPTH
    )
    withdrawal_fee_percent: Decimal = Field(
        default=Decimal("0"), ge=0, le=100,
        description="Processing fee charged on withdrawals (percent)",
    )
    withdrawal_requires_kyc: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(
            ("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")
        ):
            raise ValueError(
                "DATABASE_URL must start with postgresql+asyncpg:// "
                "(or sqlite+aiosqlite:// for local runs)"
            )
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator("payout_trigger_hour")
    @classmethod
    def validate_trigger_hour(cls, v: int) -> int:
        """Trigger hour must be a valid hour of day."""
        if not 0 <= v <= 23:
            raise ValueError("PAYOUT_TRIGGER_HOUR must be between 0 and 23")
        return v

    @field_validator("payout_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Timezone must be a valid IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown PAYOUT_TIMEZONE: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if self.database_url.startswith("sqlite"):
                raise ValueError(
                    "SQLite is not supported in production. "
                    "Set DATABASE_URL to a PostgreSQL database."
                )
        return self

    @property
    def tz(self) -> ZoneInfo:
        """Payout timezone as a tzinfo."""
        return ZoneInfo(self.payout_timezone)


# Global settings instance
settings = Settings()
