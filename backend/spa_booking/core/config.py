from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
from decimal import Decimal
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    API_V1_STR: str = "/api/v1"

    # JWT verification for staff and registered customers (tokens are issued elsewhere)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'spa.db'}"

    # Redis connection URL for the booking throttle
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"
    ENABLE_CONSOLE_TRACING: bool = False
    OTEL_EXCLUDE_HEALTH: bool = True

    # Business calendar. The spa runs on Philippine civil time (UTC+8) and the
    # operating shift opens at 4 PM.
    BUSINESS_UTC_OFFSET_HOURS: int = 8
    SHIFT_START_HOUR: int = 16
    # Bookings before this hour on the next calendar date still belong on
    # today's timeline.
    TIMELINE_END_HOUR: int = 4

    # Admission
    BOOKING_THROTTLE_SECONDS: int = 60
    MAX_PENDING_REGISTERED: int = 2
    MAX_PENDING_GUEST: int = 1

    # Settlement
    COMMISSION_RATE: Decimal = Decimal("0.30")
    DEFAULT_SERVICE_DURATION_MINUTES: int = 60
    DEFAULT_CURRENCY: str = "PHP"

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("LOG_LEVEL", mode="before")
    def upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("SHIFT_START_HOUR", "TIMELINE_END_HOUR")
    def valid_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("hour must be between 0 and 23")
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
