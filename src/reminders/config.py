"""Configuration for reminder scheduling using pydantic-settings."""

from datetime import time
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.reminders.rrule import TIME_OF_DAY_PATTERN, parse_time_of_day

# .env at the project root (src/reminders/config.py -> project root)
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class ReminderSettings(BaseSettings):
    """Configuration for reminder scheduling.

    All settings are loaded from environment variables with the REMINDER_ prefix.

    :param default_timezone: Timezone used when a caller does not supply one.
    :param default_time_of_day: Local time (HH:mm) for default reminders.
    :param announce_enabled: Whether schedule changes are handed to the worker queue.
    :param max_window_days: Largest window accepted by the timeline view.
    """

    model_config = SettingsConfigDict(
        env_prefix="REMINDER_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_timezone: str = Field(
        default="UTC",
        description="IANA timezone used when none is supplied",
    )
    default_time_of_day: str = Field(
        default="09:00",
        pattern=TIME_OF_DAY_PATTERN.pattern,
        description="Local time of day for default reminders",
    )
    announce_enabled: bool = Field(
        default=True,
        description="Announce schedule changes to background workers",
    )
    max_window_days: int = Field(
        default=31,
        ge=1,
        le=366,
        description="Maximum window size in days for timeline queries",
    )

    @field_validator("default_timezone")
    @classmethod
    def validate_default_timezone(cls, v: str) -> str:
        """Validate that the timezone is a known IANA identifier.

        :param v: Raw timezone name from environment.
        :returns: The validated name.
        :raises ValueError: If the timezone cannot be loaded.
        """
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def default_time(self) -> time:
        """The default time of day as a ``time``."""
        return parse_time_of_day(self.default_time_of_day)


@lru_cache
def get_reminder_settings() -> ReminderSettings:
    """Get cached reminder settings.

    Settings are loaded once and cached for the lifetime of the process.

    :returns: Configured ReminderSettings instance.
    """
    return ReminderSettings()
