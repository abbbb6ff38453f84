"""Datetime helpers shared across the application."""

from datetime import UTC, datetime


def ensure_utc(value: datetime) -> datetime:
    """Return the value as a timezone-aware UTC datetime.

    Naive values are assumed to already be in UTC (SQLite drops offsets on
    round-trips, PostgreSQL does not).

    :param value: The datetime to normalise.
    :returns: The equivalent aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
