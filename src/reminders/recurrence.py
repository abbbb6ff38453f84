"""Recurrence rules and next-occurrence computation for reminders.

Occurrences are enumerated as local wall-clock datetimes in the rule's
timezone using python-dateutil's rrule and converted to UTC one at a time,
so "09:00 every day" stays at 09:00 local time across DST changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from enum import IntEnum, StrEnum
from functools import cached_property
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import rrule as du_rrule

from src.reminders.exceptions import ReminderValidationError
from src.utils.dates import ensure_utc

# Covers the largest UTC offset change when mapping a reference instant to local time
_SEARCH_MARGIN = timedelta(days=1)

# Safety limit for window expansion
MAX_WINDOW_OCCURRENCES = 500


class Frequency(StrEnum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Weekday(IntEnum):
    """Weekday ordinals, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def code(self) -> str:
        """Two-letter iCalendar code (SU, MO, ...)."""
        return WEEKDAY_CODES[self.value]

    @classmethod
    def from_code(cls, code: str) -> Weekday:
        """Look up a weekday by its iCalendar code.

        :param code: Two-letter code, case-insensitive.
        :returns: The matching weekday.
        :raises ReminderValidationError: If the code is unknown.
        """
        try:
            return cls(WEEKDAY_CODES.index(code.strip().upper()))
        except ValueError:
            raise ReminderValidationError(f"Unknown weekday code: {code!r}") from None

    @classmethod
    def of(cls, day: date) -> Weekday:
        """Get the weekday of a calendar date."""
        # date.weekday() counts from Monday=0
        return cls((day.weekday() + 1) % 7)


WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

_DATEUTIL_FREQUENCIES = {
    Frequency.DAILY: du_rrule.DAILY,
    Frequency.WEEKLY: du_rrule.WEEKLY,
    Frequency.MONTHLY: du_rrule.MONTHLY,
}

# Indexed by Weekday ordinal
_DATEUTIL_WEEKDAYS = (
    du_rrule.SU,
    du_rrule.MO,
    du_rrule.TU,
    du_rrule.WE,
    du_rrule.TH,
    du_rrule.FR,
    du_rrule.SA,
)


@dataclass(frozen=True)
class RecurrenceRule:
    """A validated recurrence definition for a reminder.

    All validation happens at construction. A constructed rule never raises
    during occurrence computation.

    :param frequency: DAILY, WEEKLY or MONTHLY.
    :param anchor_date: First possible occurrence date, origin for interval counting.
    :param time_of_day: Wall-clock time local to ``timezone``.
    :param timezone: IANA timezone identifier.
    :param interval: Repeat every N frequency units.
    :param by_weekday: Weekday ordinals (0=Sunday), WEEKLY only.
    :param by_month_day: Day of month (1-31), MONTHLY only.
    :param end_date: Last valid date (inclusive, local timezone).
    """

    frequency: Frequency
    anchor_date: date
    time_of_day: time
    timezone: str
    interval: int = 1
    by_weekday: frozenset[Weekday] = field(default_factory=frozenset)
    by_month_day: int | None = None
    end_date: date | None = None

    def __post_init__(self) -> None:
        """Normalise and validate the rule fields."""
        try:
            frequency = Frequency(self.frequency)
        except ValueError:
            raise ReminderValidationError(f"Unsupported frequency: {self.frequency!r}") from None
        object.__setattr__(self, "frequency", frequency)

        if isinstance(self.anchor_date, datetime):
            object.__setattr__(self, "anchor_date", self.anchor_date.date())
        if isinstance(self.end_date, datetime):
            object.__setattr__(self, "end_date", self.end_date.date())

        try:
            weekdays = frozenset(Weekday(day) for day in self.by_weekday)
        except (TypeError, ValueError):
            raise ReminderValidationError(
                f"Weekdays must be ordinals 0 (Sunday) to 6 (Saturday): {self.by_weekday!r}"
            ) from None
        object.__setattr__(self, "by_weekday", weekdays)

        self._validate()

    def _validate(self) -> None:
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise ReminderValidationError(f"Interval must be an integer: {self.interval!r}")
        if self.interval < 1:
            raise ReminderValidationError(f"Interval must be at least 1: {self.interval}")

        if not isinstance(self.anchor_date, date):
            raise ReminderValidationError("Anchor date is required")
        if self.end_date is not None and not isinstance(self.end_date, date):
            raise ReminderValidationError(f"Invalid end date: {self.end_date!r}")

        if not isinstance(self.time_of_day, time) or self.time_of_day.tzinfo is not None:
            raise ReminderValidationError(
                f"Time of day must be a naive wall-clock time: {self.time_of_day!r}"
            )

        if self.frequency == Frequency.WEEKLY:
            if not self.by_weekday:
                raise ReminderValidationError("Weekly rules require at least one weekday")
        elif self.by_weekday:
            raise ReminderValidationError(
                f"Weekdays are only valid for weekly rules, not {self.frequency}"
            )

        if self.frequency == Frequency.MONTHLY:
            if self.by_month_day is None:
                raise ReminderValidationError("Monthly rules require a day of month")
            if isinstance(self.by_month_day, bool) or not isinstance(self.by_month_day, int):
                raise ReminderValidationError(f"Invalid day of month: {self.by_month_day!r}")
            if not 1 <= self.by_month_day <= 31:
                raise ReminderValidationError(
                    f"Day of month must be between 1 and 31: {self.by_month_day}"
                )
        elif self.by_month_day is not None:
            raise ReminderValidationError(
                f"Day of month is only valid for monthly rules, not {self.frequency}"
            )

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
            raise ReminderValidationError(f"Invalid timezone: {self.timezone!r}") from None

    @property
    def tzinfo(self) -> ZoneInfo:
        """The rule's timezone."""
        return ZoneInfo(self.timezone)

    @cached_property
    def _rrule(self) -> du_rrule.rrule:
        until = None
        if self.end_date is not None:
            until = datetime.combine(self.end_date, time.max)

        byweekday = [_DATEUTIL_WEEKDAYS[day] for day in sorted(self.by_weekday)]

        return du_rrule.rrule(
            _DATEUTIL_FREQUENCIES[self.frequency],
            dtstart=datetime.combine(self.anchor_date, self.time_of_day),
            interval=self.interval,
            byweekday=byweekday or None,
            bymonthday=self.by_month_day,
            until=until,
        )

    def _to_utc(self, local: datetime) -> datetime:
        # fold=0: ambiguous times take the earlier mapping, times inside a
        # spring-forward gap use the pre-transition offset
        return local.replace(tzinfo=self.tzinfo).astimezone(UTC)

    def next_occurrence(self, after: datetime, *, inclusive: bool = False) -> datetime | None:
        """Compute the next occurrence after a reference instant.

        :param after: Reference instant (naive values are treated as UTC).
        :param inclusive: Also accept an occurrence equal to ``after``.
        :returns: The next occurrence in UTC, or None if the rule is exhausted.
        """
        after = ensure_utc(after)
        search_from = after.astimezone(self.tzinfo).replace(tzinfo=None) - _SEARCH_MARGIN

        for candidate in self._rrule.xafter(search_from, inc=True):
            instant = self._to_utc(candidate)
            if instant > after or (inclusive and instant == after):
                return instant

        return None

    def occurrences(
        self,
        start: datetime,
        end: datetime,
        *,
        limit: int = MAX_WINDOW_OCCURRENCES,
    ) -> list[datetime]:
        """List the occurrences within a window.

        :param start: Window start (inclusive).
        :param end: Window end (exclusive).
        :param limit: Maximum number of occurrences to return.
        :returns: UTC occurrences in ascending order.
        """
        end = ensure_utc(end)
        results: list[datetime] = []

        current = self.next_occurrence(start, inclusive=True)
        while current is not None and current < end and len(results) < limit:
            results.append(current)
            current = self.next_occurrence(current)

        return results


def compute_next_occurrence(
    rule: RecurrenceRule,
    after: datetime,
    *,
    inclusive: bool = False,
) -> datetime | None:
    """Compute the next qualifying occurrence of a rule in UTC.

    Pure function: identical inputs always give identical output.

    :param rule: A validated recurrence rule.
    :param after: Reference instant.
    :param inclusive: Accept an occurrence equal to ``after`` (used right after
        a rule edit, where "now" itself may be a valid trigger).
    :returns: The next occurrence, or None when the rule has no further occurrences.
    """
    return rule.next_occurrence(after, inclusive=inclusive)
