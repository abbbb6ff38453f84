"""Conversion between RRULE strings and RecurrenceRule values.

Callers exchange rules in iCalendar RRULE notation (RFC 5545) with the local
time of day and timezone carried in separate fields, since the notation alone
does not reliably keep wall-clock semantics across DST. This module is the
only place that knows about the string grammar.

Example inputs:
    - "FREQ=DAILY"
    - "RRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR"
    - "DTSTART;TZID=Europe/London:20240101T090000\\nRRULE:FREQ=MONTHLY;BYMONTHDAY=15"
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as dateparser
from dateutil.rrule import rrulestr

from src.reminders.exceptions import ReminderValidationError
from src.reminders.recurrence import Frequency, RecurrenceRule, Weekday

logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_SUPPORTED_PARTS = frozenset({"FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY", "UNTIL", "WKST"})

# Weeks always start on Monday, which is also the RFC 5545 default
_SUPPORTED_WEEK_START = "MO"

# Fixed naive start used only to check the rule body's syntax
_SYNTAX_CHECK_START = datetime(2000, 1, 1)


def parse_time_of_day(value: str) -> time:
    """Parse an HH:mm wall-clock time.

    :param value: Time string such as "09:00".
    :returns: The parsed time.
    :raises ReminderValidationError: If the value is not HH:mm.
    """
    match = TIME_OF_DAY_PATTERN.match(value) if isinstance(value, str) else None
    if match is None:
        raise ReminderValidationError(f"Invalid time format (HH:mm required): {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def format_time_of_day(value: time) -> str:
    """Format a time as HH:mm."""
    return value.strftime("%H:%M")


def _split_lines(text: str) -> tuple[str | None, str]:
    """Split an RRULE string into its DTSTART value and RRULE body."""
    dtstart_value: str | None = None
    rule_body: str | None = None

    for raw_line in text.strip().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith("DTSTART"):
            # DTSTART;TZID=Zone/Name:20240101T090000 or DTSTART:20240101
            dtstart_value = line.rsplit(":", 1)[-1]
        elif upper.startswith("RRULE:"):
            rule_body = line.split(":", 1)[1]
        elif rule_body is None and "FREQ=" in upper:
            rule_body = line
        else:
            raise ReminderValidationError(f"Unsupported recurrence line: {line!r}")

    if not rule_body:
        raise ReminderValidationError("Recurrence rule must contain a FREQ component")

    return dtstart_value, rule_body


def _parse_parts(rule_body: str) -> dict[str, str]:
    parts: dict[str, str] = {}
    for part in rule_body.split(";"):
        if not part.strip():
            continue
        if "=" not in part:
            raise ReminderValidationError(f"Malformed recurrence part: {part!r}")
        key, value = part.split("=", 1)
        parts[key.strip().upper()] = value.strip()

    unsupported = set(parts) - _SUPPORTED_PARTS
    if unsupported:
        raise ReminderValidationError(
            f"Unsupported recurrence parts: {', '.join(sorted(unsupported))}"
        )

    week_start = parts.get("WKST", _SUPPORTED_WEEK_START).upper()
    if week_start != _SUPPORTED_WEEK_START:
        raise ReminderValidationError(
            f"Unsupported week start: {week_start!r} (only {_SUPPORTED_WEEK_START} is supported)"
        )
    return parts


def _check_syntax(rule_body: str) -> None:
    """Validate the rule body with dateutil.

    Only the RRULE body is checked, against a naive start, so a UTC UNTIL is
    accepted whatever form the DTSTART line takes.
    """
    try:
        rrulestr(f"RRULE:{rule_body}", dtstart=_SYNTAX_CHECK_START, ignoretz=True)
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Invalid RRULE string: rrule={rule_body!r}, error={e}")
        raise ReminderValidationError(f"Invalid recurrence rule format: {e}") from e


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        raise ReminderValidationError(f"Unknown timezone: {timezone!r}") from None


def _parse_date(value: str, label: str, tz: ZoneInfo) -> date:
    """Parse a DTSTART or UNTIL value into a local calendar date.

    Values ending in Z are UTC instants and are converted into the rule's
    timezone first; floating and date-only values are already local.
    """
    try:
        if value.upper().endswith("Z"):
            instant = dateparser.parse(value[:-1]).replace(tzinfo=UTC)
            return instant.astimezone(tz).date()
        return dateparser.parse(value).date()
    except (ValueError, OverflowError):
        raise ReminderValidationError(f"Invalid {label} value: {value!r}") from None


def _parse_int(value: str, label: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ReminderValidationError(f"Invalid {label} value: {value!r}") from None


def parse_rrule(
    text: str,
    *,
    time_of_day: str | time,
    timezone: str,
    anchor_date: date | None = None,
    end_date: date | None = None,
) -> RecurrenceRule:
    """Parse an RRULE string into a RecurrenceRule.

    DTSTART supplies the anchor date when ``anchor_date`` is not given, UNTIL
    supplies the end date when ``end_date`` is not given. A UTC UNTIL (the
    RFC 5545 form) is read as the local date in ``timezone``. The time of day
    and timezone always come from the separate fields. Weekly rules without BYDAY
    fire on the anchor's weekday; monthly rules without BYMONTHDAY fire on the
    anchor's day of month.

    :param text: RRULE string, optionally with a DTSTART line.
    :param time_of_day: Local time of day (HH:mm string or time).
    :param timezone: IANA timezone identifier.
    :param anchor_date: First possible occurrence date.
    :param end_date: Last valid date.
    :returns: A validated RecurrenceRule.
    :raises ReminderValidationError: If the string or any field is invalid.
    """
    if not isinstance(text, str) or not text.strip():
        raise ReminderValidationError("Recurrence rule is required")

    dtstart_value, rule_body = _split_lines(text)
    parts = _parse_parts(rule_body)
    _check_syntax(rule_body)
    tz = _zone(timezone)

    freq_value = parts.get("FREQ", "").upper()
    try:
        frequency = Frequency(freq_value)
    except ValueError:
        raise ReminderValidationError(f"Unsupported frequency: {freq_value!r}") from None

    if anchor_date is None:
        if dtstart_value is None:
            raise ReminderValidationError("A start date is required (anchor date or DTSTART)")
        anchor_date = _parse_date(dtstart_value, "DTSTART", tz)

    if end_date is None and "UNTIL" in parts:
        end_date = _parse_date(parts["UNTIL"], "UNTIL", tz)

    interval = _parse_int(parts["INTERVAL"], "INTERVAL") if "INTERVAL" in parts else 1

    by_weekday: frozenset[Weekday] = frozenset()
    if "BYDAY" in parts:
        by_weekday = frozenset(Weekday.from_code(code) for code in parts["BYDAY"].split(","))
    elif frequency == Frequency.WEEKLY:
        by_weekday = frozenset({Weekday.of(anchor_date)})

    by_month_day: int | None = None
    if "BYMONTHDAY" in parts:
        by_month_day = _parse_int(parts["BYMONTHDAY"], "BYMONTHDAY")
    elif frequency == Frequency.MONTHLY:
        by_month_day = anchor_date.day

    if isinstance(time_of_day, str):
        time_of_day = parse_time_of_day(time_of_day)

    return RecurrenceRule(
        frequency=frequency,
        anchor_date=anchor_date,
        time_of_day=time_of_day,
        timezone=timezone,
        interval=interval,
        by_weekday=by_weekday,
        by_month_day=by_month_day,
        end_date=end_date,
    )


def to_rrule_string(rule: RecurrenceRule) -> str:
    """Render a RecurrenceRule as an RRULE string.

    :param rule: The rule to render.
    :returns: String like "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE".
    """
    parts = [f"FREQ={rule.frequency.value}"]

    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")

    if rule.by_weekday:
        parts.append(f"BYDAY={','.join(day.code for day in sorted(rule.by_weekday))}")

    if rule.by_month_day is not None:
        parts.append(f"BYMONTHDAY={rule.by_month_day}")

    if rule.end_date is not None:
        parts.append(f"UNTIL={rule.end_date.strftime('%Y%m%d')}")

    return "RRULE:" + ";".join(parts)
