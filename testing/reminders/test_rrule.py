"""Tests for the RRULE string adapter."""

import unittest
from datetime import UTC, date, datetime, time

from src.reminders.exceptions import ReminderValidationError
from src.reminders.recurrence import Frequency, RecurrenceRule, Weekday
from src.reminders.rrule import (
    format_time_of_day,
    parse_rrule,
    parse_time_of_day,
    to_rrule_string,
)


class TestParseTimeOfDay(unittest.TestCase):
    """Tests for parse_time_of_day."""

    def test_parses_valid_times(self) -> None:
        """Test parsing boundary values."""
        self.assertEqual(parse_time_of_day("00:00"), time(0, 0))
        self.assertEqual(parse_time_of_day("09:05"), time(9, 5))
        self.assertEqual(parse_time_of_day("23:59"), time(23, 59))

    def test_rejects_invalid_formats(self) -> None:
        """Test that anything but zero-padded HH:mm is rejected."""
        for value in ("9:00", "24:00", "12:60", "12:00:00", "noon", ""):
            with self.subTest(value=value), self.assertRaises(ReminderValidationError):
                parse_time_of_day(value)

    def test_format_round_trips(self) -> None:
        """Test that formatting gives back the HH:mm text."""
        self.assertEqual(format_time_of_day(parse_time_of_day("07:45")), "07:45")


class TestParseRrule(unittest.TestCase):
    """Tests for parse_rrule."""

    def test_parses_bare_daily_rule(self) -> None:
        """Test a rule without the RRULE: prefix."""
        rule = parse_rrule(
            "FREQ=DAILY",
            time_of_day="09:00",
            timezone="Europe/London",
            anchor_date=date(2024, 1, 1),
        )

        self.assertEqual(rule.frequency, Frequency.DAILY)
        self.assertEqual(rule.interval, 1)
        self.assertEqual(rule.time_of_day, time(9, 0))
        self.assertEqual(rule.timezone, "Europe/London")

    def test_parses_weekly_rule_with_weekdays_and_interval(self) -> None:
        """Test BYDAY and INTERVAL parts."""
        rule = parse_rrule(
            "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE,FR",
            time_of_day="08:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 1),
        )

        self.assertEqual(rule.frequency, Frequency.WEEKLY)
        self.assertEqual(rule.interval, 2)
        self.assertEqual(
            rule.by_weekday,
            frozenset({Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY}),
        )

    def test_dtstart_supplies_anchor_date(self) -> None:
        """Test that DTSTART is used when no anchor date is given."""
        rule = parse_rrule(
            "DTSTART;TZID=Europe/London:20240315T090000\nRRULE:FREQ=MONTHLY;BYMONTHDAY=15",
            time_of_day="09:00",
            timezone="Europe/London",
        )

        self.assertEqual(rule.anchor_date, date(2024, 3, 15))
        self.assertEqual(rule.by_month_day, 15)

    def test_until_supplies_end_date(self) -> None:
        """Test that UNTIL is used when no end date is given."""
        rule = parse_rrule(
            "FREQ=DAILY;UNTIL=20240105T235959Z",
            time_of_day="09:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 1),
        )

        self.assertEqual(rule.end_date, date(2024, 1, 5))

    def test_explicit_end_date_wins_over_until(self) -> None:
        """Test that the separate end date field takes precedence."""
        rule = parse_rrule(
            "FREQ=DAILY;UNTIL=20240105",
            time_of_day="09:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 1),
            end_date=date(2024, 2, 1),
        )

        self.assertEqual(rule.end_date, date(2024, 2, 1))

    def test_zoned_dtstart_with_utc_until(self) -> None:
        """Test the DTSTART;TZID plus UTC UNTIL form sent by calendar clients."""
        rule = parse_rrule(
            "DTSTART;TZID=America/New_York:20240101T090000\n"
            "RRULE:FREQ=DAILY;UNTIL=20240106T045959Z",
            time_of_day="09:00",
            timezone="America/New_York",
        )

        self.assertEqual(rule.anchor_date, date(2024, 1, 1))
        # End of 5 January in New York is early on 6 January in UTC
        self.assertEqual(rule.end_date, date(2024, 1, 5))

    def test_utc_until_is_read_in_rule_timezone(self) -> None:
        """Test that a UTC UNTIL west of UTC does not add an extra day."""
        rule = parse_rrule(
            "RRULE:FREQ=DAILY;UNTIL=20240106T045959Z",
            time_of_day="09:00",
            timezone="America/New_York",
            anchor_date=date(2024, 1, 1),
        )

        self.assertEqual(rule.end_date, date(2024, 1, 5))
        self.assertIsNone(rule.next_occurrence(datetime(2024, 1, 5, 14, 0, tzinfo=UTC)))
        occurrences = rule.occurrences(
            datetime(2024, 1, 1, tzinfo=UTC),
            datetime(2024, 1, 10, tzinfo=UTC),
        )
        self.assertEqual(len(occurrences), 5)
        self.assertEqual(occurrences[-1], datetime(2024, 1, 5, 14, 0, tzinfo=UTC))

    def test_utc_dtstart_is_read_in_rule_timezone(self) -> None:
        """Test that a UTC DTSTART is converted before taking the anchor date."""
        rule = parse_rrule(
            "DTSTART:20240102T030000Z\nRRULE:FREQ=DAILY",
            time_of_day="20:00",
            timezone="America/Los_Angeles",
        )

        self.assertEqual(rule.anchor_date, date(2024, 1, 1))

    def test_accepts_monday_week_start(self) -> None:
        """Test that WKST=MO is accepted."""
        rule = parse_rrule(
            "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH;WKST=MO",
            time_of_day="09:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 1),
        )

        self.assertEqual(rule.interval, 2)
        self.assertEqual(rule.by_weekday, frozenset({Weekday.MONDAY, Weekday.THURSDAY}))

    def test_rejects_other_week_starts(self) -> None:
        """Test that a week start other than Monday is rejected."""
        with self.assertRaises(ReminderValidationError) as context:
            parse_rrule(
                "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH;WKST=SU",
                time_of_day="09:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )
        self.assertIn("week start", str(context.exception))

    def test_weekly_without_byday_uses_anchor_weekday(self) -> None:
        """Test that a bare weekly rule fires on the anchor's weekday."""
        rule = parse_rrule(
            "FREQ=WEEKLY",
            time_of_day="09:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 4),
        )

        self.assertEqual(rule.by_weekday, frozenset({Weekday.THURSDAY}))

    def test_monthly_without_bymonthday_uses_anchor_day(self) -> None:
        """Test that a bare monthly rule fires on the anchor's day of month."""
        rule = parse_rrule(
            "FREQ=MONTHLY",
            time_of_day="09:00",
            timezone="UTC",
            anchor_date=date(2024, 1, 20),
        )

        self.assertEqual(rule.by_month_day, 20)

    def test_rejects_unsupported_frequency(self) -> None:
        """Test that YEARLY rules are rejected."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule(
                "FREQ=YEARLY",
                time_of_day="09:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )

    def test_rejects_unsupported_parts(self) -> None:
        """Test that COUNT is rejected rather than silently ignored."""
        with self.assertRaises(ReminderValidationError) as context:
            parse_rrule(
                "FREQ=DAILY;COUNT=3",
                time_of_day="09:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )
        self.assertIn("COUNT", str(context.exception))

    def test_rejects_malformed_string(self) -> None:
        """Test that unparseable text is a validation error."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule(
                "every day please",
                time_of_day="09:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )

    def test_rejects_empty_string(self) -> None:
        """Test that an empty rule is rejected."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule("  ", time_of_day="09:00", timezone="UTC", anchor_date=date(2024, 1, 1))

    def test_requires_a_start_date(self) -> None:
        """Test that a rule without anchor or DTSTART is rejected."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule("FREQ=DAILY", time_of_day="09:00", timezone="UTC")

    def test_rejects_invalid_time_of_day(self) -> None:
        """Test that the time-of-day field is validated."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule(
                "FREQ=DAILY",
                time_of_day="25:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )

    def test_rejects_invalid_timezone(self) -> None:
        """Test that the timezone field is validated."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule(
                "FREQ=DAILY",
                time_of_day="09:00",
                timezone="Not/AZone",
                anchor_date=date(2024, 1, 1),
            )

    def test_rejects_unknown_weekday_code(self) -> None:
        """Test that an invalid BYDAY code is rejected."""
        with self.assertRaises(ReminderValidationError):
            parse_rrule(
                "FREQ=WEEKLY;BYDAY=MO,XX",
                time_of_day="09:00",
                timezone="UTC",
                anchor_date=date(2024, 1, 1),
            )


class TestToRruleString(unittest.TestCase):
    """Tests for to_rrule_string."""

    def test_renders_daily_rule_minimally(self) -> None:
        """Test that default interval is omitted."""
        rule = RecurrenceRule(
            frequency=Frequency.DAILY,
            anchor_date=date(2024, 1, 1),
            time_of_day=time(9, 0),
            timezone="UTC",
        )

        self.assertEqual(to_rrule_string(rule), "RRULE:FREQ=DAILY")

    def test_renders_all_parts(self) -> None:
        """Test rendering interval, weekdays and end date."""
        rule = RecurrenceRule(
            frequency=Frequency.WEEKLY,
            anchor_date=date(2024, 1, 1),
            time_of_day=time(9, 0),
            timezone="UTC",
            interval=2,
            by_weekday=frozenset({Weekday.FRIDAY, Weekday.MONDAY}),
            end_date=date(2024, 6, 30),
        )

        self.assertEqual(
            to_rrule_string(rule),
            "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR;UNTIL=20240630",
        )

    def test_rendered_rule_parses_back(self) -> None:
        """Test that a rendered monthly rule parses to an equal rule."""
        rule = RecurrenceRule(
            frequency=Frequency.MONTHLY,
            anchor_date=date(2024, 1, 31),
            time_of_day=time(0, 0),
            timezone="UTC",
            by_month_day=31,
        )

        parsed = parse_rrule(
            to_rrule_string(rule),
            time_of_day=rule.time_of_day,
            timezone=rule.timezone,
            anchor_date=rule.anchor_date,
        )

        self.assertEqual(parsed, rule)


if __name__ == "__main__":
    unittest.main()
