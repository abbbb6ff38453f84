"""Recurring reminder scheduling for tracked health variables."""

from src.reminders.exceptions import (
    AlreadyResolvedError,
    DependencyError,
    ReminderError,
    ReminderNotFoundError,
    ReminderValidationError,
    ScheduleSyncError,
)
from src.reminders.recurrence import (
    Frequency,
    RecurrenceRule,
    Weekday,
    compute_next_occurrence,
)
from src.reminders.rrule import parse_rrule, parse_time_of_day, to_rrule_string

__all__ = [
    "AlreadyResolvedError",
    "DependencyError",
    "Frequency",
    "RecurrenceRule",
    "ReminderError",
    "ReminderNotFoundError",
    "ReminderValidationError",
    "ScheduleSyncError",
    "Weekday",
    "compute_next_occurrence",
    "parse_rrule",
    "parse_time_of_day",
    "to_rrule_string",
]
