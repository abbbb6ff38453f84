"""Dagster definitions for reminder jobs and schedules."""

from dagster import Definitions
from src.dagster.reminders.jobs import promote_reminders_job, reconcile_reminders_job
from src.dagster.reminders.schedules import (
    promote_reminders_schedule,
    reconcile_reminders_schedule,
)

defs = Definitions(
    jobs=[promote_reminders_job, reconcile_reminders_job],
    schedules=[promote_reminders_schedule, reconcile_reminders_schedule],
)
