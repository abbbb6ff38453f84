"""Dagster schedules for reminder jobs."""

from dagster import ScheduleDefinition
from src.dagster.reminders.jobs import promote_reminders_job, reconcile_reminders_job

# Due reminders should surface within a few minutes of their trigger time
promote_reminders_schedule = ScheduleDefinition(
    job=promote_reminders_job,
    cron_schedule="*/5 * * * *",
    execution_timezone="UTC",
)

# Full sweep over active schedules, offset from the promotion runs
reconcile_reminders_schedule = ScheduleDefinition(
    job=reconcile_reminders_job,
    cron_schedule="17 * * * *",
    execution_timezone="UTC",
)
