"""Dagster jobs for reminder schedules."""

from dagster import job
from src.dagster.reminders.ops import promote_due_reminders_op, reconcile_reminders_op


@job(
    name="promote_reminders_job",
    description="Advance due reminder schedules to their next occurrence.",
)
def promote_reminders_job() -> None:
    """Promote due reminders."""
    promote_due_reminders_op()


@job(
    name="reconcile_reminders_job",
    description="Repair pending notifications for every active reminder schedule.",
)
def reconcile_reminders_job() -> None:
    """Reconcile reminders.

    Catches schedules whose rule was saved but whose notification queue
    could not be regenerated at the time.
    """
    reconcile_reminders_op()
