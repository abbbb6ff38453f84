"""Dagster jobs and schedules for reminder promotion and reconciliation."""

from src.dagster.reminders.definitions import defs
from src.dagster.reminders.jobs import promote_reminders_job, reconcile_reminders_job
from src.dagster.reminders.ops import promote_due_reminders_op, reconcile_reminders_op

__all__ = [
    "defs",
    "promote_due_reminders_op",
    "promote_reminders_job",
    "reconcile_reminders_job",
    "reconcile_reminders_op",
]
