"""Dagster ops for processing reminder schedules."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from dagster import Backoff, Jitter, OpExecutionContext, RetryPolicy, op
from src.database.connection import get_session
from src.reminders.exceptions import ReminderError
from src.reminders.manager import ReconcileResult, ScheduleManager

# Maximum number of error messages to include in the summary
MAX_ERRORS_IN_SUMMARY = 5

# Retry policy for reminder ops
REMINDER_RETRY_POLICY = RetryPolicy(
    max_retries=1,
    delay=30,
    backoff=Backoff.EXPONENTIAL,
    jitter=Jitter.FULL,
)


@dataclass
class PromotionStats:
    """Stats for a promotion run."""

    schedules_due: int = 0
    schedules_advanced: int = 0
    errors: list[str] = field(default_factory=list)


def _report_errors(context: OpExecutionContext, stage: str, errors: list[str]) -> None:
    """Log a summary of processing errors.

    Logged at ERROR level so Sentry raises an event for the run.

    :param context: Dagster execution context.
    :param stage: Which step produced the errors (promote or reconcile).
    :param errors: List of error messages.
    """
    if not errors:
        return

    error_summary = "\n".join(f"- {err}" for err in errors[:MAX_ERRORS_IN_SUMMARY])
    if len(errors) > MAX_ERRORS_IN_SUMMARY:
        extra = len(errors) - MAX_ERRORS_IN_SUMMARY
        error_summary += f"\n... and {extra} more"

    context.log.error(f"Reminder {stage} errors: count={len(errors)}\n{error_summary}")


@op(
    name="promote_due_reminders",
    retry_policy=REMINDER_RETRY_POLICY,
    description="Advance reminder schedules whose next trigger has arrived.",
)
def promote_due_reminders_op(context: OpExecutionContext) -> PromotionStats:
    """Promote all due reminder schedules.

    Each due schedule moves on to its next occurrence and gets a pending
    notification for it. A failure on one schedule is recorded and the
    rest are still processed.

    :param context: Dagster execution context.
    :returns: Stats with counts of processed schedules.
    """
    context.log.info("Starting reminder promotion")
    now = datetime.now(UTC)
    stats = PromotionStats()

    with get_session() as session:
        manager = ScheduleManager(session)

        due_schedules = manager.get_due_schedules(now)
        context.log.info(f"Found {len(due_schedules)} schedules due to trigger")
        stats.schedules_due = len(due_schedules)

        for schedule in due_schedules:
            try:
                # A failed schedule rolls back alone; the rest still commit
                with session.begin_nested():
                    next_trigger = manager.advance(schedule, now)
                stats.schedules_advanced += 1
                context.log.debug(f"Advanced schedule {schedule.id} to {next_trigger}")

            except ReminderError as e:
                error_msg = f"Failed to advance schedule {schedule.id}: {e}"
                context.log.error(error_msg)
                stats.errors.append(error_msg)

    context.log.info(
        f"Reminder promotion complete: "
        f"due={stats.schedules_due}, "
        f"advanced={stats.schedules_advanced}, "
        f"errors={len(stats.errors)}"
    )

    _report_errors(context, "promotion", stats.errors)

    return stats


@op(
    name="reconcile_reminders",
    retry_policy=REMINDER_RETRY_POLICY,
    description="Repair active schedules whose pending notification is missing or stale.",
)
def reconcile_reminders_op(context: OpExecutionContext) -> ReconcileResult:
    """Run the reconciliation sweep over every active schedule.

    Picks up schedules left half-updated when a notification regeneration
    failed after the rule was saved.

    :param context: Dagster execution context.
    :returns: Counts of checked and repaired schedules.
    """
    context.log.info("Starting reminder reconciliation")

    with get_session() as session:
        result = ScheduleManager(session).reconcile(datetime.now(UTC))

    context.log.info(
        f"Reminder reconciliation complete: "
        f"checked={result.schedules_checked}, "
        f"repaired={result.schedules_repaired}, "
        f"errors={len(result.errors)}"
    )

    _report_errors(context, "reconciliation", result.errors)

    return result
