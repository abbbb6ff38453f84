"""Reminder schedule lifecycle management.

The manager owns the create, update and delete flows for reminder schedules
and keeps each schedule's notification queue in step with its rule: at most
one pending notification in the future per schedule, regenerated by cancel
then enqueue whenever the rule changes.
"""

from __future__ import annotations

import logging
import uuid as uuid_module
from dataclasses import dataclass, field
from typing import Any
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.database.reminders.models import ReminderSchedule
from src.database.reminders.operations import (
    create_reminder_schedule,
    delete_reminder_schedule,
    get_active_schedules,
    get_pending_notifications,
    get_schedule_by_id,
    get_schedule_for_user,
    get_schedules_to_trigger,
    list_schedules_for_user,
    notification_exists,
    update_reminder_schedule,
    update_schedule_next_trigger,
)
from src.database.variables.operations import (
    ensure_owner_link,
    get_global_variable_by_id,
    get_user_variable,
)
from src.enums import VariableCategory
from src.reminders.announcer import NotificationAnnouncer, NullNotificationAnnouncer
from src.reminders.config import ReminderSettings, get_reminder_settings
from src.reminders.exceptions import (
    DependencyError,
    ReminderError,
    ReminderNotFoundError,
    ReminderValidationError,
    ScheduleSyncError,
)
from src.reminders.queue import VARIABLE_NAME_PLACEHOLDER, NotificationInstanceQueue
from src.reminders.recurrence import Frequency, RecurrenceRule, compute_next_occurrence
from src.utils.dates import ensure_utc

logger = logging.getLogger(__name__)

DOSE_MESSAGE_TEMPLATE = f"Did you take your {VARIABLE_NAME_PLACEHOLDER} dose?"
LOG_MESSAGE_TEMPLATE = f"Time to log {VARIABLE_NAME_PLACEHOLDER}."

# Marks update arguments the caller did not supply; None clears the field
_UNSET: Any = object()


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation sweep."""

    schedules_checked: int = 0
    schedules_repaired: int = 0
    errors: list[str] = field(default_factory=list)


def _now_or(now: datetime | None) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(UTC)


def _optional_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


class ScheduleManager:
    """Create, update, delete and advance reminder schedules.

    Works inside the caller's session and never commits. Notifications are
    materialised eagerly: an active schedule always has its next occurrence
    waiting as a pending notification.

    Created and updated schedules are only announced by
    :meth:`announce_pending`, which the caller runs once the session has
    committed so the worker reads the saved state.
    """

    def __init__(
        self,
        session: Session,
        announcer: NotificationAnnouncer | None = None,
        queue: NotificationInstanceQueue | None = None,
    ) -> None:
        """Initialise the manager.

        :param session: Database session.
        :param announcer: Receives a best-effort signal after each committed change.
        :param queue: Notification queue (defaults to one on the same session).
        """
        self._session = session
        self._announcer = announcer if announcer is not None else NullNotificationAnnouncer()
        self._queue = queue if queue is not None else NotificationInstanceQueue(session)
        self._pending_announcements: list[uuid_module.UUID] = []

    # Lookups

    def get(self, schedule_id: uuid_module.UUID, user_id: uuid_module.UUID) -> ReminderSchedule:
        """Get a schedule owned by the user.

        :raises ReminderNotFoundError: If the schedule does not exist for the user.
        """
        try:
            schedule = get_schedule_for_user(self._session, schedule_id, user_id)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to load schedule {schedule_id}: {e}") from e

        if schedule is None:
            raise ReminderNotFoundError("schedule", schedule_id)
        return schedule

    def get_by_id(self, schedule_id: uuid_module.UUID) -> ReminderSchedule:
        """Get a schedule regardless of owner, for background workers.

        :raises ReminderNotFoundError: If the schedule does not exist.
        """
        try:
            schedule = get_schedule_by_id(self._session, schedule_id)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to load schedule {schedule_id}: {e}") from e

        if schedule is None:
            raise ReminderNotFoundError("schedule", schedule_id)
        return schedule

    def list_for_user(
        self,
        user_id: uuid_module.UUID,
        *,
        user_variable_id: uuid_module.UUID | None = None,
        include_inactive: bool = True,
    ) -> list[ReminderSchedule]:
        """List a user's schedules, optionally for a single variable."""
        try:
            return list_schedules_for_user(
                self._session,
                user_id,
                user_variable_id=user_variable_id,
                include_inactive=include_inactive,
            )
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to list schedules: {e}") from e

    def preview(
        self,
        schedule_id: uuid_module.UUID,
        user_id: uuid_module.UUID,
        start: datetime,
        end: datetime,
        *,
        max_days: int,
    ) -> list[datetime]:
        """List a schedule's occurrences in a window without materialising them.

        :param schedule_id: Schedule ID.
        :param user_id: Caller's user ID.
        :param start: Window start (inclusive).
        :param end: Window end (exclusive).
        :param max_days: Largest accepted window in days.
        :returns: UTC occurrences in ascending order.
        :raises ReminderValidationError: If the window is empty or too large.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ReminderValidationError("Window end must be after its start")
        if (end - start).total_seconds() > max_days * 86400:
            raise ReminderValidationError(f"Window cannot exceed {max_days} days")

        return self.get(schedule_id, user_id).rule.occurrences(start, end)

    # Creation

    def create(
        self,
        user_id: uuid_module.UUID,
        user_variable_id: uuid_module.UUID,
        rule: RecurrenceRule,
        *,
        is_active: bool = True,
        default_value: float | None = None,
        title_template: str | None = None,
        message_template: str | None = None,
        now: datetime | None = None,
    ) -> ReminderSchedule:
        """Create a schedule and materialise its first notification.

        :param user_id: Owner's user ID.
        :param user_variable_id: The owner's tracked variable.
        :param rule: Validated recurrence rule.
        :param is_active: Whether the schedule should trigger.
        :param default_value: Value pre-filled when logging.
        :param title_template: Notification title, may contain ``{variableName}``.
        :param message_template: Notification message, may contain ``{variableName}``.
        :param now: Current time (defaults to now).
        :returns: The created schedule.
        :raises ReminderNotFoundError: If the variable does not belong to the user.
        :raises DependencyError: If persistence fails.
        """
        now = _now_or(now)

        try:
            user_variable = get_user_variable(self._session, user_variable_id, user_id)
            if user_variable is None:
                raise ReminderNotFoundError("variable", user_variable_id)

            next_trigger = compute_next_occurrence(rule, now, inclusive=True) if is_active else None
            schedule = create_reminder_schedule(
                self._session,
                user_id=user_id,
                user_variable_id=user_variable.id,
                rule=rule,
                is_active=is_active,
                next_trigger_at=next_trigger,
                default_value=default_value,
                title_template=title_template,
                message_template=message_template,
            )
            if next_trigger is not None:
                self._queue.enqueue_for(schedule, next_trigger)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to create schedule: {e}") from e

        logger.info(
            f"Schedule created: id={schedule.id}, user_id={user_id}, "
            f"rrule={schedule.rrule!r}, next_trigger_at={next_trigger}"
        )
        self._pending_announcements.append(schedule.id)
        return schedule

    def create_for_variable(
        self,
        user_id: uuid_module.UUID,
        global_variable_id: uuid_module.UUID,
        rule: RecurrenceRule,
        **kwargs: object,
    ) -> ReminderSchedule:
        """Create a schedule for a global variable, linking it to the user first.

        Accepts the same keyword arguments as :meth:`create`.

        :raises ReminderNotFoundError: If the global variable does not exist.
        """
        try:
            global_variable = get_global_variable_by_id(self._session, global_variable_id)
            if global_variable is None:
                raise ReminderNotFoundError("variable", global_variable_id)
            user_variable = ensure_owner_link(self._session, user_id, global_variable)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to link variable {global_variable_id}: {e}") from e

        return self.create(user_id, user_variable.id, rule, **kwargs)  # type: ignore[arg-type]

    def create_default(
        self,
        user_id: uuid_module.UUID,
        global_variable_id: uuid_module.UUID,
        timezone: str | None = None,
        *,
        now: datetime | None = None,
        settings: ReminderSettings | None = None,
    ) -> ReminderSchedule:
        """Create the standard daily reminder for a newly tracked variable.

        Daily at the configured default time, starting today in the user's
        timezone. Intake variables get a dose prompt, everything else a
        logging prompt.

        :param user_id: Owner's user ID.
        :param global_variable_id: The variable being tracked.
        :param timezone: User's timezone (defaults to the configured one).
        :param now: Current time (defaults to now).
        :param settings: Reminder settings (defaults to the cached settings).
        :returns: The created schedule.
        """
        settings = settings or get_reminder_settings()
        timezone = timezone or settings.default_timezone
        now = _now_or(now)

        try:
            tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ReminderValidationError(f"Unknown timezone: {timezone!r}") from e

        global_variable = get_global_variable_by_id(self._session, global_variable_id)
        if global_variable is None:
            raise ReminderNotFoundError("variable", global_variable_id)

        if global_variable.variable_category_id == VariableCategory.INTAKE_AND_INTERVENTIONS:
            message_template = DOSE_MESSAGE_TEMPLATE
        else:
            message_template = LOG_MESSAGE_TEMPLATE

        rule = RecurrenceRule(
            frequency=Frequency.DAILY,
            anchor_date=now.astimezone(tz).date(),
            time_of_day=settings.default_time,
            timezone=timezone,
        )
        return self.create_for_variable(
            user_id,
            global_variable_id,
            rule,
            message_template=message_template,
            now=now,
        )

    # Changes

    def update(
        self,
        schedule_id: uuid_module.UUID,
        user_id: uuid_module.UUID,
        rule: RecurrenceRule | None = None,
        *,
        is_active: bool | None = None,
        default_value: float | None = _UNSET,
        title_template: str | None = _UNSET,
        message_template: str | None = _UNSET,
        now: datetime | None = None,
    ) -> ReminderSchedule:
        """Apply a rule or metadata change and regenerate future notifications.

        Runs in order: persist the schedule, cancel future pending
        notifications, recompute the next trigger, enqueue it. The schedule
        is then queued for :meth:`announce_pending`. ``rule`` and
        ``is_active`` left as None keep their current value; the other
        metadata keeps its value when omitted and is cleared by an explicit None.

        :param schedule_id: Schedule ID.
        :param user_id: Caller's user ID.
        :param rule: New recurrence rule.
        :param is_active: New active flag.
        :param default_value: New default logging value, None to clear.
        :param title_template: New title template, None to clear.
        :param message_template: New message template, None to clear.
        :param now: Current time (defaults to now).
        :returns: The updated schedule.
        :raises ReminderNotFoundError: If the schedule does not exist for the user.
        :raises DependencyError: If the schedule itself cannot be saved.
        :raises ScheduleSyncError: If the schedule was saved but its notifications were not synced.
        """
        now = _now_or(now)
        schedule = self.get(schedule_id, user_id)

        try:
            update_reminder_schedule(
                self._session,
                schedule,
                rule if rule is not None else schedule.rule,
                is_active=is_active if is_active is not None else schedule.is_active,
                default_value=(
                    default_value if default_value is not _UNSET else schedule.default_value
                ),
                title_template=(
                    title_template
                    if title_template is not _UNSET
                    else schedule.notification_title_template
                ),
                message_template=(
                    message_template
                    if message_template is not _UNSET
                    else schedule.notification_message_template
                ),
                now=now,
            )
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to save schedule {schedule_id}: {e}") from e

        self._regenerate(schedule, now)
        self._pending_announcements.append(schedule.id)
        return schedule

    def deactivate(
        self,
        schedule_id: uuid_module.UUID,
        user_id: uuid_module.UUID,
        *,
        now: datetime | None = None,
    ) -> ReminderSchedule:
        """Stop a schedule from triggering and drop its future notifications."""
        return self.update(schedule_id, user_id, is_active=False, now=now)

    def delete(self, schedule_id: uuid_module.UUID, user_id: uuid_module.UUID) -> None:
        """Delete a schedule and all of its notifications.

        :raises ReminderNotFoundError: If the schedule does not exist for the user.
        """
        schedule = self.get(schedule_id, user_id)
        try:
            delete_reminder_schedule(self._session, schedule)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to delete schedule {schedule_id}: {e}") from e

    # Background processing

    def advance(self, schedule: ReminderSchedule, now: datetime | None = None) -> datetime | None:
        """Promote a due schedule to its following occurrence.

        Materialises the due notification if it is missing, then moves
        ``next_trigger_at`` strictly past now and materialises that one.

        :param schedule: A schedule whose next trigger has arrived.
        :param now: Current time (defaults to now).
        :returns: The new next trigger, or None once the rule is exhausted.
        """
        now = _now_or(now)
        due_at = _optional_utc(schedule.next_trigger_at)

        try:
            if due_at is not None and not notification_exists(self._session, schedule.id, due_at):
                self._queue.enqueue_for(schedule, due_at)
                logger.info(f"Materialised missing due notification: schedule_id={schedule.id}")

            next_trigger = compute_next_occurrence(schedule.rule, now)
            update_schedule_next_trigger(self._session, schedule, next_trigger)

            if next_trigger is not None and not notification_exists(
                self._session, schedule.id, next_trigger
            ):
                self._queue.enqueue_for(schedule, next_trigger)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to advance schedule {schedule.id}: {e}") from e

        logger.info(
            f"Advanced schedule: id={schedule.id}, due_at={due_at}, next_trigger_at={next_trigger}"
        )
        return next_trigger

    def get_due_schedules(self, now: datetime | None = None) -> list[ReminderSchedule]:
        """Get every active schedule whose next trigger has arrived."""
        try:
            return get_schedules_to_trigger(self._session, _now_or(now))
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to load due schedules: {e}") from e

    def sync(self, schedule_id: uuid_module.UUID, now: datetime | None = None) -> bool:
        """Bring one schedule's notifications back in line with its rule.

        Leaves an already consistent schedule untouched, so running it twice
        changes nothing.

        :param schedule_id: Schedule ID.
        :param now: Current time (defaults to now).
        :returns: True if anything had to be repaired.
        :raises ReminderNotFoundError: If the schedule no longer exists.
        """
        now = _now_or(now)
        schedule = self.get_by_id(schedule_id)

        if self._is_in_sync(schedule, now):
            logger.debug(f"Schedule already in sync: id={schedule_id}")
            return False

        logger.warning(f"Repairing schedule notifications: id={schedule_id}")
        self._regenerate(schedule, now)
        return True

    def reconcile(self, now: datetime | None = None) -> ReconcileResult:
        """Run :meth:`sync` over every active schedule.

        Repairs schedules left inconsistent by a failed update. Errors are
        collected per schedule rather than raised.

        :param now: Current time (defaults to now).
        :returns: Counts of checked and repaired schedules plus any errors.
        """
        now = _now_or(now)
        result = ReconcileResult()

        try:
            schedules = get_active_schedules(self._session)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to load active schedules: {e}") from e

        for schedule in schedules:
            result.schedules_checked += 1
            try:
                if self.sync(schedule.id, now):
                    result.schedules_repaired += 1
            except ReminderError as e:
                error_msg = f"Failed to reconcile schedule {schedule.id}: {e}"
                logger.error(error_msg)
                result.errors.append(error_msg)

        logger.info(
            f"Reconcile complete: checked={result.schedules_checked}, "
            f"repaired={result.schedules_repaired}, errors={len(result.errors)}"
        )
        return result

    # Internals

    def _expected_next_trigger(self, schedule: ReminderSchedule, now: datetime) -> datetime | None:
        if not schedule.is_active:
            return None
        return compute_next_occurrence(schedule.rule, now, inclusive=True)

    def _is_in_sync(self, schedule: ReminderSchedule, now: datetime) -> bool:
        expected = self._expected_next_trigger(schedule, now)
        if _optional_utc(schedule.next_trigger_at) != expected:
            return False

        future = [
            ensure_utc(notification.trigger_at)
            for notification in get_pending_notifications(self._session, schedule.id, after=now)
        ]
        if expected is None or expected <= now:
            return not future and (
                expected is None or notification_exists(self._session, schedule.id, expected)
            )
        return future == [expected]

    def _regenerate(self, schedule: ReminderSchedule, now: datetime) -> datetime | None:
        """Cancel future pending notifications and enqueue the next one.

        Runs inside a savepoint: on failure the notification queue is left as
        it was and the caller can still commit the saved schedule row.
        """
        stage = "cancel"
        try:
            with self._session.begin_nested():
                cancelled = self._queue.cancel_future_pending(schedule.id, now)
                self._session.expire(schedule, ["notifications"])

                stage = "recompute"
                next_trigger = self._expected_next_trigger(schedule, now)
                update_schedule_next_trigger(self._session, schedule, next_trigger)

                stage = "enqueue"
                if next_trigger is not None and not notification_exists(
                    self._session, schedule.id, next_trigger
                ):
                    self._queue.enqueue_for(schedule, next_trigger)
        except (DependencyError, SQLAlchemyError) as e:
            logger.exception(f"Schedule sync failed: id={schedule.id}, stage={stage}")
            raise ScheduleSyncError(schedule.id, stage, str(e)) from e

        logger.info(
            f"Schedule notifications regenerated: id={schedule.id}, "
            f"cancelled={cancelled}, next_trigger_at={next_trigger}"
        )
        return next_trigger

    # Announcements

    def announce_pending(self) -> None:
        """Announce every schedule created or updated through this manager.

        Call after the session has committed. Announcing is fail-open: a
        broker error is logged and the hourly reconciliation picks up the
        schedule instead.
        """
        pending, self._pending_announcements = self._pending_announcements, []
        for schedule_id in pending:
            try:
                self._announcer.announce(schedule_id)
            except Exception:
                logger.exception(f"Failed to announce schedule change: schedule_id={schedule_id}")
