"""Database operations for reminder schedules and notifications."""

from __future__ import annotations

import logging
import uuid as uuid_module
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session, joinedload

from src.database.reminders.models import (
    NotificationInstance,
    NotificationStatus,
    ReminderSchedule,
)
from src.database.variables.models import UserVariable
from src.reminders.recurrence import RecurrenceRule

logger = logging.getLogger(__name__)


def create_reminder_schedule(
    session: Session,
    user_id: uuid_module.UUID,
    user_variable_id: uuid_module.UUID,
    rule: RecurrenceRule,
    *,
    is_active: bool = True,
    next_trigger_at: datetime | None = None,
    default_value: float | None = None,
    title_template: str | None = None,
    message_template: str | None = None,
) -> ReminderSchedule:
    """Create a new reminder schedule.

    :param session: Database session.
    :param user_id: Owner's user ID.
    :param user_variable_id: The tracked variable the reminder is for.
    :param rule: Validated recurrence rule.
    :param is_active: Whether the schedule should trigger.
    :param next_trigger_at: Precomputed next trigger time (UTC).
    :param default_value: Value pre-filled when logging.
    :param title_template: Notification title template.
    :param message_template: Notification message template.
    :returns: The created schedule.
    """
    schedule = ReminderSchedule(
        user_id=user_id,
        user_variable_id=user_variable_id,
        is_active=is_active,
        next_trigger_at=next_trigger_at,
        default_value=default_value,
        notification_title_template=title_template,
        notification_message_template=message_template,
    )
    schedule.rule = rule
    session.add(schedule)
    session.flush()
    logger.info(
        f"Created reminder schedule: id={schedule.id}, user_variable_id={user_variable_id}, "
        f"active={is_active}, next_trigger_at={next_trigger_at}"
    )
    return schedule


def get_schedule_for_user(
    session: Session,
    schedule_id: uuid_module.UUID,
    user_id: uuid_module.UUID,
) -> ReminderSchedule | None:
    """Get a reminder schedule owned by a user.

    :param session: Database session.
    :param schedule_id: Schedule ID.
    :param user_id: Owner's user ID.
    :returns: The schedule or None if not found or owned by someone else.
    """
    return (
        session.query(ReminderSchedule)
        .filter(ReminderSchedule.id == schedule_id, ReminderSchedule.user_id == user_id)
        .first()
    )


def get_schedule_by_id(
    session: Session,
    schedule_id: uuid_module.UUID,
) -> ReminderSchedule | None:
    """Get a reminder schedule by ID, regardless of owner.

    Used by background jobs only.

    :param session: Database session.
    :param schedule_id: Schedule ID.
    :returns: The schedule or None if not found.
    """
    return session.query(ReminderSchedule).filter(ReminderSchedule.id == schedule_id).first()


def list_schedules_for_user(
    session: Session,
    user_id: uuid_module.UUID,
    user_variable_id: uuid_module.UUID | None = None,
    include_inactive: bool = True,
) -> list[ReminderSchedule]:
    """List reminder schedules for a user.

    :param session: Database session.
    :param user_id: Owner's user ID.
    :param user_variable_id: Optionally restrict to one tracked variable.
    :param include_inactive: Whether to include deactivated schedules.
    :returns: Schedules, newest first.
    """
    query = (
        session.query(ReminderSchedule)
        .options(joinedload(ReminderSchedule.user_variable).joinedload(UserVariable.global_variable))
        .filter(ReminderSchedule.user_id == user_id)
    )

    if user_variable_id is not None:
        query = query.filter(ReminderSchedule.user_variable_id == user_variable_id)

    if not include_inactive:
        query = query.filter(ReminderSchedule.is_active.is_(True))

    return query.order_by(ReminderSchedule.created_at.desc()).all()


def update_reminder_schedule(
    session: Session,
    schedule: ReminderSchedule,
    rule: RecurrenceRule,
    *,
    is_active: bool,
    default_value: float | None,
    title_template: str | None,
    message_template: str | None,
    now: datetime | None = None,
) -> ReminderSchedule:
    """Persist new rule and metadata fields on a schedule.

    Does not touch ``next_trigger_at`` or notifications.

    :param session: Database session.
    :param schedule: The schedule to update.
    :param rule: The new recurrence rule.
    :param is_active: New active flag.
    :param default_value: New default logging value.
    :param title_template: New title template.
    :param message_template: New message template.
    :param now: Current time (defaults to now).
    :returns: The updated schedule.
    """
    if now is None:
        now = datetime.now(UTC)

    schedule.rule = rule
    schedule.is_active = is_active
    schedule.default_value = default_value
    schedule.notification_title_template = title_template
    schedule.notification_message_template = message_template
    schedule.updated_at = now
    session.flush()
    logger.info(f"Updated reminder schedule: id={schedule.id}, active={is_active}")
    return schedule


def update_schedule_next_trigger(
    session: Session,
    schedule: ReminderSchedule,
    next_trigger: datetime | None,
) -> None:
    """Update the next trigger time for a schedule.

    :param session: Database session.
    :param schedule: The schedule to update.
    :param next_trigger: The next trigger time, or None when there is none.
    """
    schedule.next_trigger_at = next_trigger
    session.flush()
    logger.debug(f"Updated schedule next trigger: id={schedule.id}, next={next_trigger}")


def delete_reminder_schedule(
    session: Session,
    schedule: ReminderSchedule,
) -> None:
    """Delete a schedule and every notification it produced.

    :param session: Database session.
    :param schedule: The schedule to delete.
    """
    schedule_id = schedule.id
    session.delete(schedule)
    session.flush()
    logger.info(f"Deleted reminder schedule and its notifications: id={schedule_id}")


def get_active_schedules(session: Session) -> list[ReminderSchedule]:
    """Get all active schedules.

    :param session: Database session.
    :returns: Active schedules.
    """
    return session.query(ReminderSchedule).filter(ReminderSchedule.is_active.is_(True)).all()


def get_schedules_to_trigger(
    session: Session,
    now: datetime | None = None,
) -> list[ReminderSchedule]:
    """Get active schedules whose next trigger time has arrived.

    :param session: Database session.
    :param now: Current time (defaults to now).
    :returns: List of schedules ready to trigger.
    """
    if now is None:
        now = datetime.now(UTC)

    return (
        session.query(ReminderSchedule)
        .filter(
            ReminderSchedule.is_active.is_(True),
            ReminderSchedule.next_trigger_at.is_not(None),
            ReminderSchedule.next_trigger_at <= now,
        )
        .all()
    )


def create_notification(
    session: Session,
    schedule: ReminderSchedule,
    trigger_at: datetime,
) -> NotificationInstance:
    """Create a pending notification for a schedule.

    :param session: Database session.
    :param schedule: The parent schedule.
    :param trigger_at: When the notification becomes due (UTC).
    :returns: The created notification.
    """
    notification = NotificationInstance(
        schedule=schedule,
        schedule_id=schedule.id,
        user_id=schedule.user_id,
        trigger_at=trigger_at,
        status=NotificationStatus.PENDING.value,
    )
    session.add(notification)
    session.flush()
    logger.info(
        f"Created reminder notification: id={notification.id}, "
        f"schedule_id={schedule.id}, trigger_at={trigger_at}"
    )
    return notification


def get_notification_for_user(
    session: Session,
    notification_id: uuid_module.UUID,
    user_id: uuid_module.UUID,
    *,
    for_update: bool = False,
) -> NotificationInstance | None:
    """Get a notification owned by a user.

    :param session: Database session.
    :param notification_id: Notification ID.
    :param user_id: Owner's user ID.
    :param for_update: Lock the row until the transaction ends.
    :returns: The notification or None if not found or owned by someone else.
    """
    query = session.query(NotificationInstance).filter(
        NotificationInstance.id == notification_id,
        NotificationInstance.user_id == user_id,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_pending_notifications(
    session: Session,
    schedule_id: uuid_module.UUID,
    after: datetime | None = None,
) -> list[NotificationInstance]:
    """Get pending notifications for a schedule.

    :param session: Database session.
    :param schedule_id: Schedule ID.
    :param after: Only return notifications triggering strictly after this time.
    :returns: Pending notifications ordered by trigger time.
    """
    query = session.query(NotificationInstance).filter(
        NotificationInstance.schedule_id == schedule_id,
        NotificationInstance.status == NotificationStatus.PENDING.value,
    )
    if after is not None:
        query = query.filter(NotificationInstance.trigger_at > after)
    return query.order_by(NotificationInstance.trigger_at).all()


def notification_exists(
    session: Session,
    schedule_id: uuid_module.UUID,
    trigger_at: datetime,
) -> bool:
    """Check if a schedule already has a notification at a trigger time.

    :param session: Database session.
    :param schedule_id: Schedule ID.
    :param trigger_at: Trigger time to look for.
    :returns: True if any notification (in any status) exists at that time.
    """
    return (
        session.query(NotificationInstance.id)
        .filter(
            NotificationInstance.schedule_id == schedule_id,
            NotificationInstance.trigger_at == trigger_at,
        )
        .first()
        is not None
    )


def delete_future_pending_notifications(
    session: Session,
    schedule_id: uuid_module.UUID,
    now: datetime,
) -> int:
    """Delete pending notifications that trigger after now.

    Notifications already due, completed or skipped are left untouched.

    :param session: Database session.
    :param schedule_id: Schedule ID.
    :param now: Current time.
    :returns: Number of notifications deleted.
    """
    deleted = (
        session.query(NotificationInstance)
        .filter(
            NotificationInstance.schedule_id == schedule_id,
            NotificationInstance.status == NotificationStatus.PENDING.value,
            NotificationInstance.trigger_at > now,
        )
        .delete(synchronize_session="fetch")
    )
    session.flush()
    logger.info(f"Deleted future pending notifications: schedule_id={schedule_id}, count={deleted}")
    return deleted


def resolve_notification(
    session: Session,
    notification: NotificationInstance,
    status: NotificationStatus,
    log_details: dict[str, Any] | None,
    now: datetime,
) -> NotificationInstance:
    """Mark a notification as completed or skipped.

    Callers check that the notification is still pending.

    :param session: Database session.
    :param notification: The notification to resolve.
    :param status: COMPLETED or SKIPPED.
    :param log_details: Optional structured payload (e.g. the logged measurement).
    :param now: Resolution time.
    :returns: The resolved notification.
    """
    notification.status = status.value
    notification.completed_or_skipped_at = now
    notification.log_details = log_details
    session.flush()
    logger.info(f"Resolved notification: id={notification.id}, status={status.value}")
    return notification


def _with_display_metadata(query: Any) -> Any:
    return query.options(
        joinedload(NotificationInstance.schedule)
        .joinedload(ReminderSchedule.user_variable)
        .joinedload(UserVariable.global_variable)
    )


def list_pending_due_notifications(
    session: Session,
    user_id: uuid_module.UUID,
    as_of: datetime,
) -> list[NotificationInstance]:
    """Get a user's pending notifications that are due.

    Eagerly loads the schedule and variable needed for display.

    :param session: Database session.
    :param user_id: Owner's user ID.
    :param as_of: Include notifications triggering at or before this time.
    :returns: Notifications, oldest first.
    """
    query = session.query(NotificationInstance).filter(
        NotificationInstance.user_id == user_id,
        NotificationInstance.status == NotificationStatus.PENDING.value,
        NotificationInstance.trigger_at <= as_of,
    )
    return _with_display_metadata(query).order_by(NotificationInstance.trigger_at).all()


def list_notifications_between(
    session: Session,
    user_id: uuid_module.UUID,
    start: datetime,
    end: datetime,
) -> list[NotificationInstance]:
    """Get a user's notifications (any status) triggering within a window.

    :param session: Database session.
    :param user_id: Owner's user ID.
    :param start: Window start (inclusive).
    :param end: Window end (exclusive).
    :returns: Notifications ordered by trigger time.
    """
    query = session.query(NotificationInstance).filter(
        NotificationInstance.user_id == user_id,
        NotificationInstance.trigger_at >= start,
        NotificationInstance.trigger_at < end,
    )
    return _with_display_metadata(query).order_by(NotificationInstance.trigger_at).all()
