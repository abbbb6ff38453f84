"""Queue of materialised reminder notifications."""

from __future__ import annotations

import logging
import uuid as uuid_module
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.database.reminders.models import (
    NotificationInstance,
    NotificationStatus,
    ReminderSchedule,
)
from src.database.reminders.operations import (
    create_notification,
    delete_future_pending_notifications,
    get_notification_for_user,
    list_notifications_between,
    list_pending_due_notifications,
    resolve_notification,
)
from src.reminders.exceptions import (
    AlreadyResolvedError,
    DependencyError,
    ReminderNotFoundError,
    ReminderValidationError,
)
from src.utils.dates import ensure_utc

logger = logging.getLogger(__name__)

VARIABLE_NAME_PLACEHOLDER = "{variableName}"

_RESOLVED_STATUSES = frozenset({NotificationStatus.COMPLETED, NotificationStatus.SKIPPED})


def render_template(template: str | None, variable_name: str) -> str | None:
    """Substitute the variable name into a notification template.

    :param template: Template text, possibly containing ``{variableName}``.
    :param variable_name: Display name of the tracked variable.
    :returns: The rendered text, or None when there is no template.
    """
    if template is None:
        return None
    return template.replace(VARIABLE_NAME_PLACEHOLDER, variable_name)


@dataclass(frozen=True)
class PendingNotificationTask:
    """A due notification joined with the metadata needed to display it."""

    notification_id: uuid_module.UUID
    schedule_id: uuid_module.UUID
    user_id: uuid_module.UUID
    user_variable_id: uuid_module.UUID
    global_variable_id: uuid_module.UUID
    variable_name: str
    variable_category_id: str | None
    emoji: str | None
    trigger_at: datetime
    title: str
    message: str | None
    default_value: float | None
    status: NotificationStatus
    resolved_at: datetime | None = None

    @classmethod
    def from_instance(cls, instance: NotificationInstance) -> PendingNotificationTask:
        """Build a task from a notification with its schedule and variable loaded."""
        schedule: ReminderSchedule = instance.schedule
        global_variable = schedule.user_variable.global_variable
        name = global_variable.name

        return cls(
            notification_id=instance.id,
            schedule_id=schedule.id,
            user_id=instance.user_id,
            user_variable_id=schedule.user_variable_id,
            global_variable_id=global_variable.id,
            variable_name=name,
            variable_category_id=global_variable.variable_category_id,
            emoji=global_variable.emoji,
            trigger_at=ensure_utc(instance.trigger_at),
            title=render_template(schedule.notification_title_template, name) or name,
            message=render_template(schedule.notification_message_template, name),
            default_value=schedule.default_value,
            status=NotificationStatus(instance.status),
            resolved_at=(
                ensure_utc(instance.completed_or_skipped_at)
                if instance.completed_or_skipped_at is not None
                else None
            ),
        )


class NotificationInstanceQueue:
    """Creates, cancels, resolves and lists notification instances.

    Operates inside the caller's session; commits are left to the caller.
    """

    def __init__(self, session: Session) -> None:
        """Initialise the queue.

        :param session: Database session.
        """
        self._session = session

    def enqueue_for(
        self,
        schedule: ReminderSchedule,
        trigger_at: datetime,
    ) -> NotificationInstance:
        """Create one pending notification for a schedule.

        No deduplication happens here; callers cancel first.

        :param schedule: The parent schedule.
        :param trigger_at: When the notification becomes due.
        :returns: The created notification.
        :raises DependencyError: If the notification cannot be stored.
        """
        try:
            return create_notification(self._session, schedule, ensure_utc(trigger_at))
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to enqueue notification: {e}") from e

    def cancel_future_pending(self, schedule_id: uuid_module.UUID, now: datetime) -> int:
        """Delete a schedule's pending notifications that trigger after now.

        :param schedule_id: Schedule ID.
        :param now: Current time.
        :returns: Number of notifications removed.
        :raises DependencyError: If the delete fails.
        """
        try:
            return delete_future_pending_notifications(self._session, schedule_id, ensure_utc(now))
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to cancel pending notifications: {e}") from e

    def resolve(
        self,
        notification_id: uuid_module.UUID,
        user_id: uuid_module.UUID,
        outcome: NotificationStatus,
        log_details: dict[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> NotificationInstance:
        """Mark a pending notification as completed or skipped.

        The row is locked for the rest of the transaction so two concurrent
        resolves cannot both succeed. The schedule is not advanced.

        :param notification_id: Notification ID.
        :param user_id: Caller's user ID.
        :param outcome: COMPLETED or SKIPPED.
        :param log_details: Optional structured payload to store.
        :param now: Resolution time (defaults to now).
        :returns: The resolved notification.
        :raises ReminderValidationError: If the outcome is not a resolved status.
        :raises ReminderNotFoundError: If the notification does not exist for the user.
        :raises AlreadyResolvedError: If the notification is no longer pending.
        :raises DependencyError: If persistence fails.
        """
        outcome = NotificationStatus(outcome)
        if outcome not in _RESOLVED_STATUSES:
            raise ReminderValidationError(f"Cannot resolve a notification as {outcome.value}")

        now = ensure_utc(now) if now is not None else datetime.now(UTC)

        try:
            notification = get_notification_for_user(
                self._session, notification_id, user_id, for_update=True
            )
            if notification is None:
                raise ReminderNotFoundError("notification", notification_id)

            if not notification.is_pending:
                logger.warning(
                    f"Resolve rejected: id={notification_id}, status={notification.status}"
                )
                raise AlreadyResolvedError(notification_id, notification.status)

            return resolve_notification(self._session, notification, outcome, log_details, now)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to resolve notification: {e}") from e

    def list_pending_due(
        self,
        user_id: uuid_module.UUID,
        as_of: datetime | None = None,
    ) -> list[PendingNotificationTask]:
        """List a user's pending notifications that are due.

        :param user_id: Owner's user ID.
        :param as_of: Cut-off time (defaults to now).
        :returns: Display-ready tasks, oldest first.
        :raises DependencyError: If the query fails.
        """
        as_of = ensure_utc(as_of) if as_of is not None else datetime.now(UTC)
        try:
            instances = list_pending_due_notifications(self._session, user_id, as_of)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to list pending notifications: {e}") from e

        logger.debug(f"Pending due notifications: user_id={user_id}, count={len(instances)}")
        return [PendingNotificationTask.from_instance(instance) for instance in instances]

    def list_for_day(
        self,
        user_id: uuid_module.UUID,
        day: date,
        timezone: str,
    ) -> list[PendingNotificationTask]:
        """List every notification (any status) on a local calendar day.

        :param user_id: Owner's user ID.
        :param day: The local calendar day.
        :param timezone: IANA timezone the day is expressed in.
        :returns: Tasks ordered by trigger time.
        :raises ReminderValidationError: If the timezone is unknown.
        :raises DependencyError: If the query fails.
        """
        try:
            tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ReminderValidationError(f"Unknown timezone: {timezone!r}") from e

        start = datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)

        try:
            instances = list_notifications_between(self._session, user_id, start, end)
        except SQLAlchemyError as e:
            raise DependencyError(f"Failed to list notifications: {e}") from e

        return [PendingNotificationTask.from_instance(instance) for instance in instances]
