"""Custom exceptions for the reminder scheduling core."""

from uuid import UUID


class ReminderError(Exception):
    """Base exception for reminder-related errors."""


class ReminderValidationError(ReminderError):
    """Raised when a recurrence rule or its inputs are malformed.

    These errors are actionable by the end user (fix the rule and retry).
    """


class ReminderNotFoundError(ReminderError):
    """Raised when a schedule or notification does not exist for the caller."""

    def __init__(self, kind: str, object_id: UUID) -> None:
        """Initialise ReminderNotFoundError.

        :param kind: Type of object that was looked up (e.g. "schedule").
        :param object_id: ID that could not be found.
        """
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"Reminder {kind} not found: {object_id}")


class AlreadyResolvedError(ReminderError):
    """Raised when resolving a notification that is no longer pending."""

    def __init__(self, notification_id: UUID, status: str) -> None:
        """Initialise AlreadyResolvedError.

        :param notification_id: ID of the notification.
        :param status: The notification's current status.
        """
        self.notification_id = notification_id
        self.status = status
        super().__init__(f"Notification {notification_id} already resolved: status={status}")


class DependencyError(ReminderError):
    """Raised when persistence or another collaborator fails."""


class ScheduleSyncError(DependencyError):
    """Raised when a schedule row was saved but its notifications could not be synced.

    The schedule's rule and metadata reflect the new values, the pending
    notification queue may not. The reconciliation sweep repairs this state.
    """

    def __init__(self, schedule_id: UUID, stage: str, error: str) -> None:
        """Initialise ScheduleSyncError.

        :param schedule_id: ID of the schedule being updated.
        :param stage: Protocol stage that failed (cancel, recompute, enqueue).
        :param error: Underlying error message.
        """
        self.schedule_id = schedule_id
        self.stage = stage
        self.error = error
        super().__init__(
            f"Schedule {schedule_id} saved but notification sync failed at {stage}: {error}"
        )
