"""Database models and operations for reminder schedules."""

from src.database.reminders.models import (
    NotificationInstance,
    NotificationStatus,
    ReminderSchedule,
)
from src.database.reminders.operations import (
    create_notification,
    create_reminder_schedule,
    delete_future_pending_notifications,
    delete_reminder_schedule,
    get_active_schedules,
    get_notification_for_user,
    get_pending_notifications,
    get_schedule_by_id,
    get_schedule_for_user,
    get_schedules_to_trigger,
    list_notifications_between,
    list_pending_due_notifications,
    list_schedules_for_user,
    notification_exists,
    resolve_notification,
    update_reminder_schedule,
    update_schedule_next_trigger,
)

__all__ = [
    # Models
    "NotificationInstance",
    "NotificationStatus",
    "ReminderSchedule",
    # Operations
    "create_notification",
    "create_reminder_schedule",
    "delete_future_pending_notifications",
    "delete_reminder_schedule",
    "get_active_schedules",
    "get_notification_for_user",
    "get_pending_notifications",
    "get_schedule_by_id",
    "get_schedule_for_user",
    "get_schedules_to_trigger",
    "list_notifications_between",
    "list_pending_due_notifications",
    "list_schedules_for_user",
    "notification_exists",
    "resolve_notification",
    "update_reminder_schedule",
    "update_schedule_next_trigger",
]
