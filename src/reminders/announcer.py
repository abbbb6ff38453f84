"""Announcers that hand schedule changes to background workers."""

import logging
import uuid as uuid_module
from typing import Protocol

from src.orchestration.celery_app import celery_app

logger = logging.getLogger(__name__)

PROCESS_SCHEDULE_TASK_NAME = "src.orchestration.tasks.process_single_schedule_task"


class NotificationAnnouncer(Protocol):
    """Something that can be told a schedule's notifications changed."""

    def announce(self, schedule_id: uuid_module.UUID) -> None:
        """Announce that a schedule needs processing.

        :param schedule_id: The schedule that changed.
        """
        ...


class CeleryNotificationAnnouncer:
    """Submit a processing task for the schedule to the Celery queue."""

    def __init__(self, task_name: str = PROCESS_SCHEDULE_TASK_NAME) -> None:
        """Initialise the announcer.

        :param task_name: Registered name of the task to send.
        """
        self._task_name = task_name

    def announce(self, schedule_id: uuid_module.UUID) -> None:
        """Send the processing task by name.

        :param schedule_id: The schedule that changed.
        """
        result = celery_app.send_task(self._task_name, args=[str(schedule_id)])
        logger.info(f"Announced schedule change: schedule_id={schedule_id}, task_id={result.id}")


class NullNotificationAnnouncer:
    """Announcer that does nothing, used when announcing is disabled."""

    def announce(self, schedule_id: uuid_module.UUID) -> None:
        """Ignore the announcement.

        :param schedule_id: The schedule that changed.
        """
        logger.debug(f"Announcing disabled, skipping: schedule_id={schedule_id}")


def get_announcer(enabled: bool) -> NotificationAnnouncer:
    """Get the announcer for the current configuration.

    :param enabled: Whether announcing is enabled.
    :returns: A Celery announcer when enabled, otherwise a no-op announcer.
    """
    if enabled:
        return CeleryNotificationAnnouncer()
    return NullNotificationAnnouncer()
