"""Celery tasks for reminder schedule processing."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from celery import Task
from dotenv import load_dotenv

from src.database.connection import get_session
from src.orchestration.celery_app import celery_app
from src.reminders.exceptions import ReminderNotFoundError
from src.reminders.manager import ScheduleManager
from src.utils.dates import ensure_utc
from src.utils.logging import configure_logging

load_dotenv()
configure_logging()

logger = logging.getLogger(__name__)

# Default retry settings for tasks
DEFAULT_RETRY_KWARGS = {
    "max_retries": 3,
    "default_retry_delay": 60,  # 1 minute
}


class BaseTask(Task):
    """Base task class with common retry and error handling."""

    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes between retries
    retry_jitter = True


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="src.orchestration.tasks.process_single_schedule_task",
    **DEFAULT_RETRY_KWARGS,
)
def process_single_schedule_task(self: Task, schedule_id: str) -> dict[str, bool | str | None]:
    """Process one reminder schedule after it changed.

    Repairs the schedule's pending notifications if they drifted from its
    rule and promotes it when its next trigger has already arrived.

    :param self: The Celery task instance (bound).
    :param schedule_id: ID of the schedule that changed.
    :returns: Dictionary with processing details.
    """
    logger.info(f"Starting schedule processing task: schedule_id={schedule_id}")
    now = datetime.now(UTC)

    try:
        with get_session() as session:
            manager = ScheduleManager(session)
            schedule = manager.get_by_id(UUID(schedule_id))

            advanced = False
            if (
                schedule.is_active
                and schedule.next_trigger_at is not None
                and ensure_utc(schedule.next_trigger_at) <= now
            ):
                manager.advance(schedule, now)
                advanced = True

            repaired = manager.sync(schedule.id, now)

            next_trigger = schedule.next_trigger_at

    except ReminderNotFoundError:
        # Deleted before the worker picked it up
        logger.info(f"Schedule no longer exists, nothing to do: schedule_id={schedule_id}")
        return {"found": False, "repaired": False, "advanced": False, "next_trigger_at": None}

    except Exception as exc:
        logger.exception(f"Schedule processing failed: schedule_id={schedule_id}, error={exc}")
        raise

    stats: dict[str, bool | str | None] = {
        "found": True,
        "repaired": repaired,
        "advanced": advanced,
        "next_trigger_at": next_trigger.isoformat() if next_trigger is not None else None,
    }
    logger.info(f"Schedule processing complete: schedule_id={schedule_id}, {stats}")
    return stats
