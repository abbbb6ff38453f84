"""Celery application for reminder background work.

The API and the Dagster jobs only ever submit tasks by name, so this module
must stay importable without pulling in the reminder core.
"""

import os

from celery import Celery

from src.observability.sentry import init_sentry
from src.utils.logging import configure_logging

configure_logging()
init_sentry()

# Redis URL for broker and result backend
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Queue consumed by the reminder worker
REMINDER_QUEUE = os.environ.get("REMINDER_QUEUE", "health_reminders")

celery_app = Celery(
    "health_reminders",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["src.orchestration.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=REMINDER_QUEUE,
    task_default_routing_key=REMINDER_QUEUE,
    task_routes={"src.orchestration.tasks.*": {"queue": REMINDER_QUEUE}},
    # Schedule processing touches one schedule; anything longer is stuck
    task_soft_time_limit=60,
    task_time_limit=120,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Results are only kept for debugging
    result_expires=3600,
    broker_connection_retry_on_startup=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=int(os.environ.get("REMINDER_WORKER_CONCURRENCY", "2")),
    worker_hijack_root_logger=False,
    worker_redirect_stdouts=False,
)
