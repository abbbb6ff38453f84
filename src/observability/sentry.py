"""Sentry error reporting for the reminder service."""

import logging
import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from src.reminders.exceptions import (
    AlreadyResolvedError,
    ReminderNotFoundError,
    ReminderValidationError,
)

# Caller mistakes, reported back to the client rather than to Sentry
EXPECTED_ERRORS = (ReminderValidationError, ReminderNotFoundError, AlreadyResolvedError)


def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Drop events raised by caller mistakes.

    :param event: The Sentry event.
    :param hint: Event hint, carrying ``exc_info`` for exceptions.
    :returns: The event, or None to drop it.
    """
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], EXPECTED_ERRORS):
        return None
    return event


def init_sentry() -> None:
    """Initialise Sentry when SENTRY_DSN is set.

    Env vars:
      - SENTRY_DSN: project DSN; Sentry stays off without it
      - APP_ENV: environment tag (default local)
      - SENTRY_TRACES_SAMPLE_RATE: fraction of transactions traced (default 0.1)
    """
    dsn = os.environ.get("SENTRY_DSN")
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            CeleryIntegration(),
            FastApiIntegration(),
            # ERROR logs become events, INFO and up are kept as breadcrumbs
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        environment=os.environ.get("APP_ENV", "local"),
        send_default_pii=False,
        traces_sample_rate=float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        before_send=before_send,
    )
