"""Celery orchestration for reminder schedule processing.

Tasks live in ``src.orchestration.tasks`` and are registered through the
app's ``include`` list, so importing the package does not pull in the
reminder core.
"""

from src.orchestration.celery_app import celery_app

__all__ = [
    "celery_app",
]
