"""Logging configuration for the reminder service processes."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that must propagate to the root handler
PROPAGATING_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "celery", "dagster")

# Chatty loggers kept at INFO or above regardless of LOG_LEVEL
QUIET_LOGGERS = ("urllib3", "httpx", "kombu", "amqp", "sqlalchemy.pool")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").strip().lower() == "true"


def _parse_level(level: str) -> int:
    """Convert a level name into its numeric value.

    :param level: Level name, case insensitive.
    :returns: The numeric logging level.
    :raises ValueError: If the name is not a logging level.
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    return numeric_level


def configure_logging(level_name: str | None = None) -> None:
    """Configure process-wide logging to stdout.

    Called once at the entry point of each process (API, Celery worker,
    Dagster code location).

    Env vars:
      - LOG_LEVEL: DEBUG/INFO/WARNING/ERROR/CRITICAL (default INFO)
      - LOG_UVICORN_ACCESS: true/false (default false)
      - LOG_SQL: true/false, echo SQL statements (default false)

    :param level_name: Explicit level, overriding LOG_LEVEL.
    """
    level_name = level_name or os.environ.get("LOG_LEVEL", "INFO")
    level = _parse_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(handler)

    for name in PROPAGATING_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True

    if not _env_flag("LOG_UVICORN_ACCESS"):
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if _env_flag("LOG_SQL") else logging.WARNING
    )

    logging.getLogger(__name__).info(f"Logging configured: level={level_name.upper()}")
