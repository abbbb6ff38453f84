"""Database connection and session management."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import URL, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def get_database_url() -> URL:
    """Build the PostgreSQL database URL from environment variables.

    Env vars:
      - DATABASE_HOST (required), DATABASE_PORT (default 5432)
      - DATABASE_USER (default app), APP_DB_PASSWORD (required)
      - DATABASE_NAME (default health_reminders)

    :returns: The database connection URL.
    :raises KeyError: If required environment variables are not set.
    """
    return URL.create(
        "postgresql+psycopg2",
        username=os.environ.get("DATABASE_USER", "app"),
        password=os.environ["APP_DB_PASSWORD"],
        host=os.environ["DATABASE_HOST"],
        port=int(os.environ.get("DATABASE_PORT", "5432")),
        database=os.environ.get("DATABASE_NAME", "health_reminders"),
    )


def create_db_engine(*, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the database.

    Pool size comes from DATABASE_POOL_SIZE (default 5); the API, the worker
    and the Dagster code location each hold their own pool.

    :param echo: If True, log all SQL statements.
    :returns: A configured SQLAlchemy engine.
    """
    return create_engine(
        get_database_url(),
        echo=echo,
        pool_pre_ping=True,
        pool_size=int(os.environ.get("DATABASE_POOL_SIZE", "5")),
    )


@dataclass
class _DatabaseState:
    engine: Engine | None = field(default=None)
    session_factory: sessionmaker[Session] | None = field(default=None)


_state = _DatabaseState()


def get_engine() -> Engine:
    """Get or create the process-wide engine."""
    if _state.engine is None:
        _state.engine = create_db_engine()
    return _state.engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the process-wide session factory.

    Objects stay usable after commit so endpoints can build responses from
    them once the session has closed.
    """
    if _state.session_factory is None:
        _state.session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _state.session_factory


@contextmanager
def get_session() -> Iterator[Session]:
    """Open a session scoped to one unit of work.

    Commits when the block completes and rolls back if it raises. Reminder
    operations only flush, so everything inside the block lands atomically.

    :yields: A database session.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()

    except Exception:
        session.rollback()
        raise

    finally:
        session.close()
