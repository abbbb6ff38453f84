"""Database operations for tracked variables."""

from __future__ import annotations

import logging
import uuid as uuid_module

from sqlalchemy.orm import Session

from src.database.variables.models import GlobalVariable, UserVariable

logger = logging.getLogger(__name__)


def get_global_variable_by_id(
    session: Session,
    global_variable_id: uuid_module.UUID,
) -> GlobalVariable | None:
    """Get a global variable by ID.

    :param session: Database session.
    :param global_variable_id: Global variable ID.
    :returns: The variable or None if not found.
    """
    return session.query(GlobalVariable).filter(GlobalVariable.id == global_variable_id).first()


def get_user_variable(
    session: Session,
    user_variable_id: uuid_module.UUID,
    user_id: uuid_module.UUID,
) -> UserVariable | None:
    """Get a user variable owned by a user.

    :param session: Database session.
    :param user_variable_id: User variable ID.
    :param user_id: Owner's user ID.
    :returns: The user variable or None if not found or owned by someone else.
    """
    return (
        session.query(UserVariable)
        .filter(UserVariable.id == user_variable_id, UserVariable.user_id == user_id)
        .first()
    )


def ensure_owner_link(
    session: Session,
    user_id: uuid_module.UUID,
    global_variable: GlobalVariable,
) -> UserVariable:
    """Find or create the link between a user and a global variable.

    The single way reminder creation resolves its owner variable.

    :param session: Database session.
    :param user_id: The user's ID.
    :param global_variable: The variable being tracked.
    :returns: The existing or newly created user variable.
    """
    existing = (
        session.query(UserVariable)
        .filter(
            UserVariable.user_id == user_id,
            UserVariable.global_variable_id == global_variable.id,
        )
        .first()
    )
    if existing is not None:
        logger.debug(
            f"User already tracking variable: user_id={user_id}, "
            f"global_variable_id={global_variable.id}, user_variable_id={existing.id}"
        )
        return existing

    link = UserVariable(
        user_id=user_id,
        global_variable_id=global_variable.id,
        global_variable=global_variable,
    )
    session.add(link)
    session.flush()
    logger.info(
        f"Created user variable: id={link.id}, user_id={user_id}, "
        f"global_variable_id={global_variable.id}"
    )
    return link
