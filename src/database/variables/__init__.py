"""Database models and operations for tracked variables."""

from src.database.variables.models import GlobalVariable, UserVariable
from src.database.variables.operations import (
    ensure_owner_link,
    get_global_variable_by_id,
    get_user_variable,
)

__all__ = [
    # Models
    "GlobalVariable",
    "UserVariable",
    # Operations
    "ensure_owner_link",
    "get_global_variable_by_id",
    "get_user_variable",
]
