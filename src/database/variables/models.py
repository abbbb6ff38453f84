"""SQLAlchemy ORM models for tracked variables."""

import uuid as uuid_module
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.core import Base


class GlobalVariable(Base):
    """ORM model for the global catalogue of trackable variables.

    Conditions, treatments and measurements shared by all users.
    """

    __tablename__ = "global_variables"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    variable_category_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    emoji: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        """Return string representation of the variable."""
        return f"<GlobalVariable(id={self.id}, name={self.name!r})>"


class UserVariable(Base):
    """ORM model linking a user to a global variable they track.

    Reminder schedules hang off this link (the "owner variable").
    """

    __tablename__ = "user_variables"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    global_variable_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("global_variables.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    global_variable: Mapped["GlobalVariable"] = relationship("GlobalVariable")

    __table_args__ = (
        UniqueConstraint("user_id", "global_variable_id", name="uq_user_variables_user_global"),
        Index("idx_user_variables_user_id", "user_id"),
    )

    @property
    def name(self) -> str:
        """Display name taken from the global variable."""
        return self.global_variable.name

    def __repr__(self) -> str:
        """Return string representation of the link."""
        return (
            f"<UserVariable(id={self.id}, user_id={self.user_id}, "
            f"global_variable_id={self.global_variable_id})>"
        )
