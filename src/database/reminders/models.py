"""SQLAlchemy ORM models for reminder schedules and notifications."""

import uuid as uuid_module
from datetime import UTC, date, datetime, time
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.core import Base
from src.database.variables.models import UserVariable
from src.reminders.recurrence import Frequency, RecurrenceRule
from src.reminders.rrule import to_rrule_string


class NotificationStatus(StrEnum):
    """Status of a reminder notification."""

    PENDING = "pending"  # Awaiting user action
    COMPLETED = "completed"  # User logged the value
    SKIPPED = "skipped"  # User dismissed it


class ReminderSchedule(Base):
    """ORM model for reminder schedules.

    Stores the recurrence rule as structured columns. ``next_trigger_at`` is
    NULL while the schedule is inactive or once the rule has no future
    occurrences.
    """

    __tablename__ = "reminder_schedules"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    user_variable_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("user_variables.id"),
        nullable=False,
    )

    # Recurrence rule
    frequency: Mapped[str] = mapped_column(String(10), nullable=False)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    by_weekday: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    by_month_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    anchor_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    time_of_day: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    next_trigger_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    default_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    notification_title_template: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notification_message_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    user_variable: Mapped["UserVariable"] = relationship("UserVariable")
    notifications: Mapped[list["NotificationInstance"]] = relationship(
        "NotificationInstance",
        back_populates="schedule",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_reminder_schedules_next_trigger", "next_trigger_at", "is_active"),
        Index("idx_reminder_schedules_user_id", "user_id"),
        Index("idx_reminder_schedules_user_variable_id", "user_variable_id"),
    )

    @property
    def rule(self) -> RecurrenceRule:
        """Rebuild the recurrence rule from the stored columns."""
        return RecurrenceRule(
            frequency=Frequency(self.frequency),
            anchor_date=self.anchor_date,
            time_of_day=self.time_of_day,
            timezone=self.timezone,
            interval=self.interval,
            by_weekday=frozenset(self.by_weekday or ()),
            by_month_day=self.by_month_day,
            end_date=self.end_date,
        )

    @rule.setter
    def rule(self, rule: RecurrenceRule) -> None:
        self.frequency = rule.frequency.value
        self.interval = rule.interval
        self.by_weekday = sorted(int(day) for day in rule.by_weekday) or None
        self.by_month_day = rule.by_month_day
        self.anchor_date = rule.anchor_date
        self.end_date = rule.end_date
        self.time_of_day = rule.time_of_day
        self.timezone = rule.timezone

    @property
    def rrule(self) -> str:
        """The rule rendered as an RRULE string."""
        return to_rrule_string(self.rule)

    def __repr__(self) -> str:
        """Return string representation of the schedule."""
        return (
            f"<ReminderSchedule(id={self.id}, frequency={self.frequency}, "
            f"active={self.is_active}, next={self.next_trigger_at})>"
        )


class NotificationInstance(Base):
    """ORM model for materialised reminder notifications.

    One trackable occurrence of a schedule awaiting user action. Moves from
    pending to completed or skipped exactly once.
    """

    __tablename__ = "reminder_notifications"

    id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid_module.uuid4,
    )
    schedule_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("reminder_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid_module.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    trigger_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING.value,
    )
    completed_or_skipped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    log_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    schedule: Mapped["ReminderSchedule"] = relationship(
        "ReminderSchedule",
        back_populates="notifications",
    )

    __table_args__ = (
        Index("idx_reminder_notifications_status_trigger", "status", "trigger_at"),
        Index("idx_reminder_notifications_schedule_id", "schedule_id"),
        Index("idx_reminder_notifications_user_id", "user_id"),
    )

    @property
    def is_pending(self) -> bool:
        """Check if the notification still awaits user action."""
        return self.status == NotificationStatus.PENDING.value

    def __repr__(self) -> str:
        """Return string representation of the notification."""
        return (
            f"<NotificationInstance(id={self.id}, schedule_id={self.schedule_id}, "
            f"status={self.status}, trigger_at={self.trigger_at})>"
        )
