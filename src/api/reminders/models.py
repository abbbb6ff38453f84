"""Pydantic models for reminders API endpoints."""

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.database.reminders.models import NotificationStatus
from src.reminders.rrule import TIME_OF_DAY_PATTERN

_TIME_OF_DAY_REGEX = TIME_OF_DAY_PATTERN.pattern


class ReminderScheduleResponse(BaseModel):
    """Response model for reminder schedules."""

    id: UUID = Field(..., description="Schedule ID")
    user_variable_id: UUID = Field(..., description="Tracked variable the reminder belongs to")
    variable_name: str = Field(..., description="Display name of the tracked variable")
    rrule: str = Field(..., description="Recurrence rule (RFC 5545 RRULE subset)")
    time_of_day: str = Field(..., description="Local trigger time (HH:mm)")
    timezone: str = Field(..., description="IANA timezone of the trigger time")
    anchor_date: date = Field(..., description="First possible occurrence")
    end_date: date | None = Field(None, description="Last possible occurrence date")
    is_active: bool = Field(..., description="Whether the schedule is active")
    next_trigger_at: datetime | None = Field(None, description="Next trigger time (UTC)")
    default_value: float | None = Field(None, description="Value pre-filled when logging")
    notification_title_template: str | None = Field(None, description="Title template")
    notification_message_template: str | None = Field(None, description="Message template")
    created_at: datetime = Field(..., description="When the schedule was created")
    updated_at: datetime = Field(..., description="When the schedule was last changed")


class CreateReminderRequest(BaseModel):
    """Request model for creating a reminder.

    Exactly one of ``user_variable_id`` and ``global_variable_id`` is required.
    With a global variable the caller is linked to it first.
    """

    user_variable_id: UUID | None = Field(None, description="Existing tracked variable")
    global_variable_id: UUID | None = Field(None, description="Variable from the global catalogue")
    rrule: str = Field(..., min_length=1, description="Recurrence rule, e.g. FREQ=DAILY")
    time_of_day: str = Field(..., pattern=_TIME_OF_DAY_REGEX, description="Local time (HH:mm)")
    timezone: str = Field(..., min_length=1, description="IANA timezone, e.g. Europe/London")
    anchor_date: date | None = Field(None, description="First possible occurrence (default today)")
    end_date: date | None = Field(None, description="Last possible occurrence date")
    is_active: bool = Field(True, description="Whether the schedule starts active")
    default_value: float | None = Field(None, description="Value pre-filled when logging")
    notification_title_template: str | None = Field(None, max_length=255)
    notification_message_template: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_variable_reference(self) -> "CreateReminderRequest":
        """Ensure exactly one variable reference is supplied."""
        if (self.user_variable_id is None) == (self.global_variable_id is None):
            raise ValueError("Provide exactly one of user_variable_id or global_variable_id")
        return self


class CreateDefaultReminderRequest(BaseModel):
    """Request model for creating the default daily reminder for a variable."""

    global_variable_id: UUID = Field(..., description="Variable from the global catalogue")
    timezone: str | None = Field(None, description="IANA timezone (default from settings)")


class UpdateReminderRequest(BaseModel):
    """Request model for updating a reminder.

    Omitted fields keep their current value. An explicit null clears the end
    date, default value and templates. Any rule field triggers a rebuild of
    the recurrence rule from the merged values.
    """

    rrule: str | None = Field(None, min_length=1, description="New recurrence rule")
    time_of_day: str | None = Field(None, pattern=_TIME_OF_DAY_REGEX, description="New local time")
    timezone: str | None = Field(None, min_length=1, description="New IANA timezone")
    anchor_date: date | None = Field(None, description="New anchor date")
    end_date: date | None = Field(None, description="New end date")
    is_active: bool | None = Field(None, description="New active flag")
    default_value: float | None = Field(None, description="New default logging value")
    notification_title_template: str | None = Field(None, max_length=255)
    notification_message_template: str | None = Field(None, max_length=1000)

    @property
    def changes_rule(self) -> bool:
        """Check whether any recurrence field was supplied."""
        return self.clears_end_date or any(
            value is not None
            for value in (
                self.rrule,
                self.time_of_day,
                self.timezone,
                self.anchor_date,
                self.end_date,
            )
        )

    @property
    def clears_end_date(self) -> bool:
        """Check whether the end date was sent as an explicit null."""
        return "end_date" in self.model_fields_set and self.end_date is None


class QueryRemindersResponse(BaseModel):
    """Response model for listing reminders."""

    results: list[ReminderScheduleResponse] = Field(..., description="Matching schedules")


class OccurrencesResponse(BaseModel):
    """Response model for a schedule's upcoming occurrences."""

    schedule_id: UUID = Field(..., description="Schedule ID")
    occurrences: list[datetime] = Field(..., description="Occurrences in the window (UTC)")


class NotificationTaskResponse(BaseModel):
    """Response model for a notification with its display metadata."""

    notification_id: UUID = Field(..., description="Notification ID")
    schedule_id: UUID = Field(..., description="Parent schedule ID")
    user_variable_id: UUID = Field(..., description="Tracked variable ID")
    global_variable_id: UUID = Field(..., description="Global variable ID")
    variable_name: str = Field(..., description="Display name of the variable")
    variable_category_id: str | None = Field(None, description="Variable category")
    emoji: str | None = Field(None, description="Variable emoji")
    trigger_at: datetime = Field(..., description="When the notification became due (UTC)")
    title: str = Field(..., description="Rendered notification title")
    message: str | None = Field(None, description="Rendered notification message")
    default_value: float | None = Field(None, description="Value pre-filled when logging")
    status: NotificationStatus = Field(..., description="Current status")
    resolved_at: datetime | None = Field(None, description="When completed or skipped")


class NotificationTasksResponse(BaseModel):
    """Response model for listing notifications."""

    results: list[NotificationTaskResponse] = Field(..., description="Notifications")


class ResolveNotificationRequest(BaseModel):
    """Request model for completing or skipping a notification."""

    outcome: Literal["completed", "skipped"] = Field(..., description="Resolution outcome")
    log_details: dict[str, Any] | None = Field(
        None,
        description="Structured payload, e.g. the logged measurement",
    )


class NotificationResponse(BaseModel):
    """Response model for a single notification."""

    id: UUID = Field(..., description="Notification ID")
    schedule_id: UUID = Field(..., description="Parent schedule ID")
    status: NotificationStatus = Field(..., description="Current status")
    trigger_at: datetime = Field(..., description="When the notification became due (UTC)")
    completed_or_skipped_at: datetime | None = Field(None, description="When resolved")
    log_details: dict[str, Any] | None = Field(None, description="Stored payload")
