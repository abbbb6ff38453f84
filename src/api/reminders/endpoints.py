"""API endpoints for managing reminder schedules and notifications."""

import logging
import time
from dataclasses import replace
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_user_id
from src.api.reminders.models import (
    CreateDefaultReminderRequest,
    CreateReminderRequest,
    NotificationResponse,
    NotificationTaskResponse,
    NotificationTasksResponse,
    OccurrencesResponse,
    QueryRemindersResponse,
    ReminderScheduleResponse,
    ResolveNotificationRequest,
    UpdateReminderRequest,
)
from src.database.connection import get_session
from src.database.reminders import NotificationInstance, NotificationStatus, ReminderSchedule
from src.reminders.announcer import get_announcer
from src.reminders.config import get_reminder_settings
from src.reminders.exceptions import (
    AlreadyResolvedError,
    DependencyError,
    ReminderError,
    ReminderNotFoundError,
    ReminderValidationError,
    ScheduleSyncError,
)
from src.reminders.manager import ScheduleManager
from src.reminders.queue import NotificationInstanceQueue, PendingNotificationTask
from src.reminders.recurrence import RecurrenceRule
from src.reminders.rrule import format_time_of_day, parse_rrule, to_rrule_string
from src.utils.dates import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])

# Update request fields mapped to ScheduleManager.update arguments
_METADATA_ARGUMENTS = {
    "is_active": "is_active",
    "default_value": "default_value",
    "notification_title_template": "title_template",
    "notification_message_template": "message_template",
}


def _to_http_exception(error: ReminderError) -> HTTPException:
    """Map a reminder error to an HTTP error.

    :param error: The error raised by the reminder core.
    :returns: HTTPException with a matching status code.
    """
    if isinstance(error, ReminderValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, ReminderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, AlreadyResolvedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, ScheduleSyncError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder saved but its notifications could not be updated; "
            "they will be repaired automatically",
        )
    if isinstance(error, DependencyError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder storage is temporarily unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected reminder error",
    )


def _build_manager(session: Session) -> ScheduleManager:
    settings = get_reminder_settings()
    return ScheduleManager(session, announcer=get_announcer(settings.announce_enabled))


def _today_in(timezone: str) -> date:
    """Get today's date in a timezone.

    :raises ReminderValidationError: If the timezone is unknown.
    """
    try:
        return datetime.now(ZoneInfo(timezone)).date()
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ReminderValidationError(f"Unknown timezone: {timezone!r}") from e


def _has_dtstart(text: str) -> bool:
    return "DTSTART" in text.upper()


def _schedule_to_response(schedule: ReminderSchedule) -> ReminderScheduleResponse:
    """Convert a schedule model to response.

    :param schedule: The database model.
    :returns: API response model.
    """
    rule = schedule.rule
    return ReminderScheduleResponse(
        id=schedule.id,
        user_variable_id=schedule.user_variable_id,
        variable_name=schedule.user_variable.name,
        rrule=to_rrule_string(rule),
        time_of_day=format_time_of_day(rule.time_of_day),
        timezone=rule.timezone,
        anchor_date=rule.anchor_date,
        end_date=rule.end_date,
        is_active=schedule.is_active,
        next_trigger_at=(
            ensure_utc(schedule.next_trigger_at) if schedule.next_trigger_at is not None else None
        ),
        default_value=schedule.default_value,
        notification_title_template=schedule.notification_title_template,
        notification_message_template=schedule.notification_message_template,
        created_at=ensure_utc(schedule.created_at),
        updated_at=ensure_utc(schedule.updated_at),
    )


def _task_to_response(task: PendingNotificationTask) -> NotificationTaskResponse:
    return NotificationTaskResponse(
        notification_id=task.notification_id,
        schedule_id=task.schedule_id,
        user_variable_id=task.user_variable_id,
        global_variable_id=task.global_variable_id,
        variable_name=task.variable_name,
        variable_category_id=task.variable_category_id,
        emoji=task.emoji,
        trigger_at=task.trigger_at,
        title=task.title,
        message=task.message,
        default_value=task.default_value,
        status=task.status,
        resolved_at=task.resolved_at,
    )


def _notification_to_response(notification: NotificationInstance) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        schedule_id=notification.schedule_id,
        status=NotificationStatus(notification.status),
        trigger_at=ensure_utc(notification.trigger_at),
        completed_or_skipped_at=(
            ensure_utc(notification.completed_or_skipped_at)
            if notification.completed_or_skipped_at is not None
            else None
        ),
        log_details=notification.log_details,
    )


def _rule_for_update(request: UpdateReminderRequest, current: RecurrenceRule) -> RecurrenceRule:
    """Merge the requested rule fields over the current rule.

    :param request: The update request.
    :param current: The schedule's current rule.
    :returns: The rebuilt rule.
    """
    text = request.rrule if request.rrule is not None else to_rrule_string(current)
    anchor_date = request.anchor_date
    if anchor_date is None and not _has_dtstart(text):
        anchor_date = current.anchor_date

    rule = parse_rrule(
        text,
        time_of_day=request.time_of_day or current.time_of_day,
        timezone=request.timezone or current.timezone,
        anchor_date=anchor_date,
        end_date=request.end_date,
    )

    # An explicit null end date removes the end, including one carried by UNTIL
    if request.clears_end_date and rule.end_date is not None:
        rule = replace(rule, end_date=None)
    return rule


def _metadata_changes(request: UpdateReminderRequest) -> dict[str, Any]:
    """Collect the metadata fields the caller sent.

    Omitted fields are left out so they keep their value; an explicit null
    clears the field. A null active flag is ignored.
    """
    changes = {
        argument: getattr(request, field_name)
        for field_name, argument in _METADATA_ARGUMENTS.items()
        if field_name in request.model_fields_set
    }
    if changes.get("is_active", True) is None:
        del changes["is_active"]
    return changes


@router.post(
    "",
    response_model=ReminderScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create reminder",
)
def create_reminder(
    request: CreateReminderRequest,
    user_id: UUID = Depends(get_user_id),
) -> ReminderScheduleResponse:
    """Create a new reminder schedule.

    Creates the schedule and materialises its first pending notification.
    With a global variable reference the caller starts tracking it first.
    """
    start = time.perf_counter()
    logger.info(
        f"Create reminder: user_id={user_id}, rrule={request.rrule!r}, "
        f"time_of_day={request.time_of_day}, timezone={request.timezone}"
    )

    try:
        anchor_date = request.anchor_date
        if anchor_date is None and not _has_dtstart(request.rrule):
            anchor_date = _today_in(request.timezone)

        rule = parse_rrule(
            request.rrule,
            time_of_day=request.time_of_day,
            timezone=request.timezone,
            anchor_date=anchor_date,
            end_date=request.end_date,
        )

        with get_session() as session:
            manager = _build_manager(session)
            options = {
                "is_active": request.is_active,
                "default_value": request.default_value,
                "title_template": request.notification_title_template,
                "message_template": request.notification_message_template,
            }
            if request.user_variable_id is not None:
                schedule = manager.create(user_id, request.user_variable_id, rule, **options)
            else:
                schedule = manager.create_for_variable(
                    user_id,
                    request.global_variable_id,  # type: ignore[arg-type]
                    rule,
                    **options,
                )
            response = _schedule_to_response(schedule)

    except ReminderError as e:
        logger.warning(f"Create reminder failed: user_id={user_id}, error={e}")
        raise _to_http_exception(e) from e

    manager.announce_pending()

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Create reminder complete: id={response.id}, "
        f"next_trigger_at={response.next_trigger_at}, elapsed={elapsed_ms:.0f}ms"
    )

    return response


@router.post(
    "/default",
    response_model=ReminderScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create default reminder",
)
def create_default_reminder(
    request: CreateDefaultReminderRequest,
    user_id: UUID = Depends(get_user_id),
) -> ReminderScheduleResponse:
    """Create the standard daily reminder for a variable the caller starts tracking."""
    start = time.perf_counter()
    logger.info(
        f"Create default reminder: user_id={user_id}, "
        f"global_variable_id={request.global_variable_id}"
    )

    try:
        with get_session() as session:
            manager = _build_manager(session)
            schedule = manager.create_default(
                user_id,
                request.global_variable_id,
                request.timezone,
            )
            response = _schedule_to_response(schedule)

    except ReminderError as e:
        logger.warning(f"Create default reminder failed: user_id={user_id}, error={e}")
        raise _to_http_exception(e) from e

    manager.announce_pending()

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Create default reminder complete: id={response.id}, elapsed={elapsed_ms:.0f}ms")

    return response


@router.get(
    "",
    response_model=QueryRemindersResponse,
    summary="List reminders",
)
def list_reminders(
    user_variable_id: UUID | None = Query(None, description="Only this tracked variable"),
    include_inactive: bool = Query(True, description="Include deactivated schedules"),
    user_id: UUID = Depends(get_user_id),
) -> QueryRemindersResponse:
    """List the caller's reminder schedules."""
    start = time.perf_counter()
    logger.info(
        f"List reminders: user_id={user_id}, user_variable_id={user_variable_id}, "
        f"include_inactive={include_inactive}"
    )

    try:
        with get_session() as session:
            schedules = _build_manager(session).list_for_user(
                user_id,
                user_variable_id=user_variable_id,
                include_inactive=include_inactive,
            )
            results = [_schedule_to_response(s) for s in schedules]

    except ReminderError as e:
        raise _to_http_exception(e) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"List reminders complete: found={len(results)}, elapsed={elapsed_ms:.0f}ms")

    return QueryRemindersResponse(results=results)


@router.get(
    "/notifications/due",
    response_model=NotificationTasksResponse,
    summary="List due notifications",
)
def list_due_notifications(
    as_of: datetime | None = Query(None, description="Cut-off time (default now)"),
    user_id: UUID = Depends(get_user_id),
) -> NotificationTasksResponse:
    """List the caller's pending notifications that are due."""
    start = time.perf_counter()

    try:
        with get_session() as session:
            tasks = NotificationInstanceQueue(session).list_pending_due(user_id, as_of)
            results = [_task_to_response(task) for task in tasks]

    except ReminderError as e:
        raise _to_http_exception(e) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"List due notifications complete: user_id={user_id}, found={len(results)}, "
        f"elapsed={elapsed_ms:.0f}ms"
    )

    return NotificationTasksResponse(results=results)


@router.get(
    "/notifications/day",
    response_model=NotificationTasksResponse,
    summary="List notifications for a day",
)
def list_day_notifications(
    day: date = Query(..., description="Local calendar day"),
    timezone: str = Query(..., description="IANA timezone the day is expressed in"),
    user_id: UUID = Depends(get_user_id),
) -> NotificationTasksResponse:
    """List every notification on a local calendar day (timeline view)."""
    try:
        with get_session() as session:
            tasks = NotificationInstanceQueue(session).list_for_day(user_id, day, timezone)
            results = [_task_to_response(task) for task in tasks]

    except ReminderError as e:
        raise _to_http_exception(e) from e

    logger.info(f"List day notifications: user_id={user_id}, day={day}, found={len(results)}")
    return NotificationTasksResponse(results=results)


@router.post(
    "/notifications/{notification_id}/resolve",
    response_model=NotificationResponse,
    summary="Complete or skip a notification",
)
def resolve_notification_endpoint(
    notification_id: UUID,
    request: ResolveNotificationRequest,
    user_id: UUID = Depends(get_user_id),
) -> NotificationResponse:
    """Mark a pending notification as completed or skipped.

    A notification can only be resolved once; a second attempt returns 409.
    """
    start = time.perf_counter()
    logger.info(
        f"Resolve notification: id={notification_id}, user_id={user_id}, outcome={request.outcome}"
    )

    try:
        with get_session() as session:
            notification = NotificationInstanceQueue(session).resolve(
                notification_id,
                user_id,
                NotificationStatus(request.outcome),
                request.log_details,
                now=datetime.now(UTC),
            )
            response = _notification_to_response(notification)

    except ReminderError as e:
        logger.warning(f"Resolve notification failed: id={notification_id}, error={e}")
        raise _to_http_exception(e) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Resolve notification complete: id={notification_id}, elapsed={elapsed_ms:.0f}ms")

    return response


@router.get(
    "/{schedule_id}",
    response_model=ReminderScheduleResponse,
    summary="Get reminder",
)
def get_reminder(
    schedule_id: UUID,
    user_id: UUID = Depends(get_user_id),
) -> ReminderScheduleResponse:
    """Get a specific reminder schedule by ID."""
    start = time.perf_counter()
    logger.info(f"Get reminder: id={schedule_id}")

    try:
        with get_session() as session:
            response = _schedule_to_response(_build_manager(session).get(schedule_id, user_id))

    except ReminderError as e:
        raise _to_http_exception(e) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Get reminder complete: id={schedule_id}, elapsed={elapsed_ms:.0f}ms")

    return response


@router.get(
    "/{schedule_id}/occurrences",
    response_model=OccurrencesResponse,
    summary="Preview reminder occurrences",
)
def preview_reminder(
    schedule_id: UUID,
    start: datetime = Query(..., description="Window start (inclusive)"),
    end: datetime = Query(..., description="Window end (exclusive)"),
    user_id: UUID = Depends(get_user_id),
) -> OccurrencesResponse:
    """List when a reminder would fire within a window, without creating notifications."""
    settings = get_reminder_settings()

    try:
        with get_session() as session:
            occurrences = _build_manager(session).preview(
                schedule_id,
                user_id,
                start,
                end,
                max_days=settings.max_window_days,
            )

    except ReminderError as e:
        raise _to_http_exception(e) from e

    logger.info(f"Preview reminder: id={schedule_id}, occurrences={len(occurrences)}")
    return OccurrencesResponse(schedule_id=schedule_id, occurrences=occurrences)


@router.patch(
    "/{schedule_id}",
    response_model=ReminderScheduleResponse,
    summary="Update reminder",
)
def update_reminder(
    schedule_id: UUID,
    request: UpdateReminderRequest,
    user_id: UUID = Depends(get_user_id),
) -> ReminderScheduleResponse:
    """Update a reminder's rule or metadata.

    Future pending notifications are regenerated from the new rule. When the
    schedule is saved but the regeneration fails the change is kept and 503
    is returned; the background sweep repairs the notifications.
    """
    start = time.perf_counter()
    logger.info(f"Update reminder: id={schedule_id}, user_id={user_id}")

    sync_error: ScheduleSyncError | None = None
    try:
        with get_session() as session:
            manager = _build_manager(session)

            rule = None
            if request.changes_rule:
                rule = _rule_for_update(request, manager.get(schedule_id, user_id).rule)

            try:
                schedule = manager.update(
                    schedule_id,
                    user_id,
                    rule,
                    **_metadata_changes(request),
                )
                response = _schedule_to_response(schedule)
            except ScheduleSyncError as e:
                # Keep the saved schedule row
                session.commit()
                sync_error = e

    except ReminderError as e:
        logger.warning(f"Update reminder failed: id={schedule_id}, error={e}")
        raise _to_http_exception(e) from e

    if sync_error is not None:
        logger.error(f"Update reminder partially applied: id={schedule_id}, error={sync_error}")
        raise _to_http_exception(sync_error) from sync_error

    manager.announce_pending()

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Update reminder complete: id={schedule_id}, "
        f"next_trigger_at={response.next_trigger_at}, elapsed={elapsed_ms:.0f}ms"
    )

    return response


@router.post(
    "/{schedule_id}/deactivate",
    response_model=ReminderScheduleResponse,
    summary="Deactivate reminder",
)
def deactivate_reminder(
    schedule_id: UUID,
    user_id: UUID = Depends(get_user_id),
) -> ReminderScheduleResponse:
    """Stop a reminder from triggering.

    The schedule and its past notifications are kept for history.
    """
    logger.info(f"Deactivate reminder: id={schedule_id}, user_id={user_id}")

    try:
        with get_session() as session:
            manager = _build_manager(session)
            schedule = manager.deactivate(schedule_id, user_id)
            response = _schedule_to_response(schedule)

    except ReminderError as e:
        raise _to_http_exception(e) from e

    manager.announce_pending()
    return response


@router.delete(
    "/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete reminder",
)
def delete_reminder(
    schedule_id: UUID,
    user_id: UUID = Depends(get_user_id),
) -> None:
    """Delete a reminder schedule and all of its notifications."""
    start = time.perf_counter()
    logger.info(f"Delete reminder: id={schedule_id}, user_id={user_id}")

    try:
        with get_session() as session:
            _build_manager(session).delete(schedule_id, user_id)

    except ReminderError as e:
        raise _to_http_exception(e) from e

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Delete reminder complete: id={schedule_id}, elapsed={elapsed_ms:.0f}ms")
