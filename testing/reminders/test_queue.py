"""Tests for the notification instance queue."""

import unittest
from datetime import UTC, date, datetime, time
from unittest.mock import patch
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError

from src.database.reminders.models import NotificationStatus, ReminderSchedule
from src.database.reminders.operations import create_reminder_schedule, get_pending_notifications
from src.reminders.exceptions import (
    AlreadyResolvedError,
    DependencyError,
    ReminderNotFoundError,
    ReminderValidationError,
)
from src.reminders.queue import NotificationInstanceQueue, render_template
from src.reminders.recurrence import Frequency, RecurrenceRule
from src.utils.dates import ensure_utc
from testing.database.sqlite import add_tracked_variable, create_test_session

NOW = datetime(2024, 1, 11, 12, 0, tzinfo=UTC)


class TestRenderTemplate(unittest.TestCase):
    """Tests for render_template."""

    def test_substitutes_every_placeholder(self) -> None:
        """Test that all placeholders are replaced."""
        self.assertEqual(
            render_template("{variableName}: log {variableName}", "Mood"),
            "Mood: log Mood",
        )

    def test_text_without_placeholder_is_unchanged(self) -> None:
        """Test that plain text passes through."""
        self.assertEqual(render_template("Drink water", "Mood"), "Drink water")

    def test_missing_template(self) -> None:
        """Test that no template renders as None."""
        self.assertIsNone(render_template(None, "Mood"))


class QueueTestCase(unittest.TestCase):
    """Shared fixture: one schedule for one tracked variable."""

    def setUp(self) -> None:
        """Create a database with a daily schedule."""
        self.session = create_test_session()
        self.user_id = uuid4()
        self.user_variable = add_tracked_variable(self.session, self.user_id)
        self.schedule = self._add_schedule(self.user_id, self.user_variable.id)
        self.queue = NotificationInstanceQueue(self.session)

    def tearDown(self) -> None:
        """Close the session."""
        self.session.close()

    def _add_schedule(
        self, user_id: UUID, user_variable_id: UUID, **kwargs: object
    ) -> ReminderSchedule:
        rule = RecurrenceRule(
            frequency=Frequency.DAILY,
            anchor_date=date(2024, 1, 1),
            time_of_day=time(9, 0),
            timezone="UTC",
        )
        return create_reminder_schedule(
            self.session,
            user_id,
            user_variable_id,
            rule,
            next_trigger_at=datetime(2024, 1, 12, 9, 0, tzinfo=UTC),
            **kwargs,  # type: ignore[arg-type]
        )


class TestEnqueueAndCancel(QueueTestCase):
    """Tests for enqueue_for and cancel_future_pending."""

    def test_enqueue_creates_pending_notification(self) -> None:
        """Test that enqueueing stores a pending notification for the owner."""
        trigger_at = datetime(2024, 1, 12, 9, 0, tzinfo=UTC)

        notification = self.queue.enqueue_for(self.schedule, trigger_at)

        self.assertEqual(notification.schedule_id, self.schedule.id)
        self.assertEqual(notification.user_id, self.user_id)
        self.assertEqual(notification.status, NotificationStatus.PENDING.value)
        self.assertEqual(ensure_utc(notification.trigger_at), trigger_at)
        self.assertIsNone(notification.completed_or_skipped_at)

    def test_enqueue_does_not_deduplicate(self) -> None:
        """Test that the queue itself creates duplicates when asked to."""
        trigger_at = datetime(2024, 1, 12, 9, 0, tzinfo=UTC)

        self.queue.enqueue_for(self.schedule, trigger_at)
        self.queue.enqueue_for(self.schedule, trigger_at)

        self.assertEqual(len(get_pending_notifications(self.session, self.schedule.id)), 2)

    def test_enqueue_wraps_database_errors(self) -> None:
        """Test that storage failures surface as DependencyError."""
        with (
            patch(
                "src.reminders.queue.create_notification",
                side_effect=OperationalError("INSERT", {}, Exception("db down")),
            ),
            self.assertRaises(DependencyError),
        ):
            self.queue.enqueue_for(self.schedule, NOW)

    def test_cancel_only_removes_future_pending(self) -> None:
        """Test that due and resolved notifications are kept."""
        due = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC))
        resolved = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 13, 9, 0, tzinfo=UTC))
        self.queue.resolve(resolved.id, self.user_id, NotificationStatus.SKIPPED, now=NOW)
        self.queue.enqueue_for(self.schedule, datetime(2024, 1, 12, 9, 0, tzinfo=UTC))

        cancelled = self.queue.cancel_future_pending(self.schedule.id, NOW)

        self.assertEqual(cancelled, 1)
        remaining = get_pending_notifications(self.session, self.schedule.id)
        self.assertEqual([n.id for n in remaining], [due.id])
        self.session.refresh(resolved)
        self.assertEqual(resolved.status, NotificationStatus.SKIPPED.value)

    def test_cancel_with_nothing_pending(self) -> None:
        """Test that cancelling an empty queue removes nothing."""
        self.assertEqual(self.queue.cancel_future_pending(self.schedule.id, NOW), 0)


class TestResolve(QueueTestCase):
    """Tests for resolve."""

    def setUp(self) -> None:
        """Add one due notification."""
        super().setUp()
        self.notification = self.queue.enqueue_for(
            self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
        )

    def test_complete_stores_time_and_details(self) -> None:
        """Test completing a notification with a logged value."""
        details = {"value": 400, "unit": "mg"}

        resolved = self.queue.resolve(
            self.notification.id,
            self.user_id,
            NotificationStatus.COMPLETED,
            details,
            now=NOW,
        )

        self.assertEqual(resolved.status, NotificationStatus.COMPLETED.value)
        self.assertEqual(ensure_utc(resolved.completed_or_skipped_at), NOW)
        self.assertEqual(resolved.log_details, details)

    def test_skip_accepts_plain_string_outcome(self) -> None:
        """Test that the outcome may be given as its string value."""
        resolved = self.queue.resolve(self.notification.id, self.user_id, "skipped", now=NOW)

        self.assertEqual(resolved.status, NotificationStatus.SKIPPED.value)
        self.assertIsNone(resolved.log_details)

    def test_second_resolve_is_rejected(self) -> None:
        """Test that resolving twice fails and keeps the first timestamp."""
        self.queue.resolve(
            self.notification.id, self.user_id, NotificationStatus.COMPLETED, now=NOW
        )
        later = datetime(2024, 1, 11, 13, 0, tzinfo=UTC)

        with self.assertRaises(AlreadyResolvedError) as context:
            self.queue.resolve(
                self.notification.id, self.user_id, NotificationStatus.COMPLETED, now=later
            )

        self.assertEqual(context.exception.status, NotificationStatus.COMPLETED.value)
        self.session.refresh(self.notification)
        self.assertEqual(ensure_utc(self.notification.completed_or_skipped_at), NOW)

    def test_skip_after_complete_is_rejected(self) -> None:
        """Test that a completed notification cannot be skipped."""
        self.queue.resolve(
            self.notification.id, self.user_id, NotificationStatus.COMPLETED, now=NOW
        )

        with self.assertRaises(AlreadyResolvedError):
            self.queue.resolve(self.notification.id, self.user_id, NotificationStatus.SKIPPED)

        self.session.refresh(self.notification)
        self.assertEqual(self.notification.status, NotificationStatus.COMPLETED.value)

    def test_pending_is_not_an_outcome(self) -> None:
        """Test that resolving back to pending is a validation error."""
        with self.assertRaises(ReminderValidationError):
            self.queue.resolve(self.notification.id, self.user_id, NotificationStatus.PENDING)

    def test_unknown_notification(self) -> None:
        """Test that a missing notification is not found."""
        with self.assertRaises(ReminderNotFoundError):
            self.queue.resolve(uuid4(), self.user_id, NotificationStatus.COMPLETED)

    def test_notification_of_another_user(self) -> None:
        """Test that another user's notification is not found."""
        with self.assertRaises(ReminderNotFoundError):
            self.queue.resolve(self.notification.id, uuid4(), NotificationStatus.COMPLETED)

        self.session.refresh(self.notification)
        self.assertTrue(self.notification.is_pending)

    def test_resolve_does_not_advance_schedule(self) -> None:
        """Test that the schedule's next trigger is left alone."""
        before = ensure_utc(self.schedule.next_trigger_at)

        self.queue.resolve(self.notification.id, self.user_id, "completed", now=NOW)

        self.session.refresh(self.schedule)
        self.assertEqual(ensure_utc(self.schedule.next_trigger_at), before)


class TestListPendingDue(QueueTestCase):
    """Tests for list_pending_due."""

    def test_lists_due_pending_with_rendered_templates(self) -> None:
        """Test that due notifications come back with display metadata."""
        self.schedule.notification_title_template = "{variableName} check"
        self.schedule.notification_message_template = "Did you take your {variableName} dose?"
        self.schedule.default_value = 400.0
        notification = self.queue.enqueue_for(
            self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
        )

        tasks = self.queue.list_pending_due(self.user_id, as_of=NOW)

        self.assertEqual(len(tasks), 1)
        task = tasks[0]
        self.assertEqual(task.notification_id, notification.id)
        self.assertEqual(task.schedule_id, self.schedule.id)
        self.assertEqual(task.user_variable_id, self.user_variable.id)
        self.assertEqual(task.global_variable_id, self.user_variable.global_variable_id)
        self.assertEqual(task.variable_name, "Magnesium")
        self.assertEqual(task.variable_category_id, "intake-and-interventions")
        self.assertEqual(task.emoji, "💊")
        self.assertEqual(task.title, "Magnesium check")
        self.assertEqual(task.message, "Did you take your Magnesium dose?")
        self.assertEqual(task.default_value, 400.0)
        self.assertEqual(task.status, NotificationStatus.PENDING)
        self.assertEqual(task.trigger_at, datetime(2024, 1, 11, 9, 0, tzinfo=UTC))
        self.assertIsNone(task.resolved_at)

    def test_title_defaults_to_variable_name(self) -> None:
        """Test that a schedule without a title template shows the variable name."""
        self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC))

        task = self.queue.list_pending_due(self.user_id, as_of=NOW)[0]

        self.assertEqual(task.title, "Magnesium")
        self.assertIsNone(task.message)

    def test_excludes_future_resolved_and_other_users(self) -> None:
        """Test that only the caller's due, pending notifications are listed."""
        oldest = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 10, 9, 0, tzinfo=UTC))
        due = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC))
        self.queue.enqueue_for(self.schedule, datetime(2024, 1, 12, 9, 0, tzinfo=UTC))
        done = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 9, 9, 0, tzinfo=UTC))
        self.queue.resolve(done.id, self.user_id, "completed", now=NOW)

        other_user = uuid4()
        other_variable = add_tracked_variable(self.session, other_user, name="Iron")
        other_schedule = self._add_schedule(other_user, other_variable.id)
        self.queue.enqueue_for(other_schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC))

        tasks = self.queue.list_pending_due(self.user_id, as_of=NOW)

        self.assertEqual([t.notification_id for t in tasks], [oldest.id, due.id])

    def test_includes_notification_due_exactly_now(self) -> None:
        """Test that the cut-off is inclusive."""
        self.queue.enqueue_for(self.schedule, NOW)

        self.assertEqual(len(self.queue.list_pending_due(self.user_id, as_of=NOW)), 1)

    def test_listing_does_not_change_state(self) -> None:
        """Test that listing is read-only."""
        notification = self.queue.enqueue_for(
            self.schedule, datetime(2024, 1, 11, 9, 0, tzinfo=UTC)
        )

        self.queue.list_pending_due(self.user_id, as_of=NOW)
        self.queue.list_pending_due(self.user_id, as_of=NOW)

        self.session.refresh(notification)
        self.assertTrue(notification.is_pending)


class TestListForDay(QueueTestCase):
    """Tests for list_for_day."""

    def test_lists_all_statuses_within_local_day(self) -> None:
        """Test that the day window follows the given timezone."""
        # 2024-01-11 in New York is 05:00Z to 05:00Z the next day
        before = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 4, 0, tzinfo=UTC))
        morning = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 14, 0, tzinfo=UTC))
        done = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 11, 6, 0, tzinfo=UTC))
        self.queue.resolve(done.id, self.user_id, "skipped", now=NOW)
        late = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 12, 4, 59, tzinfo=UTC))
        after = self.queue.enqueue_for(self.schedule, datetime(2024, 1, 12, 5, 0, tzinfo=UTC))

        tasks = self.queue.list_for_day(self.user_id, date(2024, 1, 11), "America/New_York")

        ids = [t.notification_id for t in tasks]
        self.assertEqual(ids, [done.id, morning.id, late.id])
        self.assertNotIn(before.id, ids)
        self.assertNotIn(after.id, ids)
        self.assertEqual(tasks[0].status, NotificationStatus.SKIPPED)
        self.assertEqual(tasks[0].resolved_at, NOW)

    def test_rejects_unknown_timezone(self) -> None:
        """Test that an unknown timezone is a validation error."""
        with self.assertRaises(ReminderValidationError):
            self.queue.list_for_day(self.user_id, date(2024, 1, 11), "Nowhere/Special")


if __name__ == "__main__":
    unittest.main()
