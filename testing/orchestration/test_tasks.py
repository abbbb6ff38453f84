"""Tests for Celery reminder tasks."""

import os

# Set required environment variables before importing orchestration modules
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch
from uuid import uuid4

from src.orchestration.tasks import process_single_schedule_task
from src.reminders.exceptions import DependencyError, ReminderNotFoundError


class TestProcessSingleScheduleTask(unittest.TestCase):
    """Tests for process_single_schedule_task."""

    def setUp(self) -> None:
        """Patch the session and manager used by the task."""
        session_patcher = patch("src.orchestration.tasks.get_session")
        manager_patcher = patch("src.orchestration.tasks.ScheduleManager")
        mock_get_session = session_patcher.start()
        self.mock_manager_class = manager_patcher.start()
        self.addCleanup(session_patcher.stop)
        self.addCleanup(manager_patcher.stop)

        self.mock_session = MagicMock()
        mock_get_session.return_value.__enter__ = MagicMock(return_value=self.mock_session)
        mock_get_session.return_value.__exit__ = MagicMock(return_value=False)
        self.mock_manager = self.mock_manager_class.return_value

    def _schedule(self, next_trigger_at: datetime | None, is_active: bool = True) -> MagicMock:
        return MagicMock(id=uuid4(), is_active=is_active, next_trigger_at=next_trigger_at)

    def test_syncs_schedule_that_is_not_due(self) -> None:
        """Test that a future schedule is only synced."""
        next_trigger = datetime.now(UTC) + timedelta(hours=2)
        schedule = self._schedule(next_trigger)
        self.mock_manager.get_by_id.return_value = schedule
        self.mock_manager.sync.return_value = False

        result = process_single_schedule_task.run(str(schedule.id))

        self.mock_manager_class.assert_called_once_with(self.mock_session)
        self.mock_manager.get_by_id.assert_called_once_with(schedule.id)
        self.mock_manager.advance.assert_not_called()
        self.mock_manager.sync.assert_called_once()
        self.assertEqual(
            result,
            {
                "found": True,
                "repaired": False,
                "advanced": False,
                "next_trigger_at": next_trigger.isoformat(),
            },
        )

    def test_advances_due_schedule_before_sync(self) -> None:
        """Test that an already due schedule is advanced first."""
        schedule = self._schedule(datetime.now(UTC) - timedelta(minutes=1))
        self.mock_manager.get_by_id.return_value = schedule
        self.mock_manager.sync.return_value = False

        calls: list[str] = []
        self.mock_manager.advance.side_effect = lambda *args, **kwargs: calls.append("advance")
        self.mock_manager.sync.side_effect = lambda *args, **kwargs: calls.append("sync") and False

        result = process_single_schedule_task.run(str(schedule.id))

        self.assertEqual(calls, ["advance", "sync"])
        self.assertTrue(result["advanced"])

    def test_inactive_schedule_is_not_advanced(self) -> None:
        """Test that an inactive schedule is never promoted."""
        schedule = self._schedule(datetime.now(UTC) - timedelta(minutes=1), is_active=False)
        self.mock_manager.get_by_id.return_value = schedule
        self.mock_manager.sync.return_value = True

        result = process_single_schedule_task.run(str(schedule.id))

        self.mock_manager.advance.assert_not_called()
        self.assertTrue(result["repaired"])

    def test_schedule_without_trigger(self) -> None:
        """Test a schedule whose rule is exhausted."""
        schedule = self._schedule(None)
        self.mock_manager.get_by_id.return_value = schedule
        self.mock_manager.sync.return_value = False

        result = process_single_schedule_task.run(str(schedule.id))

        self.mock_manager.advance.assert_not_called()
        self.assertIsNone(result["next_trigger_at"])

    def test_deleted_schedule_is_a_no_op(self) -> None:
        """Test that a schedule deleted before processing is ignored."""
        schedule_id = uuid4()
        self.mock_manager.get_by_id.side_effect = ReminderNotFoundError("schedule", schedule_id)

        result = process_single_schedule_task.run(str(schedule_id))

        self.assertFalse(result["found"])
        self.mock_manager.sync.assert_not_called()

    def test_dependency_errors_propagate_for_retry(self) -> None:
        """Test that database failures are re-raised so Celery can retry."""
        schedule = self._schedule(datetime.now(UTC) + timedelta(hours=1))
        self.mock_manager.get_by_id.return_value = schedule
        self.mock_manager.sync.side_effect = DependencyError("db down")

        with self.assertRaises(DependencyError):
            process_single_schedule_task.run(str(schedule.id))

    def test_task_is_registered_with_retry_policy(self) -> None:
        """Test task name and retry configuration."""
        self.assertEqual(
            process_single_schedule_task.name,
            "src.orchestration.tasks.process_single_schedule_task",
        )
        self.assertEqual(process_single_schedule_task.max_retries, 3)
        self.assertIn(Exception, process_single_schedule_task.autoretry_for)


if __name__ == "__main__":
    unittest.main()
