"""Tests for schedule change announcers."""

import unittest
from unittest.mock import MagicMock, patch
from uuid import uuid4

from src.reminders.announcer import (
    PROCESS_SCHEDULE_TASK_NAME,
    CeleryNotificationAnnouncer,
    NullNotificationAnnouncer,
    get_announcer,
)


class TestCeleryNotificationAnnouncer(unittest.TestCase):
    """Tests for CeleryNotificationAnnouncer."""

    @patch("src.reminders.announcer.celery_app")
    def test_sends_task_by_name(self, mock_celery_app: MagicMock) -> None:
        """Test that the schedule ID is sent as a string argument."""
        mock_celery_app.send_task.return_value = MagicMock(id="task-123")
        schedule_id = uuid4()

        CeleryNotificationAnnouncer().announce(schedule_id)

        mock_celery_app.send_task.assert_called_once_with(
            PROCESS_SCHEDULE_TASK_NAME,
            args=[str(schedule_id)],
        )

    @patch("src.reminders.announcer.celery_app")
    def test_custom_task_name(self, mock_celery_app: MagicMock) -> None:
        """Test sending a differently named task."""
        schedule_id = uuid4()

        CeleryNotificationAnnouncer("custom.task").announce(schedule_id)

        mock_celery_app.send_task.assert_called_once_with("custom.task", args=[str(schedule_id)])

    @patch("src.reminders.announcer.celery_app")
    def test_broker_errors_propagate(self, mock_celery_app: MagicMock) -> None:
        """Test that the announcer leaves error handling to its caller."""
        mock_celery_app.send_task.side_effect = ConnectionError("broker down")

        with self.assertRaises(ConnectionError):
            CeleryNotificationAnnouncer().announce(uuid4())

    def test_task_name_matches_registered_task(self) -> None:
        """Test that the announced name is the worker task's registered name."""
        from src.orchestration.tasks import process_single_schedule_task

        self.assertEqual(process_single_schedule_task.name, PROCESS_SCHEDULE_TASK_NAME)


class TestGetAnnouncer(unittest.TestCase):
    """Tests for get_announcer."""

    def test_enabled_returns_celery_announcer(self) -> None:
        """Test the enabled configuration."""
        self.assertIsInstance(get_announcer(True), CeleryNotificationAnnouncer)

    @patch("src.reminders.announcer.celery_app")
    def test_disabled_returns_null_announcer(self, mock_celery_app: MagicMock) -> None:
        """Test that the disabled announcer sends nothing."""
        announcer = get_announcer(False)

        self.assertIsInstance(announcer, NullNotificationAnnouncer)
        announcer.announce(uuid4())
        mock_celery_app.send_task.assert_not_called()


if __name__ == "__main__":
    unittest.main()
