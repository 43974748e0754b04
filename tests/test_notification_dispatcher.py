import os
import sys
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, os.path.abspath(os.path.join(__file__, "..", "..", "source")))

from entities.issue import Issue
from notifiers.notification_dispatcher import NotificationDispatcher
from utils.checksum import compute_identity


def make_issue() -> Issue:
    issue = Issue({
        "cell_name": "cell",
        "host_name": "web1",
        "object_name": "http",
        "severity": 4,
    })
    issue.set_attributes({"host": "web1", "object": "http", "mc_location": "dc1"})
    issue.recalculate_identity()
    return issue


class TestNotificationDispatcher(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.notification_store = MagicMock()
        self.notification_store.insert = AsyncMock()

    def make_dispatcher(self, command: list[str], timeout_sec: float = 10) -> NotificationDispatcher:
        return NotificationDispatcher(
            config=NotificationDispatcher.Config(command=command, timeout_sec=timeout_sec, kill_grace_sec=2),
            context=NotificationDispatcher.Context(notification_store=self.notification_store),
        )

    def test_build_command(self) -> None:
        dispatcher = self.make_dispatcher(["msend", "-n", "{cell_name}", "-r", "{severity}", "-b", "{slot_set}"])

        self.assertEqual(
            dispatcher.build_command(make_issue()),
            ["msend", "-n", "cell", "-r", "4", "-b", "host=web1;object=http;mc_location=dc1"],
        )

    async def test_dispatch(self) -> None:
        with self.subTest("exit code and streamed output"):
            script = (
                "import sys; print('Message #1 - Evtid = 4711', flush=True); "
                "print('warn', file=sys.stderr, flush=True); sys.exit(3)"
            )
            dispatcher = self.make_dispatcher([sys.executable, "-c", script])

            notification = await dispatcher.dispatch(make_issue())

            self.assertEqual(notification.get("exit_code"), 3)
            self.assertEqual(notification.get("bem_event_id"), "4711")
            self.assertIn("Message #1 - Evtid = 4711", notification.get("output"))
            self.assertIn("warn", notification.get("output"))
            self.assertIsNotNone(notification.get("pid"))
            self.assertGreaterEqual(notification.get("duration_ms"), 0)
            self.assertLess(notification.get("duration_ms"), 10000)
            self.assertEqual(notification.get("issue_identity"), compute_identity("cell", "web1", "http"))
            self.assertEqual(notification.get("host_name"), "web1")
            self.notification_store.insert.assert_awaited_with(notification)

        with self.subTest("missing executable"):
            dispatcher = self.make_dispatcher(["/nonexistent/msend", "-n", "{cell_name}"])

            notification = await dispatcher.dispatch(make_issue())

            self.assertEqual(notification.get("exit_code"), 255)
            self.assertIsNone(notification.get("pid"))
            self.assertEqual(notification.get("command_line"), "/nonexistent/msend -n cell")
            self.assertIn("Cannot start", notification.get("output"))

        with self.subTest("invalid template"):
            dispatcher = self.make_dispatcher(["msend", "{no_such_value}"])

            notification = await dispatcher.dispatch(make_issue())

            self.assertEqual(notification.get("exit_code"), 255)
            self.assertEqual(notification.get("command_line"), "msend '{no_such_value}'")

        with self.subTest("timeout terminates the process"):
            dispatcher = self.make_dispatcher([sys.executable, "-c", "import time; time.sleep(30)"], timeout_sec=0.5)

            notification = await dispatcher.dispatch(make_issue())

            self.assertEqual(notification.get("exit_code"), 143)
            self.assertLess(notification.get("duration_ms"), 10000)
