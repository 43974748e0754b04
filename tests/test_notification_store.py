import os
import sys
from contextlib import asynccontextmanager
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

sys.path.insert(0, os.path.abspath(os.path.join(__file__, "..", "..", "source")))

from entities.notification import Notification
from errors import StoreIOError
from outer_resources.notification_store import NotificationStore


class TestNotificationStore(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.session = MagicMock()
        self.session.execute = AsyncMock()

        @asynccontextmanager
        async def ensure_session():
            yield self.session

        self.notification_store = NotificationStore(
            context=NotificationStore.Context(database_session_maker=MagicMock(ensure_session=ensure_session)),
        )

    async def test_insert(self) -> None:
        with self.subTest("valid"):
            notification = Notification({"issue_identity": b"\x01" * 20, "exit_code": 0, "output": "ok"})

            await self.notification_store.insert(notification)

            statement = self.session.execute.await_args.args[0]
            self.assertTrue(statement.is_insert)
            self.assertEqual(statement.compile().params["output"], "ok")
            self.assertFalse(notification.has_been_modified())

        with self.subTest("failed insert"):
            self.session.execute.side_effect = OperationalError("INSERT", {}, Exception("gone"))
            notification = Notification({"exit_code": 0})

            with self.assertRaises(StoreIOError):
                await self.notification_store.insert(notification)

            self.assertTrue(notification.has_been_modified())

    async def test_fetch_for_issue(self) -> None:
        row = dict(Notification.default_properties, id=1, issue_identity=b"\x01" * 20, exit_code=143)
        result = MagicMock()
        result.mappings.return_value.all.return_value = [row]
        self.session.execute.return_value = result

        notifications = await self.notification_store.fetch_for_issue(b"\x01" * 20)

        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].get("exit_code"), 143)
        self.assertFalse(notifications[0].has_been_modified())
