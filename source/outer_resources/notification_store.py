"""NotificationStore module."""
import logging
from dataclasses import dataclass

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError

from entities.notification import Notification, bem_notification_table
from errors import StoreIOError
from outer_resources.database_connector import DatabaseSessionMaker

logger = logging.getLogger(__name__)


class NotificationStore:
    """Append-only log of dispatched notifications."""

    @dataclass
    class Context:
        """context."""

        database_session_maker: DatabaseSessionMaker

    def __init__(self, context: Context) -> None:
        """init."""
        self.context = context
        self.ensure_session = self.context.database_session_maker.ensure_session
        logger.info(f"{type(self).__name__} inited")

    async def insert(self, notification: Notification) -> None:
        """Append notification row."""
        query = insert(bem_notification_table).values(notification.all_fields_for_persistence())
        try:
            async with self.ensure_session() as session:
                await session.execute(query)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Notification insert failed: {repr(e)}") from e
        notification.mark_unmodified()

    async def fetch_for_issue(self, issue_identity: bytes, limit: int = 50) -> list[Notification]:
        """Select latest notifications of an issue."""
        query = select(
            bem_notification_table
        ).where(
            bem_notification_table.c.issue_identity == issue_identity
        ).order_by(
            bem_notification_table.c.ts_notification.desc()
        ).limit(
            limit
        )
        try:
            async with self.ensure_session() as session:
                rows = (await session.execute(query)).mappings().all()
        except SQLAlchemyError as e:
            raise StoreIOError(f"Notification select failed: {repr(e)}") from e

        notifications = []
        for row in rows:
            notification = Notification({name: row[name] for name in Notification.default_properties})
            notification.mark_unmodified()
            notifications.append(notification)
        return notifications
