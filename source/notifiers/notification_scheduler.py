"""NotificationScheduler module."""
import logging
from dataclasses import dataclass
from typing import Optional

from entities.issue import Issue
from entities.notification import Notification
from utils.timestamp_converters import get_current_time_ms

logger = logging.getLogger(__name__)


class NotificationScheduler:
    """Decides when issues are due for another notification."""

    @dataclass
    class Config:
        """config."""

        resend_interval_sec: int = 3600

    def __init__(self, config: Config) -> None:
        """init."""
        self.config = config
        logger.info(f"{type(self).__name__} inited")

    @staticmethod
    def is_due(issue: Issue, as_of_ms: int) -> bool:
        """Check whether next notification time has been reached."""
        next_notification = issue.get("ts_next_notification")
        return next_notification is not None and next_notification <= as_of_ms

    @staticmethod
    def schedule_next(issue: Issue, at_ms: Optional[int] = None) -> Issue:
        """Set next notification time, initializing the counter once."""
        if at_ms is None:
            at_ms = get_current_time_ms()

        issue.set("ts_next_notification", at_ms)
        if issue.get("notification_count") is None:
            issue.set("notification_count", 0)
        return issue

    def record_notification(self, issue: Issue, notification: Notification) -> Issue:
        """Account a finished notification on its issue and schedule the next one."""
        sent_at = notification.get("ts_notification")
        if issue.get("ts_first_notification") is None:
            issue.set("ts_first_notification", sent_at)
        issue.set("ts_last_notification", sent_at)
        issue.set("notification_count", (issue.get("notification_count") or 0) + 1)
        return self.schedule_next(issue, sent_at + self.config.resend_interval_sec * 1000)
