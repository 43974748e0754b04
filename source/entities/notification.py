"""Notification module."""
from sqlalchemy import BigInteger, Column, Integer, LargeBinary, String, Table, Text

from entities.bem_metadata import bem_metadata
from entities.issue import Issue
from entities.property_container import PropertyContainer


bem_notification_table = Table(
    "bem_notification",
    bem_metadata,
    Column("id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("issue_identity", LargeBinary(20), nullable=False, index=True),
    Column("cell_name", String(64), nullable=False),
    Column("host_name", String(255), nullable=False),
    Column("object_name", String(255), nullable=False),
    Column("attributes", Text, nullable=True),
    Column("command_line", Text, nullable=True),
    Column("system_user", String(64), nullable=True),
    Column("system_host_name", String(255), nullable=True),
    Column("pid", Integer, nullable=True),
    Column("ts_notification", BigInteger, nullable=True),
    Column("duration_ms", Integer, nullable=True),
    Column("exit_code", Integer, nullable=True),
    Column("output", Text, nullable=True),
    Column("bem_event_id", String(32), nullable=True),
)


class Notification(PropertyContainer):
    default_properties = {
        "issue_identity": None,
        "cell_name": None,
        "host_name": None,
        "object_name": None,
        "attributes": None,
        "command_line": None,
        "system_user": None,
        "system_host_name": None,
        "pid": None,
        "ts_notification": None,
        "duration_ms": None,
        "exit_code": None,
        "output": None,
        "bem_event_id": None,
    }

    @classmethod
    def for_issue(cls, issue: Issue) -> "Notification":
        """Start notification record for an issue."""
        return cls({
            "issue_identity": issue.identity,
            "cell_name": issue.get("cell_name"),
            "host_name": issue.get("host_name"),
            "object_name": issue.get("object_name"),
            "attributes": issue.get("attributes"),
        })
