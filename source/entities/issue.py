"""Issue module."""
import json
from typing import Any, Mapping, Optional

from sqlalchemy import BigInteger, Column, Integer, LargeBinary, SmallInteger, String, Table, Text

from entities.bem_metadata import bem_metadata
from entities.property_container import PropertyContainer
from utils.checksum import compute_identity

RELEVANT = "y"
NOT_RELEVANT = "n"


bem_issue_table = Table(
    "bem_issue",
    bem_metadata,
    Column("identity", LargeBinary(20), primary_key=True),
    Column("cell_name", String(64), nullable=False),
    Column("host_name", String(255), nullable=False),
    Column("object_name", String(255), nullable=False),
    Column("is_relevant", String(1), nullable=False),
    Column("severity", SmallInteger, nullable=True),
    Column("worst_severity", SmallInteger, nullable=True),
    Column("attributes", Text, nullable=True),
    Column("ts_first_notification", BigInteger, nullable=True),
    Column("ts_last_notification", BigInteger, nullable=True),
    Column("ts_next_notification", BigInteger, nullable=True),
    Column("notification_count", Integer, nullable=True),
)


class Issue(PropertyContainer):
    """One tracked problem per (cell, host, object)."""

    default_properties = {
        "identity": None,
        "cell_name": None,
        "host_name": None,
        "object_name": None,
        "is_relevant": None,
        "severity": None,
        "worst_severity": None,
        "attributes": None,
        "ts_first_notification": None,
        "ts_last_notification": None,
        "ts_next_notification": None,
        "notification_count": None,
    }

    def __init__(self, properties: Mapping[str, Any] | None = None) -> None:
        """init."""
        self.persisted = False
        self._attributes: Optional[dict[str, Any]] = None
        super().__init__(properties)

    @classmethod
    def from_db_row(cls, row: Mapping[str, Any]) -> "Issue":
        """Hydrate existing issue from a stored row."""
        issue = cls()
        properties = {name: row[name] for name in issue.list_properties() if name in row}
        if isinstance(properties.get("identity"), memoryview):
            properties["identity"] = properties["identity"].tobytes()
        issue.set_properties(properties)
        issue.mark_unmodified()
        issue.persisted = True
        return issue

    @property
    def identity(self) -> Optional[bytes]:
        return self.get("identity")

    def is_new(self) -> bool:
        """Check whether issue has never been stored."""
        return not self.persisted

    def is_relevant(self) -> bool:
        """Check stored relevance flag."""
        return self.get("is_relevant") == RELEVANT

    def recalculate_identity(self) -> bytes:
        """Derive identity from current cell, host and object names."""
        identity = compute_identity(self.get("cell_name"), self.get("host_name"), self.get("object_name"))
        self.set("identity", identity)
        return identity

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Serialize extracted fields into the attributes blob."""
        self.set("attributes", json.dumps(dict(attributes)))

    def get_attributes(self) -> dict[str, Any]:
        """Get deserialized attributes, decoded once per record."""
        if self._attributes is None:
            value = self.get("attributes")
            if value is None:
                return {}
            self._attributes = json.loads(value)
        return self._attributes

    def set(self, name: str, value: Any) -> "Issue":
        if name == "attributes":
            self._attributes = None
        return super().set(name, value)

    def raise_worst_severity(self) -> None:
        """Keep worst_severity as the highest severity seen so far."""
        severity = self.get("severity")
        worst = self.get("worst_severity")
        if worst is None or (severity is not None and severity > worst):
            self.set("worst_severity", severity)
