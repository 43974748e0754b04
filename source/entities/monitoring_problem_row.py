"""MonitoringProblemRow module."""
from dataclasses import dataclass, field
from enum import StrEnum, unique
from typing import Optional

UNCHECKED_HARD_STATE = 99

HOST_VARS_PREFIX = "host.vars."
SERVICE_VARS_PREFIX = "service.vars."


@unique
class ObjectType(StrEnum):
    """ObjectType."""

    HOST = "host"
    SERVICE = "service"


@dataclass
class MonitoringProblemRow:
    """Current state of a host or service, enriched with custom variables."""

    id: Optional[int]
    object_type: ObjectType
    host_id: Optional[int]
    host_name: str
    service_name: Optional[str]
    state_type: str
    state: str
    hard_state: int
    is_acknowledged: int
    is_in_downtime: int
    output: Optional[str]
    vars: dict[str, Optional[str]] = field(default_factory=dict)
    vars_loaded: bool = True

    @property
    def object_name(self) -> str:
        """Service name for services, host name for hosts."""
        return self.service_name if self.service_name is not None else self.host_name

    def get_value(self, key: str) -> Optional[str]:
        """Get column or custom variable by key."""
        if key in self.vars:
            return self.vars[key]
        if not key.startswith((HOST_VARS_PREFIX, SERVICE_VARS_PREFIX)) and key in self.__dataclass_fields__:
            value = getattr(self, key)
            return None if value is None else str(value)
        return None
