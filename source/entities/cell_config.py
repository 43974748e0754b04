"""CellConfig module."""
import abc
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from entities.monitoring_problem_row import MonitoringProblemRow, UNCHECKED_HARD_STATE
from outer_resources.database_connector import DatabaseSessionMaker

logger = logging.getLogger(__name__)

HOST_FIELD = "host"
OBJECT_FIELD = "object"

_placeholder_pattern = re.compile(r"\{([^{}]+)\}")

# Vanished issues are looked up in the IDO by their host and object slot values
IDENTITY_SLOTS = {
    HOST_FIELD: "{host_name}",
    OBJECT_FIELD: "{object_name}",
}


class CellConfig(abc.ABC):
    """Target cell capability consumed by the core."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Cell name."""
        pass

    @property
    @abc.abstractmethod
    def db(self) -> DatabaseSessionMaker:
        """Session maker of the cell's BEM database."""
        pass

    @abc.abstractmethod
    def calculate_severity_for_object(self, obj: MonitoringProblemRow) -> int:
        """Get ordinal severity for monitored object."""
        pass

    @abc.abstractmethod
    def extract_fields(self, obj: MonitoringProblemRow) -> dict[str, Any]:
        """Get ordered slot values, must contain 'host' and 'object'."""
        pass

    @abc.abstractmethod
    def wants_object(self, obj: MonitoringProblemRow) -> bool:
        """Check whether monitored object should be escalated to this cell."""
        pass


class RuleCellConfig(CellConfig):
    """Cell with static severity map, slot templates and variable filters."""

    @dataclass
    class Config:
        """config."""

        name: str
        state_to_severity: dict[str, int] = field(default_factory=lambda: {
            "UP": 0,
            "OK": 0,
            "WARNING": 2,
            "UNKNOWN": 3,
            "CRITICAL": 4,
            "UNREACHABLE": 4,
            "DOWN": 5,
        })
        default_severity: int = 3
        slots: dict[str, str] = field(default_factory=lambda: dict(IDENTITY_SLOTS))
        required_vars: dict[str, str] = field(default_factory=dict)

    @dataclass
    class Context:
        """context."""

        database_session_maker: DatabaseSessionMaker

    def __init__(self, config: Config, context: Context) -> None:
        """init."""
        for slot, template in IDENTITY_SLOTS.items():
            if config.slots.get(slot) != template:
                raise ValueError(f"Cell {config.name}: slot '{slot}' must be '{template}'")
        self.config = config
        self.context = context
        logger.info(f"{type(self).__name__} {config.name} inited")

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def db(self) -> DatabaseSessionMaker:
        return self.context.database_session_maker

    def calculate_severity_for_object(self, obj: MonitoringProblemRow) -> int:
        return self.config.state_to_severity.get(obj.state, self.config.default_severity)

    def extract_fields(self, obj: MonitoringProblemRow) -> dict[str, Any]:
        return {slot: self._render(template, obj) for slot, template in self.config.slots.items()}

    def wants_object(self, obj: MonitoringProblemRow) -> bool:
        if obj.hard_state in (0, UNCHECKED_HARD_STATE):
            return False
        if obj.is_acknowledged or obj.is_in_downtime:
            return False
        for key, expected_value in self.config.required_vars.items():
            if obj.get_value(key) != expected_value:
                return False
        return True

    @staticmethod
    def _render(template: str, obj: MonitoringProblemRow) -> str:
        """Substitute {key} placeholders with row columns and custom variables."""
        def replace(match: re.Match) -> str:
            if match.group(1) == "object_name":
                return obj.object_name
            value = obj.get_value(match.group(1))
            return "" if value is None else value

        return _placeholder_pattern.sub(replace, template)
