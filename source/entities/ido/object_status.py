"""Host and service status tables."""
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from entities.ido.ido_registry import ido_mapper_registry

HARD_STATE_TYPE = 1


@ido_mapper_registry.mapped_as_dataclass
class HostStatus:
    """HostStatus."""

    __tablename__ = "icinga_hoststatus"

    hoststatus_id: Mapped[int] = mapped_column(primary_key=True)
    host_object_id: Mapped[int] = mapped_column(nullable=False, unique=True)
    current_state: Mapped[int] = mapped_column(nullable=False, default=0)
    last_hard_state: Mapped[int] = mapped_column(nullable=False, default=0)
    state_type: Mapped[int] = mapped_column(nullable=False, default=0)
    has_been_checked: Mapped[Optional[int]] = mapped_column(nullable=True, default=0)
    problem_has_been_acknowledged: Mapped[int] = mapped_column(nullable=False, default=0)
    scheduled_downtime_depth: Mapped[int] = mapped_column(nullable=False, default=0)
    output: Mapped[Optional[str]] = mapped_column(nullable=True, default=None)


@ido_mapper_registry.mapped_as_dataclass
class ServiceStatus:
    """ServiceStatus."""

    __tablename__ = "icinga_servicestatus"

    servicestatus_id: Mapped[int] = mapped_column(primary_key=True)
    service_object_id: Mapped[int] = mapped_column(nullable=False, unique=True)
    current_state: Mapped[int] = mapped_column(nullable=False, default=0)
    last_hard_state: Mapped[int] = mapped_column(nullable=False, default=0)
    state_type: Mapped[int] = mapped_column(nullable=False, default=0)
    has_been_checked: Mapped[Optional[int]] = mapped_column(nullable=True, default=0)
    problem_has_been_acknowledged: Mapped[int] = mapped_column(nullable=False, default=0)
    scheduled_downtime_depth: Mapped[int] = mapped_column(nullable=False, default=0)
    output: Mapped[Optional[str]] = mapped_column(nullable=True, default=None)
