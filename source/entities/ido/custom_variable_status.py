from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from entities.ido.ido_registry import ido_mapper_registry


@ido_mapper_registry.mapped_as_dataclass
class CustomVariableStatus:
    __tablename__ = "icinga_customvariablestatus"

    customvariablestatus_id: Mapped[int] = mapped_column(primary_key=True)
    object_id: Mapped[int] = mapped_column(nullable=False, index=True)
    varname: Mapped[str] = mapped_column(nullable=False)
    varvalue: Mapped[Optional[str]] = mapped_column(nullable=True, default=None)
