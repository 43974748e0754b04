from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from entities.ido.ido_registry import ido_mapper_registry

HOST_OBJECT_TYPE_ID = 1
SERVICE_OBJECT_TYPE_ID = 2


@ido_mapper_registry.mapped_as_dataclass
class IcingaObject:
    __tablename__ = "icinga_objects"

    object_id: Mapped[int] = mapped_column(primary_key=True)
    objecttype_id: Mapped[int] = mapped_column(nullable=False)
    name1: Mapped[str] = mapped_column(nullable=False)
    name2: Mapped[Optional[str]] = mapped_column(nullable=True, default=None)
    is_active: Mapped[int] = mapped_column(nullable=False, default=1)
