from sqlalchemy.orm import Mapped, mapped_column

from entities.ido.ido_registry import ido_mapper_registry


@ido_mapper_registry.mapped_as_dataclass
class Service:
    __tablename__ = "icinga_services"

    service_id: Mapped[int] = mapped_column(primary_key=True)
    host_object_id: Mapped[int] = mapped_column(nullable=False, index=True)
    service_object_id: Mapped[int] = mapped_column(nullable=False, unique=True)
