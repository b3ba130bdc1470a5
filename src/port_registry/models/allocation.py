"""Port allocation model."""

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Allocation(Base):
    """Port allocation - an exclusive claim of one port by one (app, instance, service)."""

    __tablename__ = "allocations"
    __table_args__ = (
        UniqueConstraint("port", name="uq_allocations_port"),
        UniqueConstraint("app", "instance", "service", name="uq_allocations_app_instance_service"),
        CheckConstraint("port BETWEEN 1 AND 65535", name="ck_allocations_port_range"),
        # Keep ids monotonic: never hand out the id of a released row
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app: Mapped[str] = mapped_column(String(255))
    instance: Mapped[str] = mapped_column(String(255))
    service: Mapped[str] = mapped_column(String(255))
    port: Mapped[int] = mapped_column(Integer)

    def __repr__(self) -> str:
        return (
            f"Allocation(id={self.id}, app={self.app!r}, instance={self.instance!r}, "
            f"service={self.service!r}, port={self.port})"
        )
