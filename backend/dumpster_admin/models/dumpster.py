"""
Dumpster inventory model.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dumpster_admin.core.database import Base
from dumpster_admin.models.base import TimestampMixin, UUIDMixin, enum_type


class DumpsterStatus(str, enum.Enum):
    """Availability of a dumpster."""

    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class DumpsterCondition(str, enum.Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_REPAIR = "needs_repair"


class Dumpster(Base, UUIDMixin, TimestampMixin):
    """
    Physical dumpster.

    current_order_id is the authoritative assignment pointer: status is
    in_use exactly when it is set. The unique constraint keeps one order
    from holding two dumpsters.
    """

    __tablename__ = "dumpsters"

    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    condition: Mapped[DumpsterCondition] = mapped_column(
        enum_type(DumpsterCondition),
        default=DumpsterCondition.GOOD,
        nullable=False,
    )
    status: Mapped[DumpsterStatus] = mapped_column(
        enum_type(DumpsterStatus),
        default=DumpsterStatus.AVAILABLE,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Assignment
    current_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_maintenance_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Dumpster {self.name} ({self.status.value})>"

    @property
    def is_assigned(self) -> bool:
        return self.current_order_id is not None
