"""
Service catalog models.

Categories group the billable services an admin picks from when building
an order's line items.
"""

import enum
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dumpster_admin.core.database import Base
from dumpster_admin.models.base import TimestampMixin, UUIDMixin, enum_type


class ServicePriceType(str, enum.Enum):
    """How base_price is charged."""

    FIXED = "fixed"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class ServiceCategory(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "service_categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ServiceCategory {self.name}>"


class Service(Base, UUIDMixin, TimestampMixin):
    """A billable catalog entry, e.g. "20yd Dumpster Rental" or "Extra Day"."""

    __tablename__ = "services"

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("service_categories.id"),
        nullable=False,
        index=True,
    )
    sku: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_type: Mapped[ServicePriceType] = mapped_column(
        enum_type(ServicePriceType),
        default=ServicePriceType.FIXED,
        nullable=False,
    )
    dumpster_size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    category: Mapped["ServiceCategory"] = relationship("ServiceCategory", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Service {self.name} ({self.base_price})>"
