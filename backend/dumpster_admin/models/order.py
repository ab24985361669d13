"""
Rental order model.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dumpster_admin.core.database import Base
from dumpster_admin.models.base import TimestampMixin, UUIDMixin, enum_type


class OrderStatus(str, enum.Enum):
    """Workflow stage of a rental order."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    ON_WAY = "on_way"
    DELIVERED = "delivered"
    ON_WAY_PICKUP = "on_way_pickup"
    PICKED_UP = "picked_up"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class Priority(str, enum.Enum):
    """Order and quote priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Order(Base, UUIDMixin, TimestampMixin):
    """
    Confirmed dumpster rental job.

    The dumpster on site is tracked by Dumpster.current_order_id; dumpster_id
    here mirrors it and is written only by the assignment resolver.
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        index=True,
        nullable=False,
    )
    quote_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Customer
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Service details
    dumpster_size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    dropoff_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    dropoff_time: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    time_needed: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Workflow
    status: Mapped[OrderStatus] = mapped_column(
        enum_type(OrderStatus),
        default=OrderStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority),
        default=Priority.NORMAL,
        nullable=False,
    )
    assigned_to: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    dumpster_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    completed_with_dumpster_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )
    completed_with_dumpster_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Pricing
    quoted_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    final_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Notes
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    driver_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Scheduling
    scheduled_delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    scheduled_pickup_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_pickup_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    line_items: Mapped[list["OrderLineItem"]] = relationship(
        "OrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} ({self.status.value})>"

    @property
    def customer_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def service_address(self) -> str:
        """Street, city and state joined for display and geocoding."""
        return ", ".join(p.strip() for p in (self.address, self.city, self.state) if p and p.strip())

    @property
    def billable_amount(self) -> Optional[Decimal]:
        """final_price once set, otherwise the quoted price."""
        return self.final_price if self.final_price is not None else self.quoted_price


class OrderLineItem(Base, UUIDMixin):
    """A billable service on an order; invoices are built from these."""

    __tablename__ = "order_line_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id"),
        nullable=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Wording shown on the customer invoice; falls back to description
    invoice_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<OrderLineItem {self.name} x{self.quantity}>"

    @property
    def invoice_text(self) -> Optional[str]:
        return self.invoice_description or self.description
