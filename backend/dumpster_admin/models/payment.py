"""
Payment (invoice) model.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from dumpster_admin.core.database import Base
from dumpster_admin.models.base import TimestampMixin, UUIDMixin, enum_type


class PaymentStatus(str, enum.Enum):
    """Lifecycle state of an invoice."""

    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"
    REFUNDED = "refunded"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_PAYMENT_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PAYMENT_STATUSES


ACTIVE_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.DRAFT,
        PaymentStatus.PENDING,
        PaymentStatus.SENT,
        PaymentStatus.VIEWED,
        PaymentStatus.PARTIALLY_PAID,
        PaymentStatus.OVERDUE,
    }
)

TERMINAL_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.PAID,
        PaymentStatus.CANCELED,
        PaymentStatus.REFUNDED,
        PaymentStatus.FAILED,
    }
)

# Storage-level guard for the one-open-invoice-per-order rule
_ACTIVE_PREDICATE = text(
    "status IN (" + ", ".join(sorted(f"'{s.value}'" for s in ACTIVE_PAYMENT_STATUSES)) + ")"
)


class PaymentMethod(str, enum.Enum):
    SQUARE_INVOICE = "square_invoice"


class Payment(Base, UUIDMixin, TimestampMixin):
    """Invoice issued against an order, mirrored from the invoicing provider."""

    __tablename__ = "payments"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        enum_type(PaymentMethod),
        default=PaymentMethod.SQUARE_INVOICE,
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        enum_type(PaymentStatus),
        default=PaymentStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Amounts (dollars)
    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)

    # Provider mirror
    provider_invoice_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    provider_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    public_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    delivery_method: Mapped[str] = mapped_column(String(20), default="EMAIL", nullable=False)

    # Timeline
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Webhooks
    last_webhook_event_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_webhook_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_payments_order_active",
            "order_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.payment_number} ({self.status.value})>"
