"""
Customer quote model.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Date, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dumpster_admin.core.database import Base
from dumpster_admin.models.base import TimestampMixin, UUIDMixin, enum_type
from dumpster_admin.models.order import Priority


class QuoteStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class Quote(Base, UUIDMixin, TimestampMixin):
    """Customer request for a dumpster rental, promoted to an order once accepted."""

    __tablename__ = "quotes"

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

    # Request
    dumpster_size: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    dropoff_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    dropoff_time: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    time_needed: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Quoting
    status: Mapped[QuoteStatus] = mapped_column(
        enum_type(QuoteStatus),
        default=QuoteStatus.PENDING,
        nullable=False,
        index=True,
    )
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority),
        default=Priority.NORMAL,
        nullable=False,
    )
    assigned_to: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quoted_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    quote_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quoted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # [{"name": ..., "quantity": ..., "unit_price": ...}]
    line_items: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Quote {self.id} {self.first_name} ({self.status.value})>"
