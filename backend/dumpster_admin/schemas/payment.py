"""
Payment schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dumpster_admin.models.payment import PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    """Request to invoice an order."""
    due_date: Optional[date] = None
    delivery_method: Literal["EMAIL", "SMS", "SHARE_MANUALLY"] = "EMAIL"


class PaymentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    """Payment response."""

    id: UUID
    order_id: UUID
    payment_number: str
    method: PaymentMethod
    status: PaymentStatus
    subtotal_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    provider_invoice_id: Optional[str]
    provider_status: Optional[str]
    public_url: Optional[str]
    delivery_method: str
    due_date: Optional[date]
    sent_at: Optional[datetime]
    viewed_at: Optional[datetime]
    paid_at: Optional[datetime]
    canceled_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int


class PaymentCancelResponse(BaseModel):
    """Draft cancellations delete the payment, so payment is null."""
    deleted: bool
    payment: Optional[PaymentResponse] = None


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool = False
    payment_id: Optional[UUID] = None
