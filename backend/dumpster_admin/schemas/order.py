"""
Order schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from dumpster_admin.models.order import OrderStatus, Priority
from dumpster_admin.schemas.validators import MoneyOptional, OptionalText, PhoneNumber, reject_explicit_nulls


class LineItemInput(BaseModel):
    """
    A service line on an order or quote.

    With service_id set, name, description and unit_price fall back to the
    catalog entry.
    """
    service_id: Optional[UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    invoice_description: OptionalText = None
    quantity: int = Field(default=1, ge=1)
    unit_price: MoneyOptional = None

    @model_validator(mode="after")
    def validate_free_text_item(self):
        """Free-text lines need their own name and price."""
        if self.service_id is None and (self.name is None or self.unit_price is None):
            raise ValueError("name and unit_price are required unless service_id is given")
        return self


class LineItemResponse(BaseModel):
    id: UUID
    service_id: Optional[UUID]
    name: str
    description: Optional[str]
    invoice_description: Optional[str]
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class InvoiceDescriptionsUpdate(BaseModel):
    """Invoice wording per line item id; blank clears it back to the description."""
    descriptions: dict[UUID, Optional[str]] = Field(..., min_length=1)


class OrderCreate(BaseModel):
    """Schema for creating an order directly (without a quote)."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    phone: PhoneNumber = None
    address: Optional[str] = Field(None, max_length=255)
    address2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, max_length=20)
    dumpster_size: Optional[str] = Field(None, max_length=20)
    dropoff_date: date
    dropoff_time: str = Field(..., min_length=1, max_length=20)
    time_needed: Optional[str] = Field(None, max_length=20)
    message: Optional[str] = None
    priority: Priority = Priority.NORMAL
    assigned_to: OptionalText = None
    quoted_price: MoneyOptional = None
    internal_notes: Optional[str] = None
    driver_notes: Optional[str] = None
    scheduled_pickup_date: Optional[date] = None
    line_items: list[LineItemInput] = Field(default_factory=list)


class OrderUpdate(BaseModel):
    """
    Schema for editing order details.

    Status and dumpster changes go through their own endpoints.
    """
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    phone: PhoneNumber = None
    address: Optional[str] = Field(None, max_length=255)
    address2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, max_length=20)
    dumpster_size: Optional[str] = Field(None, max_length=20)
    dropoff_date: Optional[date] = None
    dropoff_time: Optional[str] = Field(None, max_length=20)
    time_needed: Optional[str] = Field(None, max_length=20)
    message: Optional[str] = None
    priority: Optional[Priority] = None
    assigned_to: OptionalText = None
    quoted_price: MoneyOptional = None
    final_price: MoneyOptional = None
    internal_notes: Optional[str] = None
    driver_notes: Optional[str] = None
    scheduled_delivery_date: Optional[date] = None
    scheduled_pickup_date: Optional[date] = None
    line_items: Optional[list[LineItemInput]] = None

    @model_validator(mode="after")
    def validate_required_not_null(self):
        return reject_explicit_nulls(self, ("first_name", "email", "priority"))


class OrderStatusUpdate(BaseModel):
    """Requested status change."""
    status: OrderStatus


class DumpsterAssignRequest(BaseModel):
    dumpster_id: UUID


class OrderResponse(BaseModel):
    """Order response."""

    id: UUID
    order_number: str
    quote_id: Optional[UUID]
    first_name: str
    last_name: Optional[str]
    email: str
    phone: Optional[str]
    address: Optional[str]
    address2: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    dumpster_size: Optional[str]
    dropoff_date: Optional[date]
    dropoff_time: Optional[str]
    time_needed: Optional[str]
    message: Optional[str]
    status: OrderStatus
    priority: Priority
    assigned_to: Optional[str]
    dumpster_id: Optional[UUID]
    completed_with_dumpster_id: Optional[UUID]
    completed_with_dumpster_name: Optional[str]
    quoted_price: Optional[Decimal]
    final_price: Optional[Decimal]
    internal_notes: Optional[str]
    driver_notes: Optional[str]
    scheduled_delivery_date: Optional[date]
    scheduled_pickup_date: Optional[date]
    actual_delivery_date: Optional[datetime]
    actual_pickup_date: Optional[datetime]
    completed_at: Optional[datetime]
    line_items: list[LineItemResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for order list response."""
    items: list[OrderResponse]
    total: int
    page: int
    size: int
