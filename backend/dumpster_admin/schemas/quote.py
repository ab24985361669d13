"""
Quote schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from dumpster_admin.models.order import Priority
from dumpster_admin.models.quote import QuoteStatus
from dumpster_admin.schemas.order import LineItemInput
from dumpster_admin.schemas.validators import MoneyOptional, OptionalText, PhoneNumber, reject_explicit_nulls


class QuoteCreate(BaseModel):
    """Schema for recording a quote request."""
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
    dropoff_date: Optional[date] = None
    dropoff_time: OptionalText = None
    time_needed: Optional[str] = Field(None, max_length=20)
    message: Optional[str] = None
    priority: Priority = Priority.NORMAL


class QuoteUpdate(BaseModel):
    """Schema for editing a quote before promotion."""
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
    dropoff_time: OptionalText = None
    time_needed: Optional[str] = Field(None, max_length=20)
    message: Optional[str] = None
    status: Optional[QuoteStatus] = None
    priority: Optional[Priority] = None
    assigned_to: OptionalText = None
    quoted_price: MoneyOptional = None
    quote_notes: Optional[str] = None
    line_items: Optional[list[LineItemInput]] = None

    @model_validator(mode="after")
    def validate_required_not_null(self):
        return reject_explicit_nulls(self, ("first_name", "email", "status", "priority"))


class QuotePromotionOverrides(BaseModel):
    """
    Admin edits applied while converting a quote into an order.

    Every field is optional; unset fields fall back to the quote.
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
    dropoff_time: OptionalText = None
    time_needed: Optional[str] = Field(None, max_length=20)
    message: Optional[str] = None
    priority: Optional[Priority] = None
    assigned_to: OptionalText = None
    quoted_price: MoneyOptional = None
    driver_notes: Optional[str] = None
    scheduled_pickup_date: Optional[date] = None
    line_items: Optional[list[LineItemInput]] = None


class QuoteResponse(BaseModel):
    id: UUID
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
    status: QuoteStatus
    priority: Priority
    assigned_to: Optional[str]
    quoted_price: Optional[Decimal]
    quote_notes: Optional[str]
    quoted_at: Optional[datetime]
    line_items: Optional[list[dict[str, Any]]]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuoteListResponse(BaseModel):
    """Schema for quote list response."""
    items: list[QuoteResponse]
    total: int
    page: int
    size: int
