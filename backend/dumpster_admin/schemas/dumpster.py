"""
Dumpster schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from dumpster_admin.models.dumpster import DumpsterCondition, DumpsterStatus
from dumpster_admin.schemas.validators import reject_explicit_nulls


class DumpsterCreate(BaseModel):
    """Schema for adding a dumpster to inventory."""
    name: str = Field(..., min_length=1, max_length=100)
    size: Optional[str] = Field(None, max_length=20)
    condition: DumpsterCondition = DumpsterCondition.GOOD
    status: DumpsterStatus = DumpsterStatus.AVAILABLE
    notes: Optional[str] = None


class DumpsterUpdate(BaseModel):
    """
    Schema for editing a dumpster.

    in_use is managed by assignment and cannot be set here.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    size: Optional[str] = Field(None, max_length=20)
    condition: Optional[DumpsterCondition] = None
    status: Optional[DumpsterStatus] = None
    notes: Optional[str] = None
    last_maintenance_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_required_not_null(self):
        return reject_explicit_nulls(self, ("name", "condition", "status"))


class DumpsterResponse(BaseModel):
    id: UUID
    name: str
    size: Optional[str]
    condition: DumpsterCondition
    status: DumpsterStatus
    notes: Optional[str]
    current_order_id: Optional[UUID]
    address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    last_assigned_at: Optional[datetime]
    last_maintenance_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DumpsterListResponse(BaseModel):
    """Schema for dumpster list response."""
    items: list[DumpsterResponse]
    total: int


class DumpsterStats(BaseModel):
    """Fleet counts by status."""
    total: int = 0
    available: int = 0
    in_use: int = 0
    maintenance: int = 0
    out_of_service: int = 0
