"""
Service catalog schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from dumpster_admin.models.service import ServicePriceType
from dumpster_admin.schemas.validators import Money, MoneyOptional, reject_explicit_nulls


class ServiceCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = True


class ServiceCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def validate_required_not_null(self):
        return reject_explicit_nulls(self, ("name", "display_name", "sort_order", "is_active"))


class ServiceCategoryResponse(BaseModel):
    id: UUID
    name: str
    display_name: str
    description: Optional[str]
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ServiceCreate(BaseModel):
    """Schema for adding a catalog service."""
    category_id: UUID
    sku: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    base_price: Money
    price_type: ServicePriceType = ServicePriceType.FIXED
    dumpster_size: Optional[str] = Field(None, max_length=20)
    is_active: bool = True
    is_taxable: bool = True
    sort_order: int = Field(default=0, ge=0)


class ServiceUpdate(BaseModel):
    category_id: Optional[UUID] = None
    sku: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    base_price: MoneyOptional = None
    price_type: Optional[ServicePriceType] = None
    dumpster_size: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None
    is_taxable: Optional[bool] = None
    sort_order: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def validate_required_not_null(self):
        return reject_explicit_nulls(
            self,
            (
                "category_id",
                "name",
                "display_name",
                "base_price",
                "price_type",
                "is_active",
                "is_taxable",
                "sort_order",
            ),
        )


class ServiceResponse(BaseModel):
    id: UUID
    category_id: UUID
    category: Optional[ServiceCategoryResponse] = None
    sku: Optional[str]
    name: str
    display_name: str
    description: Optional[str]
    base_price: Decimal
    price_type: ServicePriceType
    dumpster_size: Optional[str]
    is_active: bool
    is_taxable: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ServiceListResponse(BaseModel):
    items: list[ServiceResponse]
    total: int


class ServiceCategoryListResponse(BaseModel):
    items: list[ServiceCategoryResponse]
    total: int
