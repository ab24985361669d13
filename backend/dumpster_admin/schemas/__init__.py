"""
Pydantic schemas for API request/response models.
"""

from dumpster_admin.schemas.dumpster import (
    DumpsterCreate,
    DumpsterListResponse,
    DumpsterResponse,
    DumpsterStats,
    DumpsterUpdate,
)
from dumpster_admin.schemas.order import (
    DumpsterAssignRequest,
    InvoiceDescriptionsUpdate,
    LineItemInput,
    LineItemResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdate,
)
from dumpster_admin.schemas.payment import (
    PaymentCancel,
    PaymentCancelResponse,
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
    WebhookAck,
)
from dumpster_admin.schemas.quote import (
    QuoteCreate,
    QuoteListResponse,
    QuotePromotionOverrides,
    QuoteResponse,
    QuoteUpdate,
)
from dumpster_admin.schemas.service import (
    ServiceCategoryCreate,
    ServiceCategoryListResponse,
    ServiceCategoryResponse,
    ServiceCategoryUpdate,
    ServiceCreate,
    ServiceListResponse,
    ServiceResponse,
    ServiceUpdate,
)

__all__ = [
    # Dumpster
    "DumpsterCreate",
    "DumpsterUpdate",
    "DumpsterResponse",
    "DumpsterListResponse",
    "DumpsterStats",
    # Order
    "LineItemInput",
    "LineItemResponse",
    "OrderCreate",
    "OrderUpdate",
    "OrderResponse",
    "OrderListResponse",
    "OrderStatusUpdate",
    "DumpsterAssignRequest",
    "InvoiceDescriptionsUpdate",
    # Payment
    "PaymentCreate",
    "PaymentCancel",
    "PaymentResponse",
    "PaymentListResponse",
    "PaymentCancelResponse",
    "WebhookAck",
    # Quote
    "QuoteCreate",
    "QuoteUpdate",
    "QuoteResponse",
    "QuoteListResponse",
    "QuotePromotionOverrides",
    # Service catalog
    "ServiceCategoryCreate",
    "ServiceCategoryUpdate",
    "ServiceCategoryResponse",
    "ServiceCategoryListResponse",
    "ServiceCreate",
    "ServiceUpdate",
    "ServiceResponse",
    "ServiceListResponse",
]
