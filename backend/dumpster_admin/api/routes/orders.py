"""
Order API routes.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from dumpster_admin.api.deps import (
    get_order_service,
    get_resolver,
    get_transition_engine,
)
from dumpster_admin.models.order import OrderStatus
from dumpster_admin.schemas.dumpster import DumpsterResponse
from dumpster_admin.schemas.order import (
    DumpsterAssignRequest,
    InvoiceDescriptionsUpdate,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdate,
)
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver
from dumpster_admin.services.order_service import OrderService
from dumpster_admin.services.order_transitions import OrderTransitionEngine, allowed_transitions

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None),
    assigned_to: Optional[str] = Query(None, description="Driver name"),
    search: Optional[str] = Query(None, description="Search by order number, name or email"),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """Get list of orders with pagination."""
    orders, total = await service.list_orders(
        status=status,
        assigned_to=assigned_to,
        search=search,
        page=page,
        size=size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Create an order directly, without a quote."""
    order = await service.create(data)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get order by ID."""
    return OrderResponse.model_validate(await service.get(order_id))


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: UUID,
    data: OrderUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Edit order details, driver, pricing or notes."""
    order = await service.update(order_id, data)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/line-items/invoice-descriptions", response_model=OrderResponse)
async def update_invoice_descriptions(
    order_id: UUID,
    data: InvoiceDescriptionsUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Set the wording shown on the invoice for individual line items."""
    order = await service.update_invoice_descriptions(order_id, data.descriptions)
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> Response:
    """Delete an order and release its dumpster."""
    await service.delete(order_id)
    return Response(status_code=204)


# ============================================================
# Workflow
# ============================================================


@router.get("/{order_id}/transitions")
async def get_allowed_transitions(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> dict:
    """Statuses the order can move to next."""
    order = await service.get(order_id)
    return {
        "status": order.status.value,
        "allowed": [s.value for s in allowed_transitions(order.status)],
    }


@router.post("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    engine: OrderTransitionEngine = Depends(get_transition_engine),
) -> OrderResponse:
    """Move an order to a new status."""
    order = await engine.transition(order_id, data.status)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}/dumpster", response_model=Optional[DumpsterResponse])
async def get_order_dumpster(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
) -> Optional[DumpsterResponse]:
    """Dumpster currently assigned to the order, or null."""
    await service.get(order_id)
    dumpster = await resolver.find_assigned_dumpster(order_id)
    return DumpsterResponse.model_validate(dumpster) if dumpster else None


@router.post("/{order_id}/dumpster", response_model=DumpsterResponse)
async def assign_dumpster(
    order_id: UUID,
    data: DumpsterAssignRequest,
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
) -> DumpsterResponse:
    """Assign (or swap) the order's dumpster."""
    dumpster = await resolver.assign(order_id, data.dumpster_id)
    return DumpsterResponse.model_validate(dumpster)


@router.delete("/{order_id}/dumpster", response_model=Optional[DumpsterResponse])
async def unassign_dumpster(
    order_id: UUID,
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
) -> Optional[DumpsterResponse]:
    """Release the order's dumpster. Returns the released dumpster, or null."""
    dumpster = await resolver.unassign(order_id)
    return DumpsterResponse.model_validate(dumpster) if dumpster else None
