"""
Payment API routes.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Response

from dumpster_admin.api.deps import get_payment_manager
from dumpster_admin.schemas.payment import (
    PaymentCancel,
    PaymentCancelResponse,
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
)
from dumpster_admin.services.payment_lifecycle import PaymentLifecycleManager

router = APIRouter(tags=["payments"])


@router.get("/orders/{order_id}/payments", response_model=PaymentListResponse)
async def list_order_payments(
    order_id: UUID,
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentListResponse:
    """All payments for an order, newest first."""
    payments = await manager.list_for_order(order_id)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.post("/orders/{order_id}/payments", response_model=PaymentResponse, status_code=201)
async def create_payment(
    order_id: UUID,
    data: Optional[PaymentCreate] = Body(None),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    """Create a draft invoice for the order's services."""
    data = data or PaymentCreate()
    payment = await manager.create(
        order_id,
        due_date=data.due_date,
        delivery_method=data.delivery_method,
    )
    return PaymentResponse.model_validate(payment)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    """Get payment by ID."""
    return PaymentResponse.model_validate(await manager.get(payment_id))


@router.post("/payments/{payment_id}/send", response_model=PaymentResponse)
async def send_payment(
    payment_id: UUID,
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    """Send a draft invoice to the customer."""
    return PaymentResponse.model_validate(await manager.send(payment_id))


@router.post("/payments/{payment_id}/refresh", response_model=PaymentResponse)
async def refresh_payment(
    payment_id: UUID,
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    """Re-read the invoice status from the provider."""
    return PaymentResponse.model_validate(await manager.refresh_status(payment_id))


@router.post("/payments/{payment_id}/cancel", response_model=PaymentCancelResponse)
async def cancel_payment(
    payment_id: UUID,
    data: Optional[PaymentCancel] = Body(None),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentCancelResponse:
    """Cancel an invoice; drafts are deleted."""
    payment = await manager.cancel(payment_id, reason=data.reason if data else None)
    if payment is None:
        return PaymentCancelResponse(deleted=True)
    return PaymentCancelResponse(deleted=False, payment=PaymentResponse.model_validate(payment))


@router.delete("/payments/{payment_id}", status_code=204)
async def delete_payment(
    payment_id: UUID,
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> Response:
    """Permanently remove a canceled, failed or draft payment."""
    await manager.permanently_delete(payment_id)
    return Response(status_code=204)
