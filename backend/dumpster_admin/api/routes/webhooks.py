"""
Inbound webhooks from the invoicing provider.
"""
from fastapi import APIRouter, Depends, Request

from dumpster_admin.api.deps import get_payment_manager, get_webhook_verifier
from dumpster_admin.core.exceptions import AuthenticationException
from dumpster_admin.core.logging import get_logger
from dumpster_admin.schemas.payment import WebhookAck
from dumpster_admin.services.payment_lifecycle import PaymentLifecycleManager
from dumpster_admin.services.square_client import (
    SIGNATURE_HEADER,
    SquareWebhookVerifier,
    parse_webhook_event,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/square", response_model=WebhookAck)
async def square_webhook(
    request: Request,
    verifier: SquareWebhookVerifier = Depends(get_webhook_verifier),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> WebhookAck:
    """
    Receive Square invoice events.

    The signature is checked over the raw body before anything is parsed.
    """
    body = await request.body()
    if not verifier.verify(body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Square webhook signature rejected", extra={"client_ip": request.client.host if request.client else None})
        raise AuthenticationException(message="Invalid webhook signature", error_code="INVALID_SIGNATURE")

    event = parse_webhook_event(body)
    if event is None:
        return WebhookAck(received=True, applied=False)

    logger.info("Square webhook received", extra={"event_type": event.event_type, "event_id": event.event_id})
    payment = await manager.apply_webhook_event(event)
    return WebhookAck(
        received=True,
        applied=payment is not None,
        payment_id=payment.id if payment else None,
    )
