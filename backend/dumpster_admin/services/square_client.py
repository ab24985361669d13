"""
Square Invoices integration.

Talks to the Square REST API directly:
- POST /v2/customers             recipient
- POST /v2/orders                line items and tax
- POST /v2/invoices              draft invoice for that order
- POST /v2/invoices/{id}/publish send (needs the current version)
- POST /v2/invoices/{id}/cancel  cancel a published invoice
- DELETE /v2/invoices/{id}       drafts cannot be canceled, only deleted

Also verifies and parses the invoice webhooks Square posts back.
"""

import base64
import hashlib
import hmac
import json
import time
import uuid
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import InvoiceProviderException, ValidationException
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import track_external_request
from dumpster_admin.models.payment import PaymentStatus
from dumpster_admin.services.invoice_provider import (
    InvoiceCustomer,
    InvoiceLineItem,
    InvoiceProvider,
    InvoiceWebhookEvent,
    ProviderInvoice,
)

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-square-hmacsha256-signature"

SQUARE_STATUS_MAP: dict[str, PaymentStatus] = {
    "DRAFT": PaymentStatus.DRAFT,
    "UNPAID": PaymentStatus.SENT,
    "SCHEDULED": PaymentStatus.SENT,
    "PAYMENT_PENDING": PaymentStatus.PENDING,
    "PARTIALLY_PAID": PaymentStatus.PARTIALLY_PAID,
    "PARTIALLY_REFUNDED": PaymentStatus.PARTIALLY_PAID,
    "PAID": PaymentStatus.PAID,
    "REFUNDED": PaymentStatus.REFUNDED,
    "CANCELED": PaymentStatus.CANCELED,
    "FAILED": PaymentStatus.FAILED,
}


def map_square_status(square_status: Optional[str]) -> PaymentStatus:
    """Map a Square invoice status onto ours; unknown values read as draft."""
    if not square_status:
        return PaymentStatus.DRAFT
    status = SQUARE_STATUS_MAP.get(square_status.upper())
    if status is None:
        logger.warning("Unknown Square invoice status", extra={"square_status": square_status})
        return PaymentStatus.DRAFT
    return status


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Any) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(Decimal("0.01"))


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_invoice(invoice: dict) -> ProviderInvoice:
    """Build a ProviderInvoice from a Square invoice object."""
    provider_status = invoice.get("status") or "DRAFT"
    requests = invoice.get("payment_requests") or []

    paid = sum(
        (from_cents((r.get("total_completed_amount_money") or {}).get("amount")) for r in requests),
        Decimal("0.00"),
    )
    total = None
    computed = [r.get("computed_amount_money") for r in requests if r.get("computed_amount_money")]
    if computed:
        total = sum((from_cents(m.get("amount")) for m in computed), Decimal("0.00"))

    return ProviderInvoice(
        invoice_id=invoice["id"],
        status=map_square_status(provider_status),
        provider_status=provider_status,
        public_url=invoice.get("public_url"),
        paid_amount=paid,
        total_amount=total,
        version=invoice.get("version"),
        created_at=_parse_timestamp(invoice.get("created_at")),
        updated_at=_parse_timestamp(invoice.get("updated_at")),
    )


class SquareInvoiceClient(InvoiceProvider):
    """
    Square Invoices REST client.

    Every non-2xx response or transport error is raised as
    InvoiceProviderException carrying Square's error detail.
    """

    name = "square"

    def __init__(
        self,
        access_token: Optional[str] = None,
        location_id: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.SQUARE_ACCESS_TOKEN
        self.location_id = location_id if location_id is not None else settings.SQUARE_LOCATION_ID
        self.base_url = (base_url or settings.square_base_url).rstrip("/")
        self.api_version = api_version or settings.SQUARE_API_VERSION
        self.timeout = httpx.Timeout(timeout or settings.SQUARE_TIMEOUT_SECONDS, connect=10.0)
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with authentication."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Square-Version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        """Make API request."""
        url = f"{self.base_url}{endpoint}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    json=data,
                    params=params,
                )
        except httpx.RequestError as e:
            logger.error("Square request failed", extra={"endpoint": endpoint, "error": str(e)})
            raise InvoiceProviderException(
                message=f"Square request failed: {e}",
                details={"endpoint": endpoint},
            ) from e

        if response.status_code >= 400:
            errors = self._extract_errors(response)
            detail = "; ".join(e.get("detail") or e.get("code", "") for e in errors) or response.reason_phrase
            logger.error(
                "Square API error",
                extra={"endpoint": endpoint, "status_code": response.status_code, "detail": detail},
            )
            raise InvoiceProviderException(
                message=f"Square API error: {detail}",
                details={
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "errors": errors,
                },
            )

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _extract_errors(response: httpx.Response) -> list[dict]:
        try:
            body = response.json()
        except ValueError:
            return []
        if not isinstance(body, dict):
            return []
        return body.get("errors") or []

    # ==================== Invoices ====================

    @track_external_request("square", "create_invoice")
    async def create_invoice(
        self,
        line_items: list[InvoiceLineItem],
        due_date: date,
        delivery_method: str,
        reference: str,
        customer: InvoiceCustomer,
        tax_rate: Decimal = Decimal("0"),
    ) -> ProviderInvoice:
        customer_id = await self._create_customer(customer)
        order_id = await self._create_order(line_items, reference, tax_rate)

        invoice: dict[str, Any] = {
            "location_id": self.location_id,
            "order_id": order_id,
            "payment_requests": [
                {
                    "request_type": "BALANCE",
                    "due_date": due_date.isoformat(),
                }
            ],
            "delivery_method": delivery_method,
            "invoice_number": f"ARK-{reference}-{int(time.time() * 1000)}",
            "title": f"ARK Dumpster Service - Order {reference}",
            "description": f"Dumpster rental service for {customer.given_name} {customer.family_name or ''}".strip(),
            "accepted_payment_methods": {
                "card": True,
                "bank_account": False,
                "buy_now_pay_later": False,
                "square_gift_card": False,
            },
        }
        if customer_id:
            invoice["primary_recipient"] = {"customer_id": customer_id}

        data = await self._request(
            "POST",
            "/v2/invoices",
            data={"idempotency_key": str(uuid.uuid4()), "invoice": invoice},
        )
        result = parse_invoice(data["invoice"])
        logger.info(
            "Square invoice created",
            extra={"reference": reference, "invoice_id": result.invoice_id, "status": result.provider_status},
        )
        return result

    @track_external_request("square", "send_invoice")
    async def send_invoice(self, invoice_id: str) -> ProviderInvoice:
        current = await self.get_invoice(invoice_id)
        data = await self._request(
            "POST",
            f"/v2/invoices/{invoice_id}/publish",
            data={"version": current.version or 0, "idempotency_key": str(uuid.uuid4())},
        )
        return parse_invoice(data["invoice"])

    @track_external_request("square", "get_invoice")
    async def get_invoice(self, invoice_id: str) -> ProviderInvoice:
        data = await self._request("GET", f"/v2/invoices/{invoice_id}")
        return parse_invoice(data["invoice"])

    @track_external_request("square", "cancel_invoice")
    async def cancel_invoice(self, invoice_id: str, reason: Optional[str] = None) -> ProviderInvoice:
        current = await self.get_invoice(invoice_id)

        if current.provider_status == "DRAFT":
            await self._request(
                "DELETE",
                f"/v2/invoices/{invoice_id}",
                params={"version": current.version or 0},
            )
            logger.info("Square draft invoice deleted", extra={"invoice_id": invoice_id, "reason": reason})
            current.status = PaymentStatus.CANCELED
            current.provider_status = "DELETED"
            return current

        data = await self._request(
            "POST",
            f"/v2/invoices/{invoice_id}/cancel",
            data={"version": current.version or 0},
        )
        logger.info("Square invoice canceled", extra={"invoice_id": invoice_id, "reason": reason})
        return parse_invoice(data["invoice"])

    # ==================== Helpers ====================

    async def _create_customer(self, customer: InvoiceCustomer) -> Optional[str]:
        """Create the invoice recipient; the invoice is still attempted without one."""
        body = {
            "idempotency_key": str(uuid.uuid4()),
            "given_name": customer.given_name,
            "family_name": customer.family_name or "",
            "email_address": customer.email,
        }
        if customer.phone:
            body["phone_number"] = customer.phone
        if customer.reference_id:
            body["reference_id"] = customer.reference_id
            body["note"] = f"ARK Dumpster Order {customer.reference_id}"

        try:
            data = await self._request("POST", "/v2/customers", data=body)
        except InvoiceProviderException as e:
            logger.warning("Square customer creation failed", extra={"error": e.message})
            return None
        return (data.get("customer") or {}).get("id")

    async def _create_order(
        self,
        line_items: list[InvoiceLineItem],
        reference: str,
        tax_rate: Decimal,
    ) -> str:
        order: dict[str, Any] = {
            "location_id": self.location_id,
            "reference_id": reference,
            "line_items": [
                {
                    "name": item.name,
                    "quantity": str(item.quantity),
                    "note": item.description or item.name,
                    "item_type": "ITEM",
                    "base_price_money": {
                        "amount": to_cents(item.unit_price),
                        "currency": settings.CURRENCY,
                    },
                }
                for item in line_items
            ],
        }
        if tax_rate > 0:
            order["taxes"] = [
                {
                    "uid": "sales-tax",
                    "name": "Sales Tax",
                    "percentage": str((Decimal(tax_rate) * 100).normalize()),
                    "scope": "ORDER",
                }
            ]

        data = await self._request(
            "POST",
            "/v2/orders",
            data={"idempotency_key": str(uuid.uuid4()), "order": order},
        )
        order_id = (data.get("order") or {}).get("id")
        if not order_id:
            raise InvoiceProviderException(
                message="Square did not return an order id",
                details={"reference": reference},
            )
        return order_id


class SquareWebhookVerifier:
    """
    Square webhook signature check.

    Square signs notification_url + raw body with the subscription's
    signature key (HMAC-SHA256, base64).
    """

    def __init__(self, signature_key: Optional[str] = None, notification_url: Optional[str] = None):
        self.signature_key = signature_key if signature_key is not None else settings.SQUARE_WEBHOOK_SIGNATURE_KEY
        self.notification_url = notification_url if notification_url is not None else settings.SQUARE_WEBHOOK_URL

    @staticmethod
    def generate_signature(signature_key: str, notification_url: str, body: bytes) -> str:
        digest = hmac.new(
            signature_key.encode("utf-8"),
            notification_url.encode("utf-8") + body,
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode("utf-8")

    def verify(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.signature_key or not signature:
            return False
        expected = self.generate_signature(self.signature_key, self.notification_url, body)
        return hmac.compare_digest(expected, signature)


def parse_webhook_event(body: bytes) -> Optional[InvoiceWebhookEvent]:
    """
    Parse a Square webhook body.

    Returns None for events that do not carry an invoice.

    Raises:
        ValidationException: body is not a JSON webhook payload
    """
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationException(message="Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationException(message="Webhook body must be a JSON object")

    invoice = ((payload.get("data") or {}).get("object") or {}).get("invoice")
    if not invoice or not invoice.get("id"):
        return None

    return InvoiceWebhookEvent(
        event_id=payload.get("event_id") or "",
        event_type=payload.get("type") or "",
        invoice=parse_invoice(invoice),
        created_at=_parse_timestamp(payload.get("created_at")),
        raw=payload,
    )
