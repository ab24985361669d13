"""
Tests for the Square invoicing client and webhook helpers.
"""
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from dumpster_admin.core.exceptions import InvoiceProviderException, ValidationException
from dumpster_admin.models import PaymentStatus
from dumpster_admin.services.invoice_provider import InvoiceCustomer, InvoiceLineItem
from dumpster_admin.services.square_client import (
    SquareInvoiceClient,
    SquareWebhookVerifier,
    from_cents,
    map_square_status,
    parse_invoice,
    parse_webhook_event,
    to_cents,
)

BASE_URL = "https://connect.squareupsandbox.com"


def square_invoice(invoice_id="inv_1", status="DRAFT", version=0, paid_cents=0, total_cents=35000, **extra):
    invoice = {
        "id": invoice_id,
        "status": status,
        "version": version,
        "payment_requests": [
            {
                "request_type": "BALANCE",
                "computed_amount_money": {"amount": total_cents, "currency": "USD"},
                "total_completed_amount_money": {"amount": paid_cents, "currency": "USD"},
            }
        ],
    }
    invoice.update(extra)
    return invoice


class SquareRecorder:
    """Mock transport handler that records requests and serves canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND", "detail": "No route"}]})
        return handler(request) if callable(handler) else handler

    def bodies(self, path):
        return [json.loads(r.content) for r in self.requests if r.url.path == path and r.content]


def make_client(recorder):
    return SquareInvoiceClient(
        access_token="sq-token",
        location_id="LOC123",
        base_url=BASE_URL,
        api_version="2024-10-17",
        transport=httpx.MockTransport(recorder),
    )


LINE_ITEMS = [
    InvoiceLineItem(name="Dumpster Rental", quantity=1, unit_price=Decimal("350.00"), description="20yd dumpster"),
    InvoiceLineItem(name="Extra Day", quantity=2, unit_price=Decimal("25.50")),
]
CUSTOMER = InvoiceCustomer(
    given_name="Jane",
    family_name="Smith",
    email="jane@example.com",
    phone="(561) 555-0100",
    reference_id="ORD-000042",
)


class TestConversions:
    """Tests for money and status mapping helpers."""

    def test_cents_round_trip(self):
        """Test dollar to cent conversion with rounding."""
        assert to_cents(Decimal("350.00")) == 35000
        assert to_cents(Decimal("25.505")) == 2551
        assert from_cents(35000) == Decimal("350.00")
        assert from_cents(None) == Decimal("0.00")

    def test_status_mapping(self):
        """Test that Square statuses map onto payment statuses."""
        assert map_square_status("DRAFT") == PaymentStatus.DRAFT
        assert map_square_status("UNPAID") == PaymentStatus.SENT
        assert map_square_status("SCHEDULED") == PaymentStatus.SENT
        assert map_square_status("PARTIALLY_PAID") == PaymentStatus.PARTIALLY_PAID
        assert map_square_status("PAID") == PaymentStatus.PAID
        assert map_square_status("CANCELED") == PaymentStatus.CANCELED
        assert map_square_status("REFUNDED") == PaymentStatus.REFUNDED

    def test_unknown_status_reads_as_draft(self):
        """Test that unknown or missing statuses fall back to draft."""
        assert map_square_status("SOMETHING_NEW") == PaymentStatus.DRAFT
        assert map_square_status(None) == PaymentStatus.DRAFT

    def test_parse_invoice_amounts(self):
        """Test that paid and total amounts come from the payment requests."""
        parsed = parse_invoice(
            square_invoice(status="PARTIALLY_PAID", paid_cents=10000, public_url="https://sq.link/i")
        )
        assert parsed.status == PaymentStatus.PARTIALLY_PAID
        assert parsed.provider_status == "PARTIALLY_PAID"
        assert parsed.paid_amount == Decimal("100.00")
        assert parsed.total_amount == Decimal("350.00")
        assert parsed.public_url == "https://sq.link/i"


class TestCreateInvoice:
    """Tests for SquareInvoiceClient.create_invoice."""

    @pytest.mark.asyncio
    async def test_create_flow(self):
        """Test customer, order and invoice calls in sequence."""
        recorder = SquareRecorder(
            {
                ("POST", "/v2/customers"): httpx.Response(200, json={"customer": {"id": "CUST1"}}),
                ("POST", "/v2/orders"): httpx.Response(200, json={"order": {"id": "SQORDER1"}}),
                ("POST", "/v2/invoices"): httpx.Response(200, json={"invoice": square_invoice()}),
            }
        )

        result = await make_client(recorder).create_invoice(
            LINE_ITEMS, date(2026, 11, 9), "EMAIL", "ORD-000042", CUSTOMER
        )

        assert [r.url.path for r in recorder.requests] == ["/v2/customers", "/v2/orders", "/v2/invoices"]
        assert recorder.requests[0].headers["Authorization"] == "Bearer sq-token"
        assert recorder.requests[0].headers["Square-Version"] == "2024-10-17"

        order = recorder.bodies("/v2/orders")[0]["order"]
        assert order["location_id"] == "LOC123"
        assert order["reference_id"] == "ORD-000042"
        assert [li["base_price_money"]["amount"] for li in order["line_items"]] == [35000, 2550]
        assert [li["quantity"] for li in order["line_items"]] == ["1", "2"]
        assert "taxes" not in order

        invoice = recorder.bodies("/v2/invoices")[0]["invoice"]
        assert invoice["order_id"] == "SQORDER1"
        assert invoice["primary_recipient"] == {"customer_id": "CUST1"}
        assert invoice["payment_requests"][0]["due_date"] == "2026-11-09"
        assert invoice["invoice_number"].startswith("ARK-ORD-000042-")

        assert result.invoice_id == "inv_1"
        assert result.status == PaymentStatus.DRAFT

    @pytest.mark.asyncio
    async def test_tax_line_sent(self):
        """Test that a non-zero rate adds an order-level tax."""
        recorder = SquareRecorder(
            {
                ("POST", "/v2/customers"): httpx.Response(200, json={"customer": {"id": "CUST1"}}),
                ("POST", "/v2/orders"): httpx.Response(200, json={"order": {"id": "SQORDER1"}}),
                ("POST", "/v2/invoices"): httpx.Response(200, json={"invoice": square_invoice()}),
            }
        )

        await make_client(recorder).create_invoice(
            LINE_ITEMS, date(2026, 11, 9), "EMAIL", "ORD-000042", CUSTOMER, tax_rate=Decimal("0.07")
        )

        taxes = recorder.bodies("/v2/orders")[0]["order"]["taxes"]
        assert taxes[0]["percentage"] == "7"
        assert taxes[0]["scope"] == "ORDER"

    @pytest.mark.asyncio
    async def test_customer_failure_is_not_fatal(self):
        """Test that the invoice is still created without a recipient record."""
        recorder = SquareRecorder(
            {
                ("POST", "/v2/customers"): httpx.Response(
                    400, json={"errors": [{"code": "INVALID_EMAIL_ADDRESS", "detail": "Bad email"}]}
                ),
                ("POST", "/v2/orders"): httpx.Response(200, json={"order": {"id": "SQORDER1"}}),
                ("POST", "/v2/invoices"): httpx.Response(200, json={"invoice": square_invoice()}),
            }
        )

        result = await make_client(recorder).create_invoice(
            LINE_ITEMS, date(2026, 11, 9), "EMAIL", "ORD-000042", CUSTOMER
        )

        assert result.invoice_id == "inv_1"
        assert "primary_recipient" not in recorder.bodies("/v2/invoices")[0]["invoice"]

    @pytest.mark.asyncio
    async def test_api_error_carries_detail(self):
        """Test that Square's error detail is surfaced."""
        recorder = SquareRecorder(
            {
                ("POST", "/v2/customers"): httpx.Response(200, json={"customer": {"id": "CUST1"}}),
                ("POST", "/v2/orders"): httpx.Response(
                    400, json={"errors": [{"code": "NOT_FOUND", "detail": "Location LOC123 not found"}]}
                ),
            }
        )

        with pytest.raises(InvoiceProviderException) as exc_info:
            await make_client(recorder).create_invoice(
                LINE_ITEMS, date(2026, 11, 9), "EMAIL", "ORD-000042", CUSTOMER
            )

        assert exc_info.value.message == "Square API error: Location LOC123 not found"
        assert exc_info.value.details["status_code"] == 400
        assert "/v2/invoices" not in [r.url.path for r in recorder.requests]

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test that transport failures become provider errors."""

        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = SquareInvoiceClient(
            access_token="sq-token",
            location_id="LOC123",
            base_url=BASE_URL,
            transport=httpx.MockTransport(refuse),
        )

        with pytest.raises(InvoiceProviderException) as exc_info:
            await client.get_invoice("inv_1")
        assert exc_info.value.status_code == 502


class TestInvoiceActions:
    """Tests for send and cancel."""

    @pytest.mark.asyncio
    async def test_send_publishes_current_version(self):
        """Test that publish sends the version read just before."""
        recorder = SquareRecorder(
            {
                ("GET", "/v2/invoices/inv_1"): httpx.Response(200, json={"invoice": square_invoice(version=3)}),
                ("POST", "/v2/invoices/inv_1/publish"): httpx.Response(
                    200,
                    json={"invoice": square_invoice(status="UNPAID", version=4, public_url="https://sq.link/inv_1")},
                ),
            }
        )

        result = await make_client(recorder).send_invoice("inv_1")

        assert recorder.bodies("/v2/invoices/inv_1/publish")[0]["version"] == 3
        assert result.status == PaymentStatus.SENT
        assert result.public_url == "https://sq.link/inv_1"

    @pytest.mark.asyncio
    async def test_cancel_draft_deletes(self):
        """Test that drafts are deleted rather than canceled."""
        recorder = SquareRecorder(
            {
                ("GET", "/v2/invoices/inv_1"): httpx.Response(200, json={"invoice": square_invoice(version=2)}),
                ("DELETE", "/v2/invoices/inv_1"): httpx.Response(200, json={}),
            }
        )

        result = await make_client(recorder).cancel_invoice("inv_1")

        delete = recorder.requests[-1]
        assert delete.method == "DELETE"
        assert delete.url.params["version"] == "2"
        assert result.status == PaymentStatus.CANCELED
        assert result.provider_status == "DELETED"

    @pytest.mark.asyncio
    async def test_cancel_published(self):
        """Test that published invoices are canceled with their version."""
        recorder = SquareRecorder(
            {
                ("GET", "/v2/invoices/inv_1"): httpx.Response(
                    200, json={"invoice": square_invoice(status="UNPAID", version=5)}
                ),
                ("POST", "/v2/invoices/inv_1/cancel"): httpx.Response(
                    200, json={"invoice": square_invoice(status="CANCELED", version=6)}
                ),
            }
        )

        result = await make_client(recorder).cancel_invoice("inv_1", reason="Duplicate")

        assert recorder.bodies("/v2/invoices/inv_1/cancel")[0] == {"version": 5}
        assert result.status == PaymentStatus.CANCELED
        assert result.provider_status == "CANCELED"


class TestWebhookVerifier:
    """Tests for Square webhook signatures."""

    URL = "https://admin.example.com/api/v1/webhooks/square"
    BODY = b'{"type":"invoice.updated"}'

    def test_valid_signature(self):
        """Test that a correctly signed body verifies."""
        verifier = SquareWebhookVerifier(signature_key="key", notification_url=self.URL)
        signature = SquareWebhookVerifier.generate_signature("key", self.URL, self.BODY)
        assert verifier.verify(self.BODY, signature)

    def test_tampered_body(self):
        """Test that any body change invalidates the signature."""
        verifier = SquareWebhookVerifier(signature_key="key", notification_url=self.URL)
        signature = SquareWebhookVerifier.generate_signature("key", self.URL, self.BODY)
        assert not verifier.verify(self.BODY + b" ", signature)

    def test_url_is_part_of_signature(self):
        """Test that a signature for another URL is rejected."""
        verifier = SquareWebhookVerifier(signature_key="key", notification_url=self.URL)
        signature = SquareWebhookVerifier.generate_signature("key", "https://other.example.com/hook", self.BODY)
        assert not verifier.verify(self.BODY, signature)

    def test_missing_key_or_signature(self):
        """Test that verification fails closed."""
        signature = SquareWebhookVerifier.generate_signature("key", self.URL, self.BODY)
        assert not SquareWebhookVerifier(signature_key="", notification_url=self.URL).verify(self.BODY, signature)
        assert not SquareWebhookVerifier(signature_key="key", notification_url=self.URL).verify(self.BODY, None)


class TestParseWebhookEvent:
    """Tests for webhook body parsing."""

    def test_invoice_event(self):
        """Test that invoice events carry the parsed invoice."""
        body = json.dumps(
            {
                "event_id": "evt_123",
                "type": "invoice.payment_made",
                "created_at": "2026-11-10T15:00:00Z",
                "data": {"object": {"invoice": square_invoice(status="PAID", paid_cents=35000)}},
            }
        ).encode()

        event = parse_webhook_event(body)

        assert event.event_id == "evt_123"
        assert event.event_type == "invoice.payment_made"
        assert event.invoice.status == PaymentStatus.PAID
        assert event.invoice.paid_amount == Decimal("350.00")
        assert event.created_at.year == 2026

    def test_event_without_invoice(self):
        """Test that non-invoice events are skipped."""
        body = json.dumps({"event_id": "evt_1", "type": "payment.created", "data": {"object": {}}}).encode()
        assert parse_webhook_event(body) is None

    def test_invalid_json(self):
        """Test that garbage bodies are rejected."""
        with pytest.raises(ValidationException):
            parse_webhook_event(b"not json")
