"""
API endpoint tests.
"""
import json

import pytest
from httpx import AsyncClient

API = "/api/v1"


async def create_dumpster(client: AsyncClient, name: str, **extra) -> dict:
    response = await client.post(f"{API}/dumpsters", json={"name": name, "size": "20yd", **extra})
    assert response.status_code == 201
    return response.json()


async def create_order(client: AsyncClient, **extra) -> dict:
    payload = {
        "first_name": "Jane",
        "last_name": "Smith",
        "email": "jane@example.com",
        "address": "123 Main St",
        "city": "Palm Beach",
        "state": "FL",
        "dropoff_date": "2026-11-02",
        "dropoff_time": "08:00",
        "line_items": [{"name": "20yd Rental", "unit_price": "350.00"}],
        **extra,
    }
    response = await client.post(f"{API}/orders", json=payload)
    assert response.status_code == 201
    return response.json()


def signed(verifier, payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    signature = verifier.generate_signature(verifier.signature_key, verifier.notification_url, body)
    return body, {"x-square-hmacsha256-signature": signature, "content-type": "application/json"}


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test basic health check."""
        response = await client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client: AsyncClient):
        """Test that dependency checks are reported."""
        response = await client.get(f"{API}/health/detailed")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"] == "healthy"
        assert data["checks"]["geocoding"] == "healthy"

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        """Test root endpoint."""
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["docs"] == f"{API}/docs"


class TestOrderEndpoints:
    """Tests for order endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient):
        """Test creating and reading an order."""
        created = await create_order(client)

        assert created["order_number"] == "ORD-000001"
        assert created["status"] == "scheduled"
        assert created["quoted_price"] == "350.00"
        assert created["line_items"][0]["total_price"] == "350.00"

        response = await client.get(f"{API}/orders/{created['id']}")
        assert response.status_code == 200
        assert response.json()["email"] == "jane@example.com"

    @pytest.mark.asyncio
    async def test_create_missing_dropoff(self, client: AsyncClient):
        """Test that orders need a dropoff date."""
        response = await client.post(
            f"{API}/orders",
            json={"first_name": "Jane", "email": "jane@example.com", "dropoff_time": "08:00"},
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "dropoff_date" in [e["field"] for e in error["details"]["errors"]]

    @pytest.mark.asyncio
    async def test_null_required_field(self, client: AsyncClient):
        """Test that nulling a required column is a validation error, not a database error."""
        order = await create_order(client)

        response = await client.patch(f"{API}/orders/{order['id']}", json={"first_name": None})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert (await client.get(f"{API}/orders/{order['id']}")).json()["first_name"] == "Jane"

    @pytest.mark.asyncio
    async def test_address_edit_follows_dumpster(self, client: AsyncClient):
        """Test that an address edit is reflected on the assigned dumpster."""
        order = await create_order(client)
        dumpster = await create_dumpster(client, "D-300")
        await client.post(f"{API}/orders/{order['id']}/dumpster", json={"dumpster_id": dumpster["id"]})

        response = await client.patch(f"{API}/orders/{order['id']}", json={"address": "9 New Rd", "city": "Miami"})
        assert response.status_code == 200

        current = (await client.get(f"{API}/orders/{order['id']}/dumpster")).json()
        assert current["address"] == "9 New Rd, Miami, FL"

    @pytest.mark.asyncio
    async def test_not_found_error_body(self, client: AsyncClient):
        """Test the standard error envelope."""
        response = await client.get(f"{API}/orders/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "ORDER_NOT_FOUND"
        assert error["status_code"] == 404
        assert error["retryable"] is False
        assert error["request_id"]

    @pytest.mark.asyncio
    async def test_list_with_filter(self, client: AsyncClient):
        """Test listing orders by status."""
        await create_order(client)
        await create_order(client, email="other@example.com")

        response = await client.get(f"{API}/orders", params={"status": "scheduled", "size": 1})

        data = response.json()
        assert data["total"] == 2
        assert len(data["items"]) == 1
        assert data["size"] == 1

    @pytest.mark.asyncio
    async def test_allowed_transitions(self, client: AsyncClient):
        """Test the next-status listing."""
        order = await create_order(client)

        response = await client.get(f"{API}/orders/{order['id']}/transitions")

        assert response.json() == {"status": "scheduled", "allowed": ["pending", "on_way", "cancelled"]}

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client: AsyncClient):
        """Test that a disallowed move is a 400 with the allowed list."""
        order = await create_order(client)

        response = await client.post(f"{API}/orders/{order['id']}/status", json={"status": "delivered"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_STATUS_TRANSITION"
        assert error["details"]["allowed"] == ["pending", "on_way", "cancelled"]

    @pytest.mark.asyncio
    async def test_dispatch_needs_dumpster(self, client: AsyncClient):
        """Test that on_way without a dumpster is refused with a dedicated code."""
        order = await create_order(client)

        response = await client.post(f"{API}/orders/{order['id']}/status", json={"status": "on_way"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NEEDS_DUMPSTER_ASSIGNMENT"

    @pytest.mark.asyncio
    async def test_unknown_driver(self, client: AsyncClient):
        """Test that assignees are validated on edit."""
        order = await create_order(client)

        response = await client.patch(f"{API}/orders/{order['id']}", json={"assigned_to": "Bob"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DRIVER"


class TestDumpsterEndpoints:
    """Tests for dumpster and assignment endpoints."""

    @pytest.mark.asyncio
    async def test_assign_and_release(self, client: AsyncClient, geocoder):
        """Test assigning, reading and releasing an order's dumpster."""
        order = await create_order(client)
        dumpster = await create_dumpster(client, "D-100")

        response = await client.post(f"{API}/orders/{order['id']}/dumpster", json={"dumpster_id": dumpster["id"]})
        assert response.status_code == 200
        assigned = response.json()
        assert assigned["status"] == "in_use"
        assert assigned["current_order_id"] == order["id"]
        assert assigned["latitude"] == pytest.approx(geocoder.coords[0])

        current = await client.get(f"{API}/orders/{order['id']}/dumpster")
        assert current.json()["name"] == "D-100"

        released = await client.delete(f"{API}/orders/{order['id']}/dumpster")
        assert released.json()["status"] == "available"
        assert (await client.get(f"{API}/orders/{order['id']}/dumpster")).json() is None

    @pytest.mark.asyncio
    async def test_conflict(self, client: AsyncClient):
        """Test that a held dumpster returns 409."""
        first = await create_order(client)
        second = await create_order(client, email="b@example.com")
        dumpster = await create_dumpster(client, "D-200")
        await client.post(f"{API}/orders/{first['id']}/dumpster", json={"dumpster_id": dumpster["id"]})

        response = await client.post(f"{API}/orders/{second['id']}/dumpster", json={"dumpster_id": dumpster["id"]})

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "ALREADY_ASSIGNED"
        assert error["retryable"] is True

    @pytest.mark.asyncio
    async def test_available_and_stats(self, client: AsyncClient):
        """Test the candidate list and inventory counts."""
        order = await create_order(client)
        taken = await create_dumpster(client, "D-1")
        await create_dumpster(client, "D-2")
        await create_dumpster(client, "D-3", status="maintenance")
        await client.post(f"{API}/orders/{order['id']}/dumpster", json={"dumpster_id": taken["id"]})

        available = (await client.get(f"{API}/dumpsters/available")).json()
        stats = (await client.get(f"{API}/dumpsters/stats")).json()

        assert [d["name"] for d in available["items"]] == ["D-2"]
        assert stats == {"total": 3, "available": 1, "in_use": 1, "maintenance": 1, "out_of_service": 0}

    @pytest.mark.asyncio
    async def test_cannot_set_in_use(self, client: AsyncClient):
        """Test that in_use cannot be set by hand."""
        dumpster = await create_dumpster(client, "D-9")

        response = await client.patch(f"{API}/dumpsters/{dumpster['id']}", json={"status": "in_use"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_null_status_rejected(self, client: AsyncClient):
        """Test that a dumpster status cannot be nulled."""
        dumpster = await create_dumpster(client, "D-10")

        response = await client.patch(f"{API}/dumpsters/{dumpster['id']}", json={"status": None})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestWebhookEndpoint:
    """Tests for the Square webhook receiver."""

    @pytest.mark.asyncio
    async def test_bad_signature(self, client: AsyncClient):
        """Test that unsigned bodies are rejected before parsing."""
        response = await client.post(
            f"{API}/webhooks/square",
            content=b"not even json",
            headers={"x-square-hmacsha256-signature": "forged"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_non_invoice_event(self, client: AsyncClient, webhook_verifier):
        """Test that events without an invoice are acknowledged and ignored."""
        body, headers = signed(webhook_verifier, {"event_id": "evt_x", "type": "customer.created", "data": {}})

        response = await client.post(f"{API}/webhooks/square", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "applied": False, "payment_id": None}


class TestEndToEnd:
    """Quote to paid, completed order through the API."""

    @pytest.mark.asyncio
    async def test_quote_to_completed_order(self, client: AsyncClient, webhook_verifier, invoice_provider):
        """Test the full back office flow."""
        # Quote request comes in and gets priced
        response = await client.post(
            f"{API}/quotes",
            json={
                "first_name": "Carlos",
                "last_name": "Diaz",
                "email": "carlos@example.com",
                "address": "9 Ocean Ave",
                "city": "Jupiter",
                "state": "FL",
                "dumpster_size": "15yd",
                "dropoff_date": "2026-11-05",
                "dropoff_time": "09:00",
            },
        )
        assert response.status_code == 201
        quote = response.json()
        assert quote["status"] == "pending"

        response = await client.patch(f"{API}/quotes/{quote['id']}", json={"quoted_price": "425"})
        assert response.json()["status"] == "quoted"

        # Convert to an order
        response = await client.post(f"{API}/quotes/{quote['id']}/promote", json={"driver_notes": "Gate on left"})
        assert response.status_code == 201
        order = response.json()
        assert order["order_number"] == "ORD-000001"
        assert order["assigned_to"] == "Ariel"
        assert order["line_items"][0]["name"] == "Dumpster Rental"

        again = await client.post(f"{API}/quotes/{quote['id']}/promote")
        assert again.status_code == 409
        assert (await client.get(f"{API}/quotes/{quote['id']}")).json()["status"] == "accepted"

        # Dispatch
        dumpster = await create_dumpster(client, "D-015")
        response = await client.post(f"{API}/orders/{order['id']}/dumpster", json={"dumpster_id": dumpster["id"]})
        assert response.status_code == 200
        for status in ("on_way", "delivered"):
            response = await client.post(f"{API}/orders/{order['id']}/status", json={"status": status})
            assert response.status_code == 200
        assert response.json()["actual_delivery_date"] is not None

        # Invoice and payment
        response = await client.post(f"{API}/orders/{order['id']}/payments")
        assert response.status_code == 201
        payment = response.json()
        assert payment["status"] == "draft"
        assert payment["total_amount"] == "425.00"

        duplicate = await client.post(f"{API}/orders/{order['id']}/payments")
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "PAYMENT_ALREADY_ACTIVE"

        response = await client.post(f"{API}/payments/{payment['id']}/send")
        assert response.json()["status"] == "sent"

        body, headers = signed(
            webhook_verifier,
            {
                "event_id": "evt_paid_1",
                "type": "invoice.payment_made",
                "created_at": "2026-11-06T12:00:00Z",
                "data": {
                    "object": {
                        "invoice": {
                            "id": payment["provider_invoice_id"],
                            "status": "PAID",
                            "version": 2,
                            "payment_requests": [
                                {
                                    "computed_amount_money": {"amount": 42500, "currency": "USD"},
                                    "total_completed_amount_money": {"amount": 42500, "currency": "USD"},
                                }
                            ],
                        }
                    }
                },
            },
        )
        response = await client.post(f"{API}/webhooks/square", content=body, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"received": True, "applied": True, "payment_id": payment["id"]}

        replay = await client.post(f"{API}/webhooks/square", content=body, headers=headers)
        assert replay.json()["applied"] is False

        paid = (await client.get(f"{API}/payments/{payment['id']}")).json()
        assert paid["status"] == "paid"
        assert paid["paid_amount"] == "425.00"

        # Pickup and close out
        for status in ("on_way_pickup", "completed"):
            response = await client.post(f"{API}/orders/{order['id']}/status", json={"status": status})
            assert response.status_code == 200
        completed = response.json()
        assert completed["status"] == "completed"
        assert completed["completed_with_dumpster_name"] == "D-015"

        payments = (await client.get(f"{API}/orders/{order['id']}/payments")).json()
        assert payments["total"] == 1
        assert [c[0] for c in invoice_provider.calls] == ["create", "send"]
