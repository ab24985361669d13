"""
Pytest configuration and fixtures.
"""
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dumpster_admin.api.deps import get_geocoder, get_invoice_provider, get_webhook_verifier
from dumpster_admin.core.database import Base, get_db
from dumpster_admin.core.exceptions import GeocodingException, InvoiceProviderException
from dumpster_admin.main import app
from dumpster_admin.models import (
    Dumpster,
    DumpsterStatus,
    Order,
    OrderLineItem,
    OrderStatus,
    Quote,
    QuoteStatus,
)
from dumpster_admin.models.payment import PaymentStatus
from dumpster_admin.services.invoice_provider import InvoiceProvider, ProviderInvoice
from dumpster_admin.services.square_client import SquareWebhookVerifier

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

WEBHOOK_SIGNATURE_KEY = "test-signature-key"
WEBHOOK_URL = "https://admin.example.com/api/v1/webhooks/square"


# ============================================================
# Fakes for external services
# ============================================================


class FakeInvoiceProvider(InvoiceProvider):
    """In-memory invoicing provider that records calls."""

    name = "fake"

    def __init__(self):
        self.invoices: dict[str, ProviderInvoice] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_with: Optional[str] = None
        self.last_line_items: list = []
        self._counter = 0

    def _check_failure(self):
        if self.fail_with:
            raise InvoiceProviderException(message=f"Square API error: {self.fail_with}")

    async def create_invoice(self, line_items, due_date, delivery_method, reference, customer, tax_rate=Decimal("0")):
        self.calls.append(("create", reference))
        self.last_line_items = list(line_items)
        self._check_failure()
        self._counter += 1
        invoice_id = f"inv_{self._counter}"
        subtotal = sum((item.total for item in line_items), Decimal("0.00"))
        invoice = ProviderInvoice(
            invoice_id=invoice_id,
            status=PaymentStatus.DRAFT,
            provider_status="DRAFT",
            total_amount=subtotal,
            version=0,
        )
        self.invoices[invoice_id] = invoice
        return replace(invoice)

    async def send_invoice(self, invoice_id):
        self.calls.append(("send", invoice_id))
        self._check_failure()
        invoice = self.invoices[invoice_id]
        invoice.status = PaymentStatus.SENT
        invoice.provider_status = "UNPAID"
        invoice.public_url = f"https://squareup.com/pay-invoice/{invoice_id}"
        invoice.version = (invoice.version or 0) + 1
        return replace(invoice)

    async def get_invoice(self, invoice_id):
        self.calls.append(("get", invoice_id))
        self._check_failure()
        return replace(self.invoices[invoice_id])

    async def cancel_invoice(self, invoice_id, reason=None):
        self.calls.append(("cancel", invoice_id))
        self._check_failure()
        invoice = self.invoices[invoice_id]
        if invoice.provider_status == "DRAFT":
            del self.invoices[invoice_id]
            return replace(invoice, status=PaymentStatus.CANCELED, provider_status="DELETED")
        invoice.status = PaymentStatus.CANCELED
        invoice.provider_status = "CANCELED"
        return replace(invoice)

    def set_state(self, invoice_id, status, provider_status, paid_amount=None):
        """Simulate a change made on the provider side."""
        invoice = self.invoices[invoice_id]
        invoice.status = status
        invoice.provider_status = provider_status
        if paid_amount is not None:
            invoice.paid_amount = Decimal(paid_amount)


class FakeGeocoder:
    """Geocoder returning fixed coordinates, or failing on demand."""

    enabled = True

    def __init__(self, coords=(26.7153, -80.0534)):
        self.coords = coords
        self.fail = False
        self.calls: list[str] = []

    async def geocode(self, address):
        self.calls.append(address)
        if self.fail:
            raise GeocodingException(message="Geocoding failed with status OVER_QUERY_LIMIT")
        return self.coords


# ============================================================
# Database
# ============================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for tests."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def invoice_provider():
    return FakeInvoiceProvider()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def webhook_verifier():
    return SquareWebhookVerifier(signature_key=WEBHOOK_SIGNATURE_KEY, notification_url=WEBHOOK_URL)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    invoice_provider,
    geocoder,
    webhook_verifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_invoice_provider] = lambda: invoice_provider
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_webhook_verifier] = lambda: webhook_verifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# Data factories
# ============================================================


@pytest.fixture
def make_dumpster(db_session: AsyncSession):
    """Insert a dumpster."""

    async def _make(name: Optional[str] = None, status: DumpsterStatus = DumpsterStatus.AVAILABLE, **kwargs):
        dumpster = Dumpster(
            name=name or f"D-{uuid4().hex[:6].upper()}",
            size=kwargs.pop("size", "20yd"),
            status=status,
            **kwargs,
        )
        db_session.add(dumpster)
        await db_session.commit()
        return dumpster

    return _make


@pytest.fixture
def make_order(db_session: AsyncSession):
    """Insert an order with one line item."""

    async def _make(status: OrderStatus = OrderStatus.SCHEDULED, price: str = "350.00", **kwargs):
        order = Order(
            order_number=kwargs.pop("order_number", f"ORD-{uuid4().hex[:6].upper()}"),
            first_name=kwargs.pop("first_name", "Jane"),
            last_name=kwargs.pop("last_name", "Smith"),
            email=kwargs.pop("email", "jane@example.com"),
            phone=kwargs.pop("phone", "(561) 555-0100"),
            address=kwargs.pop("address", "123 Main St"),
            city=kwargs.pop("city", "Palm Beach"),
            state=kwargs.pop("state", "FL"),
            zip_code=kwargs.pop("zip_code", "33480"),
            dropoff_date=kwargs.pop("dropoff_date", date(2026, 11, 2)),
            dropoff_time=kwargs.pop("dropoff_time", "08:00"),
            status=status,
            quoted_price=Decimal(price),
            line_items=[
                OrderLineItem(
                    position=0,
                    name="Dumpster Rental",
                    quantity=1,
                    unit_price=Decimal(price),
                    total_price=Decimal(price),
                )
            ]
            if Decimal(price) > 0
            else [],
            **kwargs,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    return _make


@pytest.fixture
def make_quote(db_session: AsyncSession):
    """Insert a quote."""

    async def _make(**kwargs):
        quote = Quote(
            first_name=kwargs.pop("first_name", "Carlos"),
            last_name=kwargs.pop("last_name", "Diaz"),
            email=kwargs.pop("email", "carlos@example.com"),
            phone=kwargs.pop("phone", "(561) 555-0199"),
            address=kwargs.pop("address", "9 Ocean Ave"),
            city=kwargs.pop("city", "Jupiter"),
            state=kwargs.pop("state", "FL"),
            zip_code=kwargs.pop("zip_code", "33458"),
            dumpster_size=kwargs.pop("dumpster_size", "15yd"),
            dropoff_date=kwargs.pop("dropoff_date", date(2026, 11, 5)),
            dropoff_time=kwargs.pop("dropoff_time", "09:00"),
            status=kwargs.pop("status", QuoteStatus.QUOTED),
            quoted_price=kwargs.pop("quoted_price", Decimal("425.00")),
            quote_notes=kwargs.pop("quote_notes", "Gate code 4411"),
            quoted_at=datetime.now(timezone.utc),
            **kwargs,
        )
        db_session.add(quote)
        await db_session.commit()
        return quote

    return _make
