"""
Invoicing provider interface.

The payment lifecycle talks to the provider only through this interface;
SquareInvoiceClient is the production implementation and tests use a fake.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from dumpster_admin.models.payment import PaymentStatus


@dataclass
class InvoiceLineItem:
    """Billable line sent to the provider."""
    name: str
    quantity: int
    unit_price: Decimal  # dollars
    description: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class InvoiceCustomer:
    """Invoice recipient."""
    given_name: str
    family_name: Optional[str]
    email: str
    phone: Optional[str] = None
    reference_id: Optional[str] = None


@dataclass
class ProviderInvoice:
    """Provider's view of an invoice, with status already mapped to ours."""
    invoice_id: str
    status: PaymentStatus
    provider_status: str
    public_url: Optional[str] = None
    paid_amount: Decimal = Decimal("0.00")
    total_amount: Optional[Decimal] = None
    version: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class InvoiceWebhookEvent:
    """Provider notification about an invoice change."""
    event_id: str
    event_type: str
    invoice: ProviderInvoice
    created_at: Optional[datetime] = None
    raw: dict = field(default_factory=dict, repr=False)


class InvoiceProvider(ABC):
    """External invoicing service."""

    name: str = "provider"

    @abstractmethod
    async def create_invoice(
        self,
        line_items: list[InvoiceLineItem],
        due_date: date,
        delivery_method: str,
        reference: str,
        customer: InvoiceCustomer,
        tax_rate: Decimal = Decimal("0"),
    ) -> ProviderInvoice:
        """Create a draft invoice."""

    @abstractmethod
    async def send_invoice(self, invoice_id: str) -> ProviderInvoice:
        """Publish a draft so the customer receives it."""

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> ProviderInvoice:
        """Fetch current state."""

    @abstractmethod
    async def cancel_invoice(self, invoice_id: str, reason: Optional[str] = None) -> ProviderInvoice:
        """Cancel a published invoice, or delete a draft."""
