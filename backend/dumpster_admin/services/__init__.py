"""
Services module.

Business logic for the dumpster rental workflow:
- Order status transition engine
- Dumpster assignment resolver
- Quote to order promoter
- Payment lifecycle manager
- Service catalog
- Square invoicing and Google geocoding clients
"""
from dumpster_admin.services.catalog_service import CatalogService
from dumpster_admin.services.drivers import validate_driver
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver
from dumpster_admin.services.dumpster_service import DumpsterService
from dumpster_admin.services.geocoding import GeocodingClient
from dumpster_admin.services.invoice_provider import (
    InvoiceCustomer,
    InvoiceLineItem,
    InvoiceProvider,
    InvoiceWebhookEvent,
    ProviderInvoice,
)
from dumpster_admin.services.numbering import SequenceNumberGenerator
from dumpster_admin.services.order_service import OrderService
from dumpster_admin.services.order_transitions import (
    ALLOWED_TRANSITIONS,
    OrderTransitionEngine,
    allowed_transitions,
    is_valid_transition,
)
from dumpster_admin.services.payment_lifecycle import PaymentLifecycleManager
from dumpster_admin.services.quote_promoter import QuotePromoter
from dumpster_admin.services.quote_service import QuoteService
from dumpster_admin.services.square_client import SquareInvoiceClient, SquareWebhookVerifier

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CatalogService",
    "DumpsterAssignmentResolver",
    "DumpsterService",
    "GeocodingClient",
    "InvoiceCustomer",
    "InvoiceLineItem",
    "InvoiceProvider",
    "InvoiceWebhookEvent",
    "OrderService",
    "OrderTransitionEngine",
    "PaymentLifecycleManager",
    "ProviderInvoice",
    "QuotePromoter",
    "QuoteService",
    "SequenceNumberGenerator",
    "SquareInvoiceClient",
    "SquareWebhookVerifier",
    "allowed_transitions",
    "is_valid_transition",
    "validate_driver",
]
