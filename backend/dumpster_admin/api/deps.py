"""
FastAPI dependency providers.

Services are built per request around the request-scoped session;
external clients are separate dependencies so tests can override them.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.database import get_db
from dumpster_admin.services.catalog_service import CatalogService
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver
from dumpster_admin.services.dumpster_service import DumpsterService
from dumpster_admin.services.geocoding import GeocodingClient
from dumpster_admin.services.invoice_provider import InvoiceProvider
from dumpster_admin.services.order_service import OrderService
from dumpster_admin.services.order_transitions import OrderTransitionEngine
from dumpster_admin.services.payment_lifecycle import PaymentLifecycleManager
from dumpster_admin.services.quote_promoter import QuotePromoter
from dumpster_admin.services.quote_service import QuoteService
from dumpster_admin.services.square_client import SquareInvoiceClient, SquareWebhookVerifier


def get_invoice_provider() -> InvoiceProvider:
    return SquareInvoiceClient()


def get_geocoder() -> GeocodingClient:
    return GeocodingClient()


def get_webhook_verifier() -> SquareWebhookVerifier:
    return SquareWebhookVerifier()


def get_resolver(
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> DumpsterAssignmentResolver:
    return DumpsterAssignmentResolver(db, geocoder=geocoder)


def get_transition_engine(
    db: AsyncSession = Depends(get_db),
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
) -> OrderTransitionEngine:
    return OrderTransitionEngine(db, resolver=resolver)


def get_catalog_service(db: AsyncSession = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_order_service(
    db: AsyncSession = Depends(get_db),
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
    catalog: CatalogService = Depends(get_catalog_service),
) -> OrderService:
    return OrderService(db, resolver=resolver, catalog=catalog)


def get_dumpster_service(db: AsyncSession = Depends(get_db)) -> DumpsterService:
    return DumpsterService(db)


def get_quote_service(db: AsyncSession = Depends(get_db)) -> QuoteService:
    return QuoteService(db)


def get_quote_promoter(
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> QuotePromoter:
    return QuotePromoter(db, catalog=catalog)


def get_payment_manager(
    db: AsyncSession = Depends(get_db),
    provider: InvoiceProvider = Depends(get_invoice_provider),
) -> PaymentLifecycleManager:
    return PaymentLifecycleManager(db, provider)
