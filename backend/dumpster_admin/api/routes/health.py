"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.api.deps import get_geocoder, get_invoice_provider
from dumpster_admin.core.database import get_db
from dumpster_admin.core.metrics import update_service_health
from dumpster_admin.services.geocoding import GeocodingClient
from dumpster_admin.services.invoice_provider import InvoiceProvider
from dumpster_admin.services.square_client import SquareInvoiceClient

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health_check(
    db: AsyncSession = Depends(get_db),
    provider: InvoiceProvider = Depends(get_invoice_provider),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> dict:
    """Detailed health check including dependencies."""
    checks = {
        "api": "healthy",
        "database": "unknown",
        "invoicing": "unknown",
        "geocoding": "unknown",
    }

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"
    update_service_health("database", checks["database"] == "healthy")

    if isinstance(provider, SquareInvoiceClient) and not (provider.access_token and provider.location_id):
        checks["invoicing"] = "not configured"
    else:
        checks["invoicing"] = "healthy"

    checks["geocoding"] = "healthy" if geocoder.enabled else "disabled"

    overall = "healthy" if checks["database"] == "healthy" else "degraded"

    return {
        "status": overall,
        "checks": checks,
    }
