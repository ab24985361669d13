"""
API routes module.
"""

from fastapi import APIRouter

from dumpster_admin.api.routes import (
    dumpsters,
    health,
    orders,
    payments,
    quotes,
    services,
    webhooks,
)

# Main API router (mounted at /api/v1)
api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(orders.router)
api_router.include_router(dumpsters.router)
api_router.include_router(quotes.router)
api_router.include_router(services.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
