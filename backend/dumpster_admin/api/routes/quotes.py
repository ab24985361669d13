"""
Quote API routes.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from dumpster_admin.api.deps import get_quote_promoter, get_quote_service
from dumpster_admin.models.quote import QuoteStatus
from dumpster_admin.schemas.order import OrderResponse
from dumpster_admin.schemas.quote import (
    QuoteCreate,
    QuoteListResponse,
    QuotePromotionOverrides,
    QuoteResponse,
    QuoteUpdate,
)
from dumpster_admin.services.quote_promoter import QuotePromoter
from dumpster_admin.services.quote_service import QuoteService

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.get("", response_model=QuoteListResponse)
async def list_quotes(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: Optional[QuoteStatus] = Query(None),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteListResponse:
    """Get list of quotes with pagination."""
    quotes, total = await service.list_quotes(status=status, page=page, size=size)
    return QuoteListResponse(
        items=[QuoteResponse.model_validate(q) for q in quotes],
        total=total,
        page=page,
        size=size,
    )


@router.post("", response_model=QuoteResponse, status_code=201)
async def create_quote(
    data: QuoteCreate,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """Record a quote request."""
    return QuoteResponse.model_validate(await service.create(data))


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: UUID,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """Get quote by ID."""
    return QuoteResponse.model_validate(await service.get(quote_id))


@router.patch("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: UUID,
    data: QuoteUpdate,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """Edit a quote, set its price or status."""
    return QuoteResponse.model_validate(await service.update(quote_id, data))


@router.post("/{quote_id}/promote", response_model=OrderResponse, status_code=201)
async def promote_quote(
    quote_id: UUID,
    overrides: Optional[QuotePromotionOverrides] = Body(None),
    promoter: QuotePromoter = Depends(get_quote_promoter),
) -> OrderResponse:
    """Convert the quote into a scheduled order."""
    order = await promoter.promote(quote_id, overrides)
    return OrderResponse.model_validate(order)
