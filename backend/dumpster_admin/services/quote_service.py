"""
Quote CRUD.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.exceptions import DatabaseException, QuoteNotFoundException
from dumpster_admin.core.logging import get_logger
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.quote import Quote, QuoteStatus
from dumpster_admin.schemas.quote import QuoteCreate, QuoteUpdate
from dumpster_admin.services.drivers import validate_driver

logger = get_logger(__name__)


def serialize_line_items(items) -> list[dict]:
    """Line item inputs as JSON-safe dicts (prices as strings)."""
    serialized = []
    for item in items:
        data = {
            "name": item.name,
            "description": item.description,
            "quantity": item.quantity,
            "unit_price": str(item.unit_price) if item.unit_price is not None else None,
        }
        # Catalog fields only when used, so free-text quotes keep their old shape
        if item.service_id is not None:
            data["service_id"] = str(item.service_id)
        if item.invoice_description:
            data["invoice_description"] = item.invoice_description
        serialized.append(data)
    return serialized


class QuoteService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, quote_id: uuid.UUID) -> Quote:
        quote = await self.session.get(Quote, quote_id)
        if quote is None:
            raise QuoteNotFoundException(quote_id)
        return quote

    async def list_quotes(
        self,
        status: Optional[QuoteStatus] = None,
        page: int = 1,
        size: int = 20,
    ) -> tuple[list[Quote], int]:
        query = select(Quote)
        if status is not None:
            query = query.where(Quote.status == status)

        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Quote.created_at.desc()).offset((page - 1) * size).limit(size)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0

    async def create(self, data: QuoteCreate) -> Quote:
        quote = Quote(status=QuoteStatus.PENDING, **data.model_dump())
        try:
            self.session.add(quote)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(message="Failed to create quote") from e

        logger.info("Quote created", extra={"quote_id": str(quote.id), "email": quote.email})
        return quote

    async def update(self, quote_id: uuid.UUID, data: QuoteUpdate) -> Quote:
        """
        Edit a quote.

        Setting a price on a pending quote marks it quoted.
        """
        quote = await self.get(quote_id)
        values = data.model_dump(exclude_unset=True, exclude={"line_items"})
        if "assigned_to" in values:
            values["assigned_to"] = validate_driver(values["assigned_to"])

        for field, value in values.items():
            setattr(quote, field, value)
        if data.line_items is not None:
            quote.line_items = serialize_line_items(data.line_items)

        if values.get("quoted_price") is not None:
            quote.quoted_at = utcnow()
            if quote.status == QuoteStatus.PENDING and "status" not in values:
                quote.status = QuoteStatus.QUOTED

        quote.updated_at = utcnow()
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(
                message="Failed to update quote",
                details={"quote_id": str(quote_id)},
            ) from e
        return quote
