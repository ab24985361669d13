"""
Quote to order conversion.

The order is inserted in one transaction and the quote is marked
accepted in a second. If the second commit fails the order stands and
the failure is logged; re-promotion is still blocked because the order
references the quote.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import (
    DatabaseException,
    MissingDropoffException,
    QuoteAlreadyPromotedException,
    QuoteNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import QUOTES_PROMOTED
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.order import Order, OrderStatus
from dumpster_admin.models.quote import Quote, QuoteStatus
from dumpster_admin.schemas.quote import QuotePromotionOverrides
from dumpster_admin.services.catalog_service import CatalogService
from dumpster_admin.services.drivers import validate_driver
from dumpster_admin.services.numbering import SequenceNumberGenerator
from dumpster_admin.services.order_service import build_line_items, line_items_total

logger = get_logger(__name__)

COPIED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "address2",
    "city",
    "state",
    "zip_code",
    "dumpster_size",
    "time_needed",
    "message",
    "priority",
)

DEFAULT_ITEM_NAME = "Dumpster Rental"


class QuotePromoter:
    """Turn an accepted quote into a scheduled order."""

    def __init__(
        self,
        session: AsyncSession,
        numbering: Optional[SequenceNumberGenerator] = None,
        default_driver: Optional[str] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.session = session
        self.numbering = numbering or SequenceNumberGenerator(session)
        self.catalog = catalog or CatalogService(session)
        self.default_driver = default_driver if default_driver is not None else settings.DEFAULT_DRIVER

    async def promote(
        self,
        quote_id: uuid.UUID,
        overrides: Optional[QuotePromotionOverrides] = None,
    ) -> Order:
        """
        Create an order from a quote.

        Args:
            quote_id: Quote to convert
            overrides: Admin edits; unset fields fall back to the quote

        Raises:
            QuoteNotFoundException: unknown quote
            QuoteAlreadyPromotedException: quote already has an order
            MissingDropoffException: no dropoff date or time on either side
            ServiceNotFoundException: a line item references an unknown service
            InvalidDriverException: assignee not on the roster
            DatabaseException: order insert failed; nothing was written
        """
        quote = await self.session.get(Quote, quote_id, populate_existing=True)
        if quote is None:
            raise QuoteNotFoundException(quote_id)

        existing = await self.session.scalar(select(Order).where(Order.quote_id == quote_id).limit(1))
        if existing is not None or quote.status == QuoteStatus.ACCEPTED:
            QUOTES_PROMOTED.labels(result="duplicate").inc()
            raise QuoteAlreadyPromotedException(quote_id, existing.order_number if existing else None)
        if quote.status == QuoteStatus.DECLINED:
            raise ValidationException(
                message="Declined quotes cannot be converted to orders",
                details={"quote_id": str(quote_id), "status": quote.status.value},
            )

        values = overrides.model_dump(exclude_unset=True) if overrides else {}

        dropoff_date = values.get("dropoff_date") or quote.dropoff_date
        if not dropoff_date:
            raise MissingDropoffException("dropoff_date")
        dropoff_time = values.get("dropoff_time") or quote.dropoff_time
        if not dropoff_time:
            raise MissingDropoffException("dropoff_time")

        if "assigned_to" in values:
            assigned_to = validate_driver(values["assigned_to"])
        else:
            assigned_to = validate_driver(quote.assigned_to or self.default_driver)

        fields = {name: self._pick(values, quote, name) for name in COPIED_FIELDS}
        items = build_line_items(await self.catalog.resolve_line_items(self._line_item_source(values, quote)))
        quoted_price = self._pick(values, quote, "quoted_price")
        if quoted_price is None and items:
            quoted_price = line_items_total(items)

        try:
            order = Order(
                order_number=await self.numbering.next_order_number(),
                quote_id=quote.id,
                status=OrderStatus.SCHEDULED,
                dropoff_date=dropoff_date,
                dropoff_time=dropoff_time,
                scheduled_delivery_date=dropoff_date,
                scheduled_pickup_date=values.get("scheduled_pickup_date"),
                assigned_to=assigned_to,
                quoted_price=quoted_price,
                internal_notes=quote.quote_notes,
                driver_notes=values.get("driver_notes"),
                line_items=items,
                **fields,
            )
            self.session.add(order)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            QUOTES_PROMOTED.labels(result="error").inc()
            logger.exception("Order insert from quote failed", extra={"quote_id": str(quote_id)})
            raise DatabaseException(
                message="Failed to create order from quote",
                details={"quote_id": str(quote_id)},
            ) from e

        logger.info(
            "Quote converted to order",
            extra={"quote_id": str(quote_id), "order_id": str(order.id), "order_number": order.order_number},
        )

        try:
            await self._mark_accepted(quote)
        except SQLAlchemyError as e:
            await self.session.rollback()
            await self.session.refresh(order)
            QUOTES_PROMOTED.labels(result="partial").inc()
            logger.error(
                "Order created but quote status was not updated",
                extra={"quote_id": str(quote_id), "order_number": order.order_number, "error": str(e)},
            )
            return order

        QUOTES_PROMOTED.labels(result="success").inc()
        return order

    async def _mark_accepted(self, quote: Quote) -> None:
        quote.status = QuoteStatus.ACCEPTED
        quote.updated_at = utcnow()
        await self.session.commit()

    @staticmethod
    def _pick(values: dict[str, Any], quote: Quote, name: str) -> Any:
        value = values.get(name)
        return value if value is not None else getattr(quote, name)

    @classmethod
    def _line_item_source(cls, values: dict[str, Any], quote: Quote) -> list[Any]:
        """Overrides, then the quote's own items, then one rental line at the quoted price."""
        if values.get("line_items"):
            return values["line_items"]
        if quote.line_items:
            return quote.line_items

        price = cls._pick(values, quote, "quoted_price")
        if price is None:
            return []
        size = values.get("dumpster_size") or quote.dumpster_size
        return [
            {
                "name": DEFAULT_ITEM_NAME,
                "description": f"{size} dumpster" if size else None,
                "quantity": 1,
                "unit_price": Decimal(str(price)),
            }
        ]
