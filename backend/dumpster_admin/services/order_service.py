"""
Order CRUD.

Status and dumpster changes are not handled here; they go through
OrderTransitionEngine and DumpsterAssignmentResolver.
"""

import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.exceptions import (
    ActivePaymentExistsException,
    DatabaseException,
    OrderNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.order import Order, OrderLineItem, OrderStatus
from dumpster_admin.models.payment import ACTIVE_PAYMENT_STATUSES, Payment
from dumpster_admin.schemas.order import OrderCreate, OrderUpdate
from dumpster_admin.services.catalog_service import CatalogService
from dumpster_admin.services.drivers import validate_driver
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver
from dumpster_admin.services.numbering import SequenceNumberGenerator

logger = get_logger(__name__)


def build_line_items(items: Iterable[Any]) -> list[OrderLineItem]:
    """
    Turn line item inputs into rows.

    Accepts schema objects or plain dicts with name, quantity and unit_price;
    catalog references must already be resolved by CatalogService.
    """
    rows = []
    for position, item in enumerate(items):
        data = item.model_dump() if hasattr(item, "model_dump") else dict(item)
        quantity = int(data.get("quantity") or 1)
        unit_price = Decimal(str(data["unit_price"])).quantize(Decimal("0.01"))
        rows.append(
            OrderLineItem(
                position=position,
                service_id=data.get("service_id"),
                name=data["name"],
                description=data.get("description"),
                invoice_description=data.get("invoice_description"),
                quantity=quantity,
                unit_price=unit_price,
                total_price=unit_price * quantity,
            )
        )
    return rows


def line_items_total(items: Iterable[OrderLineItem]) -> Decimal:
    return sum((item.total_price for item in items), Decimal("0.00"))


class OrderService:
    """Create, edit, list and delete orders."""

    ADDRESS_FIELDS = frozenset({"address", "city", "state"})

    def __init__(
        self,
        session: AsyncSession,
        resolver: Optional[DumpsterAssignmentResolver] = None,
        numbering: Optional[SequenceNumberGenerator] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.session = session
        self.resolver = resolver or DumpsterAssignmentResolver(session)
        self.numbering = numbering or SequenceNumberGenerator(session)
        self.catalog = catalog or CatalogService(session)

    async def get(self, order_id: uuid.UUID) -> Order:
        order = await self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        assigned_to: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> tuple[list[Order], int]:
        query = select(Order)
        if status is not None:
            query = query.where(Order.status == status)
        if assigned_to:
            query = query.where(Order.assigned_to == assigned_to)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                func.lower(Order.order_number).like(pattern)
                | func.lower(Order.first_name).like(pattern)
                | func.lower(Order.last_name).like(pattern)
                | func.lower(Order.email).like(pattern)
            )

        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Order.created_at.desc()).offset((page - 1) * size).limit(size)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total or 0

    async def create(self, data: OrderCreate) -> Order:
        """Create an order directly, without a quote."""
        values = data.model_dump(exclude={"line_items"})
        values["assigned_to"] = validate_driver(values.get("assigned_to"))

        items = build_line_items(await self.catalog.resolve_line_items(data.line_items))
        if values.get("quoted_price") is None and items:
            values["quoted_price"] = line_items_total(items)

        try:
            order = Order(
                order_number=await self.numbering.next_order_number(),
                status=OrderStatus.SCHEDULED,
                scheduled_delivery_date=data.dropoff_date,
                line_items=items,
                **values,
            )
            self.session.add(order)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Order create failed", extra={"email": data.email})
            raise DatabaseException(message="Failed to create order") from e

        logger.info("Order created", extra={"order_id": str(order.id), "order_number": order.order_number})
        return order

    async def update(self, order_id: uuid.UUID, data: OrderUpdate) -> Order:
        """
        Edit details; only fields present in the request are touched.

        An address change is copied onto the assigned dumpster in the same
        commit, then geocoded best-effort.
        """
        order = await self.get(order_id)
        values = data.model_dump(exclude_unset=True, exclude={"line_items"})
        if "assigned_to" in values:
            values["assigned_to"] = validate_driver(values["assigned_to"])
        items = None
        if data.line_items is not None:
            items = build_line_items(await self.catalog.resolve_line_items(data.line_items))

        moved = None
        try:
            for field, value in values.items():
                setattr(order, field, value)
            if items is not None:
                order.line_items = items
            if self.ADDRESS_FIELDS & values.keys():
                moved = await self.resolver.sync_address(order)
            order.updated_at = utcnow()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Order update failed", extra={"order_id": str(order_id)})
            raise DatabaseException(
                message="Failed to update order",
                details={"order_id": str(order_id)},
            ) from e

        if moved is not None:
            await self.resolver.geocode_assigned(order_id, moved)
        await self.session.refresh(order)
        return order

    async def update_invoice_descriptions(
        self,
        order_id: uuid.UUID,
        descriptions: dict[uuid.UUID, Optional[str]],
    ) -> Order:
        """
        Set the invoice wording of individual line items.

        Raises:
            ValidationException: an id is not a line item of this order
        """
        order = await self.get(order_id)
        by_id = {item.id: item for item in order.line_items}
        unknown = [str(item_id) for item_id in descriptions if item_id not in by_id]
        if unknown:
            raise ValidationException(
                message="Line items do not belong to this order",
                details={"order_id": str(order_id), "line_item_ids": unknown},
            )

        try:
            for item_id, text in descriptions.items():
                by_id[item_id].invoice_description = text.strip() if text and text.strip() else None
            order.updated_at = utcnow()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(
                message="Failed to update invoice descriptions",
                details={"order_id": str(order_id)},
            ) from e

        logger.info(
            "Invoice descriptions updated",
            extra={"order_number": order.order_number, "line_items": len(descriptions)},
        )
        await self.session.refresh(order)
        return order

    async def delete(self, order_id: uuid.UUID) -> None:
        """
        Delete an order, releasing its dumpster in the same transaction.

        Refused while the order has an open invoice.
        """
        order = await self.get(order_id)

        active = await self.session.scalar(
            select(Payment)
            .where(Payment.order_id == order_id, Payment.status.in_(list(ACTIVE_PAYMENT_STATUSES)))
            .limit(1)
        )
        if active is not None:
            raise ActivePaymentExistsException(order_id, active.payment_number, active.status.value)

        order_number = order.order_number
        try:
            await self.resolver.release(order)
            await self.session.execute(delete(Payment).where(Payment.order_id == order_id))
            await self.session.delete(order)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Order delete failed", extra={"order_id": str(order_id)})
            raise DatabaseException(
                message="Failed to delete order",
                details={"order_id": str(order_id)},
            ) from e

        logger.info("Order deleted", extra={"order_id": str(order_id), "order_number": order_number})
