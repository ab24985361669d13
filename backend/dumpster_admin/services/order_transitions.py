"""
Order status transition engine.

Validates a requested status change against the workflow table and
applies its side effects (timestamps, dumpster release) with the order
write in a single transaction.
"""

import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import (
    DatabaseException,
    InvalidTransitionException,
    NeedsDumpsterAssignmentException,
    OrderNotFoundException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import ORDER_TRANSITIONS, ORDER_TRANSITIONS_REJECTED
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.order import Order, OrderStatus
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.SCHEDULED, OrderStatus.CANCELLED}),
    OrderStatus.SCHEDULED: frozenset({OrderStatus.PENDING, OrderStatus.ON_WAY, OrderStatus.CANCELLED}),
    OrderStatus.ON_WAY: frozenset({OrderStatus.SCHEDULED, OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.ON_WAY, OrderStatus.ON_WAY_PICKUP}),
    OrderStatus.ON_WAY_PICKUP: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.PICKED_UP, OrderStatus.COMPLETED}
    ),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.ON_WAY_PICKUP, OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def allowed_transitions(status: OrderStatus) -> list[OrderStatus]:
    """Statuses reachable from status, in workflow order."""
    targets = ALLOWED_TRANSITIONS.get(status, frozenset())
    return [s for s in OrderStatus if s in targets]


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


class OrderTransitionEngine:
    """
    Move orders through the delivery workflow.

    Side effects by target status:
    - on_way: requires an assigned dumpster
    - delivered: actual_delivery_date
    - picked_up: actual_pickup_date
    - completed: completed_at, completed_with_dumpster_*, optional release
    - cancelled: releases the dumpster
    """

    def __init__(
        self,
        session: AsyncSession,
        resolver: Optional[DumpsterAssignmentResolver] = None,
        release_dumpster_on_completion: Optional[bool] = None,
    ):
        self.session = session
        self.resolver = resolver or DumpsterAssignmentResolver(session)
        if release_dumpster_on_completion is None:
            release_dumpster_on_completion = settings.RELEASE_DUMPSTER_ON_COMPLETION
        self.release_dumpster_on_completion = release_dumpster_on_completion

    async def transition(self, order_id: uuid.UUID, new_status: OrderStatus) -> Order:
        """
        Apply a status change.

        Raises:
            OrderNotFoundException: unknown order
            InvalidTransitionException: move not in the workflow table
            NeedsDumpsterAssignmentException: on_way without a dumpster
            DatabaseException: write failed; nothing was changed
        """
        order = await self.session.get(Order, order_id, populate_existing=True)
        if order is None:
            raise OrderNotFoundException(order_id)

        current = order.status
        if not is_valid_transition(current, new_status):
            ORDER_TRANSITIONS_REJECTED.labels(reason="invalid").inc()
            raise InvalidTransitionException(
                current.value,
                new_status.value,
                [s.value for s in allowed_transitions(current)],
            )

        dumpster = await self.resolver.find_assigned_dumpster(order.id)
        if new_status == OrderStatus.ON_WAY and dumpster is None:
            ORDER_TRANSITIONS_REJECTED.labels(reason="needs_dumpster").inc()
            raise NeedsDumpsterAssignmentException(order.id, order.order_number)

        now = utcnow()
        try:
            order.status = new_status

            if new_status == OrderStatus.DELIVERED:
                order.actual_delivery_date = now
            elif new_status == OrderStatus.PICKED_UP:
                order.actual_pickup_date = now
            elif new_status == OrderStatus.COMPLETED:
                order.completed_at = now
                if order.actual_pickup_date is None:
                    order.actual_pickup_date = now
                if dumpster is not None:
                    order.completed_with_dumpster_id = dumpster.id
                    order.completed_with_dumpster_name = dumpster.name
                    if self.release_dumpster_on_completion:
                        await self.resolver.release(order)
            elif new_status == OrderStatus.CANCELLED:
                await self.resolver.release(order)

            order.updated_at = now
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(
                "Order status change failed",
                extra={"order_id": str(order_id), "from": current.value, "to": new_status.value},
            )
            raise DatabaseException(
                message="Failed to update order status",
                details={"order_id": str(order_id), "status": new_status.value},
            ) from e

        ORDER_TRANSITIONS.labels(from_status=current.value, to_status=new_status.value).inc()
        logger.info(
            "Order status changed",
            extra={
                "order_id": str(order_id),
                "order_number": order.order_number,
                "from": current.value,
                "to": new_status.value,
            },
        )
        return order
