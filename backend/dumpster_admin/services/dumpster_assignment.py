"""
Dumpster assignment resolver.

Dumpster.current_order_id is the single source of truth for which order
holds a dumpster; Order.dumpster_id is a mirror written only here, in the
same transaction. Claims are conditional updates so two admins racing for
the same dumpster cannot both win.
"""

import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import (
    AppException,
    DatabaseException,
    DumpsterAlreadyAssignedException,
    DumpsterNotFoundException,
    DumpsterUnavailableException,
    OrderNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import DUMPSTER_ASSIGNMENTS
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.dumpster import Dumpster, DumpsterStatus
from dumpster_admin.models.order import Order
from dumpster_admin.services.geocoding import GeocodingClient

logger = get_logger(__name__)


class DumpsterAssignmentResolver:
    """
    Assign, swap and release dumpsters for orders.

    claim() and release() only flush, so the transition engine and the
    order service can run them inside their own transaction. assign() and
    unassign() are the committed entry points used by the API.
    """

    def __init__(
        self,
        session: AsyncSession,
        geocoder: Optional[GeocodingClient] = None,
        home_dumpster_name: Optional[str] = None,
    ):
        self.session = session
        self.geocoder = geocoder
        self.home_dumpster_name = home_dumpster_name or settings.HOME_DUMPSTER_NAME

    # ==================== Lookups ====================

    async def find_assigned_dumpster(self, order_id: uuid.UUID) -> Optional[Dumpster]:
        """Dumpster currently held by the order, by the authoritative pointer."""
        result = await self.session.execute(
            select(Dumpster)
            .where(Dumpster.current_order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_candidates(self) -> list[Dumpster]:
        """Dumpsters that can be assigned right now, home dumpster excluded."""
        result = await self.session.execute(
            select(Dumpster)
            .where(
                Dumpster.status == DumpsterStatus.AVAILABLE,
                Dumpster.current_order_id.is_(None),
                Dumpster.name != self.home_dumpster_name,
            )
            .order_by(Dumpster.name)
        )
        return list(result.scalars().all())

    async def _get_order(self, order_id: uuid.UUID) -> Order:
        order = await self.session.get(Order, order_id, populate_existing=True)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def _get_dumpster(self, dumpster_id: uuid.UUID) -> Dumpster:
        dumpster = await self.session.get(Dumpster, dumpster_id)
        if dumpster is None:
            raise DumpsterNotFoundException(dumpster_id)
        return dumpster

    # ==================== Transaction building blocks ====================

    async def claim(self, order: Order, dumpster_id: uuid.UUID) -> Dumpster:
        """
        Point dumpster_id at order, releasing any other dumpster it holds.

        Raises:
            DumpsterNotFoundException: unknown dumpster
            ValidationException: order is closed, or the home dumpster was picked
            DumpsterAlreadyAssignedException: another order holds the dumpster
            DumpsterUnavailableException: dumpster is in maintenance or out of service
        """
        if order.status.is_terminal:
            raise ValidationException(
                message=f"Cannot assign a dumpster to a {order.status.value} order",
                details={"order_id": str(order.id), "status": order.status.value},
            )

        dumpster = await self._get_dumpster(dumpster_id)
        if dumpster.name == self.home_dumpster_name:
            raise ValidationException(
                message=f"{dumpster.name} is the home dumpster and cannot be assigned to orders",
                details={"dumpster_name": dumpster.name},
            )

        current = await self.find_assigned_dumpster(order.id)
        if current is not None and current.id == dumpster_id:
            order.dumpster_id = dumpster_id
            return current
        if current is not None:
            logger.info(
                "Swapping dumpster",
                extra={"order_id": str(order.id), "from": current.name, "to": dumpster.name},
            )
            self._reset(current)
            await self.session.flush()

        now = utcnow()
        result = await self.session.execute(
            update(Dumpster)
            .where(
                Dumpster.id == dumpster_id,
                Dumpster.current_order_id.is_(None),
                Dumpster.status == DumpsterStatus.AVAILABLE,
            )
            .values(
                status=DumpsterStatus.IN_USE,
                current_order_id=order.id,
                address=order.service_address or None,
                latitude=None,
                longitude=None,
                last_assigned_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        await self.session.refresh(dumpster)
        if result.rowcount != 1:
            if dumpster.current_order_id is not None and dumpster.current_order_id != order.id:
                raise DumpsterAlreadyAssignedException(dumpster.name, dumpster.current_order_id)
            raise DumpsterUnavailableException(dumpster.name, dumpster.status.value)

        order.dumpster_id = dumpster.id
        return dumpster

    async def release(self, order: Order) -> Optional[Dumpster]:
        """Free whatever dumpster points at order and clear the mirror."""
        dumpster = await self.find_assigned_dumpster(order.id)
        order.dumpster_id = None
        if dumpster is not None:
            self._reset(dumpster)
            logger.info(
                "Dumpster released",
                extra={"order_id": str(order.id), "dumpster": dumpster.name},
            )
        await self.session.flush()
        return dumpster

    async def sync_address(self, order: Order) -> Optional[Dumpster]:
        """
        Copy the order's service address onto its dumpster after an edit.

        Coordinates are cleared until geocode_assigned() runs for the new
        address. Only flushes; returns the dumpster when its address changed.
        """
        dumpster = await self.find_assigned_dumpster(order.id)
        if dumpster is None:
            return None
        address = order.service_address or None
        if dumpster.address == address:
            return None

        dumpster.address = address
        dumpster.latitude = None
        dumpster.longitude = None
        dumpster.updated_at = utcnow()
        await self.session.flush()
        logger.info(
            "Dumpster address updated",
            extra={"order_id": str(order.id), "dumpster": dumpster.name, "address": address},
        )
        return dumpster

    @staticmethod
    def _reset(dumpster: Dumpster) -> None:
        dumpster.status = DumpsterStatus.AVAILABLE
        dumpster.current_order_id = None
        dumpster.address = None
        dumpster.latitude = None
        dumpster.longitude = None

    # ==================== Committed operations ====================

    async def assign(self, order_id: uuid.UUID, dumpster_id: uuid.UUID) -> Dumpster:
        """Assign a dumpster to an order and commit; then geocode best-effort."""
        try:
            order = await self._get_order(order_id)
            dumpster = await self.claim(order, dumpster_id)
            order.updated_at = utcnow()
            await self.session.commit()
        except AppException as e:
            await self.session.rollback()
            DUMPSTER_ASSIGNMENTS.labels(operation="assign", result=e.error_code.lower()).inc()
            logger.warning(
                "Dumpster assignment rejected",
                extra={"order_id": str(order_id), "dumpster_id": str(dumpster_id), "error": e.error_code},
            )
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            DUMPSTER_ASSIGNMENTS.labels(operation="assign", result="error").inc()
            logger.exception("Dumpster assignment failed", extra={"order_id": str(order_id)})
            raise DatabaseException(
                message="Failed to assign dumpster",
                details={"order_id": str(order_id), "dumpster_id": str(dumpster_id)},
            ) from e

        DUMPSTER_ASSIGNMENTS.labels(operation="assign", result="success").inc()
        logger.info(
            "Dumpster assigned",
            extra={"order_id": str(order_id), "order_number": order.order_number, "dumpster": dumpster.name},
        )

        await self.geocode_assigned(order_id, dumpster)
        return dumpster

    async def unassign(self, order_id: uuid.UUID) -> Optional[Dumpster]:
        """Release the order's dumpster and commit. Returns the released dumpster, if any."""
        order = await self._get_order(order_id)
        try:
            dumpster = await self.release(order)
            order.updated_at = utcnow()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            DUMPSTER_ASSIGNMENTS.labels(operation="unassign", result="error").inc()
            logger.exception("Dumpster release failed", extra={"order_id": str(order_id)})
            raise DatabaseException(
                message="Failed to release dumpster",
                details={"order_id": str(order_id)},
            ) from e

        DUMPSTER_ASSIGNMENTS.labels(operation="unassign", result="success").inc()
        return dumpster

    async def geocode_assigned(self, order_id: uuid.UUID, dumpster: Dumpster) -> None:
        """Store coordinates for the new address; failures leave them empty."""
        if self.geocoder is None or not dumpster.address:
            return
        dumpster_id, address = dumpster.id, dumpster.address

        try:
            coords = await self.geocoder.geocode(address)
        except Exception as e:
            logger.warning(
                "Geocoding dumpster address failed",
                extra={"dumpster_id": str(dumpster_id), "address": address, "error": str(e)},
            )
            return
        if coords is None:
            return

        latitude, longitude = coords
        try:
            # Skip if the dumpster moved on while we were geocoding
            result = await self.session.execute(
                update(Dumpster)
                .where(Dumpster.id == dumpster_id, Dumpster.current_order_id == order_id)
                .values(latitude=latitude, longitude=longitude)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(
                "Storing dumpster coordinates failed",
                extra={"dumpster_id": str(dumpster_id), "error": str(e)},
            )
            await self.session.refresh(dumpster)
            return

        if result.rowcount == 1:
            set_committed_value(dumpster, "latitude", latitude)
            set_committed_value(dumpster, "longitude", longitude)
