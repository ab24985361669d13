"""
Dumpster inventory management.

in_use is owned by the assignment resolver: admins cannot set it, and
cannot move an assigned dumpster to another status or rename it to the
home dumpster.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import (
    ConflictException,
    DatabaseException,
    DumpsterNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.dumpster import Dumpster, DumpsterStatus
from dumpster_admin.schemas.dumpster import DumpsterCreate, DumpsterStats, DumpsterUpdate

logger = get_logger(__name__)


class DumpsterService:
    def __init__(self, session: AsyncSession, home_dumpster_name: Optional[str] = None):
        self.session = session
        self.home_dumpster_name = home_dumpster_name or settings.HOME_DUMPSTER_NAME

    async def get(self, dumpster_id: uuid.UUID) -> Dumpster:
        dumpster = await self.session.get(Dumpster, dumpster_id)
        if dumpster is None:
            raise DumpsterNotFoundException(dumpster_id)
        return dumpster

    async def list_dumpsters(self, status: Optional[DumpsterStatus] = None) -> list[Dumpster]:
        query = select(Dumpster).order_by(Dumpster.name)
        if status is not None:
            query = query.where(Dumpster.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def stats(self) -> DumpsterStats:
        result = await self.session.execute(
            select(Dumpster.status, func.count()).group_by(Dumpster.status)
        )
        counts = {status.value: count for status, count in result.all()}
        return DumpsterStats(total=sum(counts.values()), **counts)

    async def create(self, data: DumpsterCreate) -> Dumpster:
        if data.status == DumpsterStatus.IN_USE:
            raise ValidationException(
                message="New dumpsters cannot start in use; assign one to an order instead",
                details={"status": data.status.value},
            )

        dumpster = Dumpster(**data.model_dump())
        self.session.add(dumpster)
        await self._commit(dumpster.name)
        logger.info("Dumpster created", extra={"dumpster": dumpster.name})
        return dumpster

    async def update(self, dumpster_id: uuid.UUID, data: DumpsterUpdate) -> Dumpster:
        dumpster = await self.get(dumpster_id)
        values = data.model_dump(exclude_unset=True)

        new_name = values.get("name")
        if new_name == self.home_dumpster_name and dumpster.name != new_name and dumpster.current_order_id is not None:
            raise ValidationException(
                message=f"Dumpster '{dumpster.name}' is assigned to an order and cannot become the home dumpster",
                details={"dumpster_id": str(dumpster_id), "current_order_id": str(dumpster.current_order_id)},
            )

        new_status = values.get("status")
        if new_status is not None and new_status != dumpster.status:
            if new_status == DumpsterStatus.IN_USE:
                raise ValidationException(
                    message="Dumpsters are marked in use by assigning them to an order",
                    details={"dumpster_id": str(dumpster_id)},
                )
            if dumpster.current_order_id is not None:
                raise ValidationException(
                    message=f"Dumpster '{dumpster.name}' is assigned to an order; unassign it first",
                    details={"dumpster_id": str(dumpster_id), "current_order_id": str(dumpster.current_order_id)},
                )
            if new_status == DumpsterStatus.MAINTENANCE:
                values.setdefault("last_maintenance_at", utcnow())

        for field, value in values.items():
            setattr(dumpster, field, value)
        dumpster.updated_at = utcnow()
        await self._commit(dumpster.name)
        return dumpster

    async def delete(self, dumpster_id: uuid.UUID) -> None:
        dumpster = await self.get(dumpster_id)
        if dumpster.current_order_id is not None:
            raise ConflictException(
                message=f"Dumpster '{dumpster.name}' is assigned to an order and cannot be deleted",
                details={"dumpster_id": str(dumpster_id), "current_order_id": str(dumpster.current_order_id)},
            )
        name = dumpster.name
        await self.session.delete(dumpster)
        await self._commit(name)
        logger.info("Dumpster deleted", extra={"dumpster": name})

    async def _commit(self, name: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictException(
                message=f"A dumpster named '{name}' already exists",
                details={"name": name},
                error_code="DUMPSTER_NAME_TAKEN",
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(message="Failed to save dumpster", details={"name": name}) from e
