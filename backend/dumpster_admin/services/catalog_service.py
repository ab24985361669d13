"""
Service catalog.

Orders and quotes may reference catalog services in their line items;
resolve_line_items() fills the name, description and price from the
catalog entry wherever the admin left them blank.
"""

import uuid
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.exceptions import (
    ConflictException,
    DatabaseException,
    ServiceCategoryNotFoundException,
    ServiceNotFoundException,
    ValidationException,
)
from dumpster_admin.core.logging import get_logger
from dumpster_admin.models.base import utcnow
from dumpster_admin.models.order import OrderLineItem
from dumpster_admin.models.service import Service, ServiceCategory
from dumpster_admin.schemas.service import (
    ServiceCategoryCreate,
    ServiceCategoryUpdate,
    ServiceCreate,
    ServiceUpdate,
)

logger = get_logger(__name__)


class CatalogService:
    """CRUD for service categories and services."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Categories ====================

    async def get_category(self, category_id: uuid.UUID) -> ServiceCategory:
        category = await self.session.get(ServiceCategory, category_id)
        if category is None:
            raise ServiceCategoryNotFoundException(category_id)
        return category

    async def list_categories(self, include_inactive: bool = False) -> list[ServiceCategory]:
        query = select(ServiceCategory).order_by(ServiceCategory.sort_order, ServiceCategory.display_name)
        if not include_inactive:
            query = query.where(ServiceCategory.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_category(self, data: ServiceCategoryCreate) -> ServiceCategory:
        category = ServiceCategory(**data.model_dump())
        self.session.add(category)
        await self._commit("CATEGORY_NAME_TAKEN", f"A service category named '{data.name}' already exists")
        logger.info("Service category created", extra={"category": category.name})
        return category

    async def update_category(self, category_id: uuid.UUID, data: ServiceCategoryUpdate) -> ServiceCategory:
        category = await self.get_category(category_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(category, field, value)
        category.updated_at = utcnow()
        await self._commit("CATEGORY_NAME_TAKEN", f"A service category named '{category.name}' already exists")
        return category

    async def delete_category(self, category_id: uuid.UUID) -> None:
        """Delete an empty category."""
        category = await self.get_category(category_id)
        in_use = await self.session.scalar(
            select(func.count()).select_from(Service).where(Service.category_id == category_id)
        )
        if in_use:
            raise ConflictException(
                message=f"Category '{category.display_name}' still has {in_use} service(s)",
                details={"category_id": str(category_id), "services": in_use},
                error_code="CATEGORY_IN_USE",
            )
        name = category.name
        await self.session.delete(category)
        await self._commit("CATEGORY_IN_USE", f"Category '{name}' is still referenced")
        logger.info("Service category deleted", extra={"category": name})

    # ==================== Services ====================

    async def get_service(self, service_id: uuid.UUID) -> Service:
        service = await self.session.get(Service, service_id)
        if service is None:
            raise ServiceNotFoundException(service_id)
        return service

    async def list_services(
        self,
        category: Optional[str] = None,
        include_inactive: bool = False,
    ) -> list[Service]:
        """Services in catalog order, optionally limited to one category by name."""
        query = select(Service).order_by(Service.sort_order, Service.display_name)
        if category:
            query = query.join(ServiceCategory, Service.category_id == ServiceCategory.id).where(
                ServiceCategory.name == category
            )
        if not include_inactive:
            query = query.where(Service.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_service(self, data: ServiceCreate) -> Service:
        await self.get_category(data.category_id)
        service = Service(**data.model_dump())
        self.session.add(service)
        await self._commit("SERVICE_NAME_TAKEN", f"A service named '{data.name}' already exists")
        await self.session.refresh(service, ["category"])
        logger.info("Service created", extra={"service": service.name, "base_price": str(service.base_price)})
        return service

    async def update_service(self, service_id: uuid.UUID, data: ServiceUpdate) -> Service:
        service = await self.get_service(service_id)
        values = data.model_dump(exclude_unset=True)
        if "category_id" in values:
            await self.get_category(values["category_id"])

        for field, value in values.items():
            setattr(service, field, value)
        service.updated_at = utcnow()
        await self._commit("SERVICE_NAME_TAKEN", f"A service named '{service.name}' already exists")
        await self.session.refresh(service, ["category"])
        return service

    async def delete_service(self, service_id: uuid.UUID) -> None:
        """Delete a service no order line references; used services can only be deactivated."""
        service = await self.get_service(service_id)
        used = await self.session.scalar(
            select(OrderLineItem.id).where(OrderLineItem.service_id == service_id).limit(1)
        )
        if used is not None:
            raise ConflictException(
                message=f"Service '{service.display_name}' is used by existing orders; deactivate it instead",
                details={"service_id": str(service_id)},
                error_code="SERVICE_IN_USE",
            )
        name = service.name
        await self.session.delete(service)
        await self._commit("SERVICE_IN_USE", f"Service '{name}' is still referenced")
        logger.info("Service deleted", extra={"service": name})

    # ==================== Line items ====================

    async def resolve_line_items(self, items: Iterable[Any]) -> list[dict[str, Any]]:
        """
        Line item inputs as plain dicts, with catalog defaults applied.

        Accepts schema objects or dicts (quote line items are stored as JSON).

        Raises:
            ServiceNotFoundException: a line references an unknown service
            ValidationException: a line references an inactive service
        """
        resolved = []
        for item in items:
            data = item.model_dump() if hasattr(item, "model_dump") else dict(item)
            service_id = data.get("service_id")
            if service_id:
                if not isinstance(service_id, uuid.UUID):
                    service_id = uuid.UUID(str(service_id))
                service = await self.get_service(service_id)
                if not service.is_active:
                    raise ValidationException(
                        message=f"Service '{service.display_name}' is no longer offered",
                        details={"service_id": str(service_id)},
                    )
                data["service_id"] = service_id
                data["name"] = data.get("name") or service.display_name
                data["description"] = data.get("description") or service.description
                if data.get("unit_price") is None:
                    data["unit_price"] = service.base_price
            resolved.append(data)
        return resolved

    async def _commit(self, conflict_code: str, conflict_message: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictException(message=conflict_message, error_code=conflict_code) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseException(message="Failed to save service catalog") from e
