"""
Service catalog API routes.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from dumpster_admin.api.deps import get_catalog_service
from dumpster_admin.schemas.service import (
    ServiceCategoryCreate,
    ServiceCategoryListResponse,
    ServiceCategoryResponse,
    ServiceCategoryUpdate,
    ServiceCreate,
    ServiceListResponse,
    ServiceResponse,
    ServiceUpdate,
)
from dumpster_admin.services.catalog_service import CatalogService

router = APIRouter(tags=["services"])


# ============================================================
# Categories
# ============================================================


@router.get("/service-categories", response_model=ServiceCategoryListResponse)
async def list_service_categories(
    include_inactive: bool = Query(False),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceCategoryListResponse:
    """Service categories in display order."""
    categories = await catalog.list_categories(include_inactive=include_inactive)
    return ServiceCategoryListResponse(
        items=[ServiceCategoryResponse.model_validate(c) for c in categories],
        total=len(categories),
    )


@router.post("/service-categories", response_model=ServiceCategoryResponse, status_code=201)
async def create_service_category(
    data: ServiceCategoryCreate,
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceCategoryResponse:
    return ServiceCategoryResponse.model_validate(await catalog.create_category(data))


@router.patch("/service-categories/{category_id}", response_model=ServiceCategoryResponse)
async def update_service_category(
    category_id: UUID,
    data: ServiceCategoryUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceCategoryResponse:
    return ServiceCategoryResponse.model_validate(await catalog.update_category(category_id, data))


@router.delete("/service-categories/{category_id}", status_code=204)
async def delete_service_category(
    category_id: UUID,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Response:
    """Delete a category that has no services."""
    await catalog.delete_category(category_id)
    return Response(status_code=204)


# ============================================================
# Services
# ============================================================


@router.get("/services", response_model=ServiceListResponse)
async def list_services(
    category: Optional[str] = Query(None, description="Category name"),
    include_inactive: bool = Query(False),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceListResponse:
    """Catalog services, optionally limited to one category."""
    services = await catalog.list_services(category=category, include_inactive=include_inactive)
    return ServiceListResponse(
        items=[ServiceResponse.model_validate(s) for s in services],
        total=len(services),
    )


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    """Add a service to the catalog."""
    return ServiceResponse.model_validate(await catalog.create_service(data))


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: UUID,
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    return ServiceResponse.model_validate(await catalog.get_service(service_id))


@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    """Edit a service; set is_active=false to retire it."""
    return ServiceResponse.model_validate(await catalog.update_service(service_id, data))


@router.delete("/services/{service_id}", status_code=204)
async def delete_service(
    service_id: UUID,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Response:
    """Delete a service no order uses."""
    await catalog.delete_service(service_id)
    return Response(status_code=204)
