"""
Dumpster API routes.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from dumpster_admin.api.deps import get_dumpster_service, get_resolver
from dumpster_admin.models.dumpster import DumpsterStatus
from dumpster_admin.schemas.dumpster import (
    DumpsterCreate,
    DumpsterListResponse,
    DumpsterResponse,
    DumpsterStats,
    DumpsterUpdate,
)
from dumpster_admin.services.dumpster_assignment import DumpsterAssignmentResolver
from dumpster_admin.services.dumpster_service import DumpsterService

router = APIRouter(prefix="/dumpsters", tags=["dumpsters"])


@router.get("", response_model=DumpsterListResponse)
async def list_dumpsters(
    status: Optional[DumpsterStatus] = Query(None),
    service: DumpsterService = Depends(get_dumpster_service),
) -> DumpsterListResponse:
    """Get all dumpsters, optionally filtered by status."""
    dumpsters = await service.list_dumpsters(status=status)
    return DumpsterListResponse(
        items=[DumpsterResponse.model_validate(d) for d in dumpsters],
        total=len(dumpsters),
    )


@router.get("/available", response_model=DumpsterListResponse)
async def list_available_dumpsters(
    resolver: DumpsterAssignmentResolver = Depends(get_resolver),
) -> DumpsterListResponse:
    """Dumpsters that can be assigned to an order right now."""
    dumpsters = await resolver.list_candidates()
    return DumpsterListResponse(
        items=[DumpsterResponse.model_validate(d) for d in dumpsters],
        total=len(dumpsters),
    )


@router.get("/stats", response_model=DumpsterStats)
async def dumpster_stats(
    service: DumpsterService = Depends(get_dumpster_service),
) -> DumpsterStats:
    """Fleet counts by status."""
    return await service.stats()


@router.post("", response_model=DumpsterResponse, status_code=201)
async def create_dumpster(
    data: DumpsterCreate,
    service: DumpsterService = Depends(get_dumpster_service),
) -> DumpsterResponse:
    """Add a dumpster to inventory."""
    return DumpsterResponse.model_validate(await service.create(data))


@router.get("/{dumpster_id}", response_model=DumpsterResponse)
async def get_dumpster(
    dumpster_id: UUID,
    service: DumpsterService = Depends(get_dumpster_service),
) -> DumpsterResponse:
    """Get dumpster by ID."""
    return DumpsterResponse.model_validate(await service.get(dumpster_id))


@router.patch("/{dumpster_id}", response_model=DumpsterResponse)
async def update_dumpster(
    dumpster_id: UUID,
    data: DumpsterUpdate,
    service: DumpsterService = Depends(get_dumpster_service),
) -> DumpsterResponse:
    """Edit a dumpster."""
    return DumpsterResponse.model_validate(await service.update(dumpster_id, data))


@router.delete("/{dumpster_id}", status_code=204)
async def delete_dumpster(
    dumpster_id: UUID,
    service: DumpsterService = Depends(get_dumpster_service),
) -> Response:
    """Remove a dumpster that is not assigned."""
    await service.delete(dumpster_id)
    return Response(status_code=204)
