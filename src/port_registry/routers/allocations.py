"""Allocations router.

Allocate, list and release port claims. Registry errors raised here are
turned into JSON error bodies by the handlers registered in ``main``.
"""

from fastapi import APIRouter, Depends, Path, status

from ..dependencies import get_allocation_service
from ..schemas import (
    AllocateRequest,
    AllocationRead,
    ErrorResponse,
    ReleaseRequest,
    ReleaseResult,
)
from ..service import AllocationService

router = APIRouter(prefix="/allocations", tags=["allocations"])

# Largest SQLite INTEGER
MAX_ALLOCATION_ID = 2**63 - 1


@router.post(
    "",
    response_model=AllocationRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
)
async def allocate(
    request: AllocateRequest,
    registry: AllocationService = Depends(get_allocation_service),
) -> AllocationRead:
    """Allocate a port. ``port`` 0 or omitted picks the lowest free one."""
    return await registry.allocate(
        request.app, request.instance, request.service, request.port
    )


@router.get("", response_model=list[AllocationRead])
async def list_allocations(
    app: str = "",
    instance: str = "",
    service: str = "",
    registry: AllocationService = Depends(get_allocation_service),
) -> list[AllocationRead]:
    """List allocations with optional filtering."""
    return await registry.list(app=app, instance=instance, service=service)


@router.delete(
    "",
    response_model=ReleaseResult,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def release_by_filter(
    request: ReleaseRequest,
    registry: AllocationService = Depends(get_allocation_service),
) -> ReleaseResult:
    """Release every allocation matching all given fields."""
    deleted = await registry.release_by_filter(
        app=request.app, instance=request.instance, service=request.service, port=request.port
    )
    return ReleaseResult(deleted=deleted)


@router.get(
    "/{allocation_id}",
    response_model=AllocationRead,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def get_allocation(
    allocation_id: int = Path(..., ge=1, le=MAX_ALLOCATION_ID),
    registry: AllocationService = Depends(get_allocation_service),
) -> AllocationRead:
    """Get a single allocation by ID."""
    return await registry.get(allocation_id)


@router.delete(
    "/{allocation_id}",
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def release_by_id(
    allocation_id: int = Path(..., ge=1, le=MAX_ALLOCATION_ID),
    registry: AllocationService = Depends(get_allocation_service),
) -> dict:
    """Delete (release) a port allocation."""
    await registry.release_by_id(allocation_id)
    return {"status": "deleted"}
