"""Ports router."""

from fastapi import APIRouter, Depends

from ..dependencies import get_allocation_service
from ..schemas import PortStatus
from ..service import AllocationService

router = APIRouter(prefix="/ports", tags=["ports"])


@router.get("/{port}", response_model=PortStatus)
async def check_port(
    port: int,
    registry: AllocationService = Depends(get_allocation_service),
) -> PortStatus:
    """Check whether the registry holds a port."""
    return await registry.check(port)
