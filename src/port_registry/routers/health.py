"""Health check router."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..dependencies import get_allocation_service
from ..logging_config import get_logger
from ..service import AllocationService

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/healthz")
async def health(registry: AllocationService = Depends(get_allocation_service)):
    """Health check endpoint. Fails when the database is unreachable."""
    try:
        await registry.health()
    except SQLAlchemyError as e:
        logger.error("health_check_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy"},
        )
    return {"status": "ok"}
