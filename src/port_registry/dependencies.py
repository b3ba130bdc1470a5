"""FastAPI dependencies."""

from fastapi import Request

from .service import AllocationService


def get_allocation_service(request: Request) -> AllocationService:
    """Engine instance created by the app factory or its lifespan."""
    return request.app.state.service
