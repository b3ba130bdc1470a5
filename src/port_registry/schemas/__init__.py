"""API schemas."""

from .allocation import (
    AllocateRequest,
    AllocationFilter,
    AllocationRead,
    ErrorResponse,
    PortStatus,
    ReleaseRequest,
    ReleaseResult,
)

__all__ = [
    "AllocateRequest",
    "AllocationFilter",
    "AllocationRead",
    "ErrorResponse",
    "PortStatus",
    "ReleaseRequest",
    "ReleaseResult",
]
