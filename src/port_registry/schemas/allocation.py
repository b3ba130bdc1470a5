"""Port allocation schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AllocationFilter(BaseModel):
    """Conjunctive filter over allocations. Empty fields match anything."""

    app: str = ""
    instance: str = ""
    service: str = ""
    port: int = 0

    @field_validator("app", "instance", "service", mode="before")
    @classmethod
    def strip_identifier(cls, v: str | None) -> str:
        return (v or "").strip()

    @field_validator("port", mode="before")
    @classmethod
    def default_port(cls, v: int | None) -> int:
        return v or 0

    def is_empty(self) -> bool:
        return not (self.app or self.instance or self.service or self.port)


class AllocateRequest(BaseModel):
    """Schema for requesting an allocation. ``port=0`` asks for any free port."""

    # Emptiness is checked by the store so it maps to a registry ValidationError
    app: str = ""
    instance: str = ""
    service: str = ""
    port: int = 0


class ReleaseRequest(AllocationFilter):
    """Schema for releasing every allocation matching the given fields."""


class AllocationRead(BaseModel):
    """Schema for reading an allocation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    app: str
    instance: str
    service: str
    port: int
    created_at: datetime


class PortStatus(BaseModel):
    """Whether the registry has a live allocation on a port."""

    port: int
    available: bool
    holder: AllocationRead | None = None


class ErrorResponse(BaseModel):
    """Error body. ``holder`` is set for conflicts."""

    error: str
    holder: AllocationRead | None = None


class ReleaseResult(BaseModel):
    deleted: int = Field(ge=0)
