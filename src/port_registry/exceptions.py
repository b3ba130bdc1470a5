"""Registry error taxonomy.

Store, engine, HTTP layer and client all raise these same classes, so a
caller can tell "pick another port" (PortTakenError) from "already done"
(ServiceAlreadyAllocatedError) from "wait" (PortBusyError) no matter which
side of the wire it sits on.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import AllocationRead


class RegistryError(Exception):
    """Base class for all registry failures."""

    message = "registry error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class ValidationError(RegistryError):
    """Raised when a request is malformed. Never touches storage."""

    message = "invalid request"


class ConflictError(RegistryError):
    """Raised when a live allocation already holds the port or the triple."""

    def __init__(self, holder: "AllocationRead", message: str | None = None):
        super().__init__(message)
        self.holder = holder


class PortTakenError(ConflictError):
    """Raised when the requested port is held by another allocation."""

    message = "port already allocated"


class ServiceAlreadyAllocatedError(ConflictError):
    """Raised when the (app, instance, service) triple already holds a port."""

    message = "service already allocated"


class PortBusyError(RegistryError):
    """Raised when the OS refuses to bind the port. Carries no holder."""

    message = "port in use on system"


class RangeExhaustedError(RegistryError):
    """Raised when no port in the auto-assign window qualifies."""

    message = "no free ports in range"

    def __init__(self, port_min: int | None = None, port_max: int | None = None):
        if port_min is None or port_max is None:
            super().__init__()
        else:
            super().__init__(f"{self.message} {port_min}-{port_max}")
        self.port_min = port_min
        self.port_max = port_max


class NotFoundError(RegistryError):
    """Raised when no live allocation matches an id or port."""

    message = "allocation not found"


class FilterRequiredError(RegistryError):
    """Raised when a filtered release names no field at all."""

    message = "filter required"
