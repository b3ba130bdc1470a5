"""Allocation engine.

Boundary-facing layer over the store: holds the configured auto-assign
window and retry policy, and exposes the operations the HTTP routers serve.
Failure kinds from the store pass through unchanged.
"""

from .config import MAX_PORT, MIN_PORT
from .exceptions import NotFoundError, PortTakenError, ValidationError
from .logging_config import get_logger
from .schemas import AllocationFilter, AllocationRead, PortStatus
from .store import AllocationStore

logger = get_logger(__name__)


class AllocationService:
    """Allocate, list, check and release port claims."""

    def __init__(
        self,
        store: AllocationStore,
        port_min: int = MIN_PORT,
        port_max: int = MAX_PORT,
        auto_assign_attempts: int = 3,
    ):
        self.store = store
        self.port_min = port_min
        self.port_max = port_max
        self.auto_assign_attempts = max(1, auto_assign_attempts)

    async def allocate(
        self, app: str, instance: str, service: str, port: int = 0
    ) -> AllocationRead:
        """Allocate a port for the triple.

        With ``port=0`` a free port is searched for. Two concurrent searches
        can pick the same port; the one whose insert loses gets PortTakenError
        from the store and searches again, up to ``auto_assign_attempts``
        searches in total. Explicit ports are never retried.
        """
        retries = 0 if port else self.auto_assign_attempts - 1
        for attempt in range(1, retries + 1):
            try:
                return await self.store.allocate(
                    app, instance, service, port, self.port_min, self.port_max
                )
            except PortTakenError as e:
                logger.info(
                    "auto_assign_retry",
                    attempt=attempt,
                    lost_port=e.holder.port,
                    triple=f"{app}/{instance}/{service}",
                )
        return await self.store.allocate(
            app, instance, service, port, self.port_min, self.port_max
        )

    async def list(
        self, app: str = "", instance: str = "", service: str = ""
    ) -> list[AllocationRead]:
        return await self.store.list(
            AllocationFilter(app=app, instance=instance, service=service)
        )

    async def get(self, allocation_id: int) -> AllocationRead:
        return await self.store.get_by_id(allocation_id)

    async def check(self, port: int) -> PortStatus:
        """Report whether the registry holds ``port``.

        Only registry bookkeeping is consulted, not the system probe.
        """
        if not MIN_PORT <= port <= MAX_PORT:
            raise ValidationError(f"port must be between {MIN_PORT} and {MAX_PORT}, got {port}")
        try:
            holder = await self.store.get_by_port(port)
        except NotFoundError:
            return PortStatus(port=port, available=True)
        return PortStatus(port=port, available=False, holder=holder)

    async def release_by_id(self, allocation_id: int) -> None:
        await self.store.delete_by_id(allocation_id)

    async def release_by_filter(
        self, app: str = "", instance: str = "", service: str = "", port: int = 0
    ) -> int:
        return await self.store.delete_by_filter(
            AllocationFilter(app=app, instance=instance, service=service, port=port)
        )

    async def health(self) -> bool:
        """Check the store connection. Storage errors propagate."""
        await self.store.ping()
        return True
