"""Allocation store.

Persistent table of allocations. Uniqueness of ports and of
(app, instance, service) triples is enforced only by the database's unique
constraints: an allocation is inserted first and, if the insert is
rejected, the conflict is classified afterwards by re-querying. Nothing
checks for a free slot and then writes under the assumption it is still
free, so two concurrent requests can never both win.
"""

from __future__ import annotations

import asyncio
from typing import TypeVar

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.dml import Delete

from .config import MAX_PORT, MIN_PORT
from .exceptions import (
    FilterRequiredError,
    NotFoundError,
    PortBusyError,
    PortTakenError,
    RangeExhaustedError,
    ServiceAlreadyAllocatedError,
    ValidationError,
)
from .logging_config import get_logger
from .models import Allocation, utcnow
from .probe import PortChecker, is_port_free
from .schemas import AllocationFilter, AllocationRead

logger = get_logger(__name__)

Q = TypeVar("Q", Select, Delete)


def _is_valid_port(port: int) -> bool:
    return MIN_PORT <= port <= MAX_PORT


def validate_allocate_args(
    app: str, instance: str, service: str, port: int, port_min: int, port_max: int
) -> tuple[str, str, str]:
    """Validate an allocate request and return the trimmed triple.

    Raises:
        ValidationError: On empty identifiers, out-of-range port or a bad window.
    """
    app, instance, service = (app or "").strip(), (instance or "").strip(), (service or "").strip()
    if not (app and instance and service):
        raise ValidationError("app, instance, and service are required")
    if port and not _is_valid_port(port):
        raise ValidationError(f"port must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    if not (_is_valid_port(port_min) and _is_valid_port(port_max)) or port_min > port_max:
        raise ValidationError(f"invalid port range {port_min}-{port_max}")
    return app, instance, service


def validate_filter(filter: AllocationFilter) -> None:
    """Raise ValidationError for a filter port that no allocation can hold."""
    if filter.port and not _is_valid_port(filter.port):
        raise ValidationError(
            f"port must be between {MIN_PORT} and {MAX_PORT}, got {filter.port}"
        )


class AllocationStore:
    """SQL-backed allocation table.

    Args:
        session_maker: Factory for async sessions; every operation uses its own.
        port_checker: System probe consulted before handing out a port.
            ``None`` disables probing so only registry bookkeeping applies.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        port_checker: PortChecker | None = is_port_free,
    ):
        self._session_maker = session_maker
        self.port_checker = port_checker

    async def ping(self) -> None:
        async with self._session_maker() as session:
            await session.execute(select(1))

    async def allocate(
        self,
        app: str,
        instance: str,
        service: str,
        port: int,
        port_min: int,
        port_max: int,
    ) -> AllocationRead:
        """Claim ``port`` (or, when 0, the lowest free port in the window) for the triple.

        Raises:
            ValidationError: Malformed request, nothing is written.
            ServiceAlreadyAllocatedError: The triple already holds a port.
            PortTakenError: Another allocation holds the port.
            PortBusyError: The OS refuses to bind the requested port.
            RangeExhaustedError: No qualifying port in ``port_min..port_max``.
        """
        app, instance, service = validate_allocate_args(
            app, instance, service, port, port_min, port_max
        )

        if port:
            if self.port_checker is not None and not await asyncio.to_thread(
                self.port_checker, port
            ):
                raise await self._classify_busy(app, instance, service, port)
        else:
            port = await self._find_free_port(app, instance, service, port_min, port_max)

        allocation = Allocation(
            app=app, instance=instance, service=service, port=port, created_at=utcnow()
        )
        async with self._session_maker() as session:
            session.add(allocation)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                conflict = await self._classify_conflict(session, app, instance, service, port)
                if conflict is None:
                    raise
                logger.info(
                    "allocation_conflict",
                    reason=conflict.message,
                    port=port,
                    triple=f"{app}/{instance}/{service}",
                    holder_id=conflict.holder.id,
                )
                raise conflict from exc

        logger.info(
            "allocation_created",
            id=allocation.id,
            port=port,
            triple=f"{app}/{instance}/{service}",
        )
        return AllocationRead.model_validate(allocation)

    async def _classify_conflict(
        self, session: AsyncSession, app: str, instance: str, service: str, port: int
    ) -> ServiceAlreadyAllocatedError | PortTakenError | None:
        # Same identity first: the caller is most likely repeating a request
        holder = await self._get_by_triple(session, app, instance, service)
        if holder is not None:
            return ServiceAlreadyAllocatedError(AllocationRead.model_validate(holder))

        holder = await self._get_by_port(session, port)
        if holder is not None:
            return PortTakenError(AllocationRead.model_validate(holder))

        return None

    async def _classify_busy(
        self, app: str, instance: str, service: str, port: int
    ) -> ServiceAlreadyAllocatedError | PortTakenError | PortBusyError:
        """Explain why an explicitly requested port failed the system probe.

        A port that the registry itself hands out is usually bound by its
        holder, so a tracked conflict is reported in preference to PortBusy.
        """
        async with self._session_maker() as session:
            conflict = await self._classify_conflict(session, app, instance, service, port)
        if conflict is not None:
            return conflict
        logger.info("port_busy", port=port, triple=f"{app}/{instance}/{service}")
        return PortBusyError()

    async def _find_free_port(
        self, app: str, instance: str, service: str, port_min: int, port_max: int
    ) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Allocation.port).where(Allocation.port.between(port_min, port_max))
            )
            used = set(result.scalars().all())

        # Each probe is a blocking bind, so the scan runs in a worker thread
        candidate = await asyncio.to_thread(self._scan, port_min, port_max, used)
        if candidate is not None:
            return candidate

        async with self._session_maker() as session:
            holder = await self._get_by_triple(session, app, instance, service)
        if holder is not None:
            raise ServiceAlreadyAllocatedError(AllocationRead.model_validate(holder))
        logger.warning("port_range_exhausted", port_min=port_min, port_max=port_max)
        raise RangeExhaustedError(port_min, port_max)

    def _scan(self, port_min: int, port_max: int, used: set[int]) -> int | None:
        """Return the lowest port in the window that is untracked and bindable."""
        for candidate in range(port_min, port_max + 1):
            if candidate in used:
                continue
            if self.port_checker is not None and not self.port_checker(candidate):
                logger.debug("port_skipped_busy", port=candidate)
                continue
            return candidate
        return None

    async def list(self, filter: AllocationFilter | None = None) -> list[AllocationRead]:
        """List allocations matching every non-empty filter field, oldest first."""
        filter = filter or AllocationFilter()
        validate_filter(filter)
        query = _apply_filter(select(Allocation), filter).order_by(Allocation.id)
        async with self._session_maker() as session:
            result = await session.execute(query)
            return [AllocationRead.model_validate(a) for a in result.scalars().all()]

    async def get_by_port(self, port: int) -> AllocationRead:
        async with self._session_maker() as session:
            allocation = await self._get_by_port(session, port)
        if allocation is None:
            raise NotFoundError()
        return AllocationRead.model_validate(allocation)

    async def get_by_id(self, allocation_id: int) -> AllocationRead:
        async with self._session_maker() as session:
            allocation = await session.get(Allocation, allocation_id)
        if allocation is None:
            raise NotFoundError()
        return AllocationRead.model_validate(allocation)

    async def delete_by_id(self, allocation_id: int) -> None:
        async with self._session_maker() as session:
            result = await session.execute(delete(Allocation).where(Allocation.id == allocation_id))
            await session.commit()
            deleted = result.rowcount
        if deleted == 0:
            raise NotFoundError()
        logger.info("allocation_released", id=allocation_id)

    async def delete_by_filter(self, filter: AllocationFilter) -> int:
        """Delete every allocation matching the filter and return how many went.

        Raises:
            FilterRequiredError: If no field is set. Wiping the table is never implicit.
            ValidationError: If the port lies outside 1-65535.
        """
        if filter.is_empty():
            raise FilterRequiredError()
        validate_filter(filter)

        async with self._session_maker() as session:
            result = await session.execute(_apply_filter(delete(Allocation), filter))
            await session.commit()
            deleted = result.rowcount

        logger.info(
            "allocations_released", deleted=deleted, filter=filter.model_dump(exclude_defaults=True)
        )
        return deleted

    @staticmethod
    async def _get_by_port(session: AsyncSession, port: int) -> Allocation | None:
        result = await session.execute(select(Allocation).where(Allocation.port == port))
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_by_triple(
        session: AsyncSession, app: str, instance: str, service: str
    ) -> Allocation | None:
        result = await session.execute(
            select(Allocation).where(
                Allocation.app == app,
                Allocation.instance == instance,
                Allocation.service == service,
            )
        )
        return result.scalar_one_or_none()


def _apply_filter(query: Q, filter: AllocationFilter) -> Q:
    if filter.app:
        query = query.where(Allocation.app == filter.app)
    if filter.instance:
        query = query.where(Allocation.instance == filter.instance)
    if filter.service:
        query = query.where(Allocation.service == filter.service)
    if filter.port:
        query = query.where(Allocation.port == filter.port)
    return query
