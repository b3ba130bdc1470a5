"""Shared fixtures: an in-memory registry with the system probe disabled."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

from httpx import ASGITransport, AsyncClient
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from port_registry.config import Settings
from port_registry.database import create_engine, create_session_maker, init_db
from port_registry.main import create_app
from port_registry.schemas import AllocationRead
from port_registry.service import AllocationService
from port_registry.store import AllocationStore

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(MEMORY_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine) -> AllocationStore:
    # Skip real system checks in tests
    return AllocationStore(create_session_maker(db_engine), port_checker=None)


@pytest.fixture
def service(store) -> AllocationService:
    return AllocationService(store, port_min=3000, port_max=9999)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=MEMORY_URL,
        pid_file=tmp_path / "port-registry.pid",
        log_file=tmp_path / "port-registry.log",
        port_min=3000,
        port_max=9999,
        probe_enabled=False,
    )


@pytest.fixture
async def async_client(settings, service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app in-process."""
    app = create_app(settings=settings, service=service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def allocation_read() -> AllocationRead:
    return AllocationRead(
        id=1,
        app="myapp",
        instance="dev",
        service="web",
        port=3000,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )
