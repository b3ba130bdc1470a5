"""Registry HTTP API - FastAPI with SQLAlchemy."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
import structlog

from . import __version__, routers
from .config import Settings, get_settings
from .database import create_engine, create_session_maker, init_db
from .exceptions import (
    ConflictError,
    FilterRequiredError,
    NotFoundError,
    PortBusyError,
    RangeExhaustedError,
    RegistryError,
    ValidationError,
)
from .probe import is_port_free
from .schemas import ErrorResponse
from .service import AllocationService
from .store import AllocationStore

# Most specific first; the first isinstance match wins
ERROR_STATUS: list[tuple[type[RegistryError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (FilterRequiredError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PortBusyError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (RangeExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: RegistryError) -> int:
    for exc_type, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    holder = exc.holder if isinstance(exc, ConflictError) else None
    body = ErrorResponse(error=str(exc), holder=holder)
    return JSONResponse(
        status_code=status_for(exc),
        content=body.model_dump(mode="json", exclude_none=True),
    )


def build_service(settings: Settings) -> tuple[AllocationService, AsyncEngine]:
    engine = create_engine(settings.database_url)
    store = AllocationStore(
        create_session_maker(engine),
        port_checker=is_port_free if settings.probe_enabled else None,
    )
    service = AllocationService(
        store,
        port_min=settings.port_min,
        port_max=settings.port_max,
        auto_assign_attempts=settings.auto_assign_attempts,
    )
    return service, engine


def create_app(
    settings: Settings | None = None,
    service: AllocationService | None = None,
) -> FastAPI:
    """Build the API app.

    When ``service`` is given it is used as-is (tests pass one bound to an
    in-memory database); otherwise the lifespan builds one from ``settings``.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        if getattr(app.state, "service", None) is not None:
            yield
            return

        app.state.service, engine = build_service(settings)
        await init_db(engine)
        yield
        await engine.dispose()

    app = FastAPI(
        title="Port Registry",
        description="Local port allocation registry",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_exception_handler(RegistryError, registry_error_handler)

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", f"req_{uuid.uuid4().hex[:8]}")
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id, method=request.method, path=request.url.path
        )

        start = time.time()
        logger = structlog.get_logger()

        try:
            response = await call_next(request)
            duration_ms = (time.time() - start) * 1000

            if response.status_code >= 500:  # noqa: PLR2004
                logger.error(
                    "http_request_failed",
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                )
            else:
                logger.info(
                    "http_request",
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                )

            response.headers["X-Correlation-ID"] = correlation_id
            return response
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            logger.error(
                "http_request_exception",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
                exc_info=True,
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id", "method", "path")

    app.include_router(routers.health.router)
    app.include_router(routers.allocations.router, prefix="/v1")
    app.include_router(routers.ports.router, prefix="/v1")

    return app
