"""Structured logging configuration for the registry.

Uses structlog and outputs either JSON (for log shipping) or console format
(for development). Defaults come from the registry settings.

Usage:
    from port_registry.logging_config import setup_logging, get_logger

    setup_logging(service_name="port-server")
    logger = get_logger(__name__)
    logger.info("allocation_created", port=3000, app="web")
"""

import logging
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from .config import get_settings


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structured logging with structlog.

    Arguments left as ``None`` come from ``get_settings()``, i.e. the
    ``PORT_REGISTRY_SERVICE_NAME``, ``PORT_REGISTRY_LOG_FORMAT`` and
    ``PORT_REGISTRY_LOG_LEVEL`` environment variables or their defaults.

    Args:
        service_name: Name bound to every log line.
        log_format: Output format - "json" for machines, "console" for humans.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    if service_name is None or log_format is None or log_level is None:
        settings = get_settings()
        service_name = service_name or settings.service_name
        log_format = log_format or settings.log_format
        log_level = log_level or settings.log_level

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # The daemon redirects stdout into its log file
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        # correlation_id, method, path from the HTTP middleware
        structlog.contextvars.merge_contextvars,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    logger = structlog.get_logger()
    logger.info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Optional logger name, usually ``__name__``.

    Returns:
        Configured structlog logger instance.
    """
    return structlog.get_logger(name)
