"""API routers."""

from . import allocations, health, ports

__all__ = ["allocations", "health", "ports"]
