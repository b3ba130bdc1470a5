"""Database models package."""

from .allocation import Allocation
from .base import Base, UTCDateTime, utcnow

__all__ = [
    "Allocation",
    "Base",
    "UTCDateTime",
    "utcnow",
]
