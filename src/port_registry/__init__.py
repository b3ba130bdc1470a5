"""Local port allocation registry."""

__version__ = "0.1.0"
