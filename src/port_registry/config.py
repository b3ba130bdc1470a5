"""Registry configuration with pydantic-settings.

Every field can be set through a ``PORT_REGISTRY_``-prefixed environment
variable or a ``.env`` file in the working directory.

Usage:
    from port_registry.config import get_settings

    settings = get_settings()
    settings.port_min, settings.port_max
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_SERVER_PORT = 51234
DEFAULT_HOME = Path.home() / ".port-registry"


def default_db_path() -> Path:
    return DEFAULT_HOME / "ports.db"


def default_pid_path() -> Path:
    return DEFAULT_HOME / "port-registry.pid"


def default_log_path() -> Path:
    return DEFAULT_HOME / "port-registry.log"


def sqlite_url(path: Path | str) -> str:
    """Build an async SQLite URL for a database file."""
    return f"sqlite+aiosqlite:///{Path(path).expanduser()}"


class Settings(BaseSettings):
    """Registry settings.

    All fields are optional with sensible defaults for a single-user
    development machine.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORT_REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Storage ===
    database_url: str = Field(
        default_factory=lambda: sqlite_url(default_db_path()),
        description="SQLAlchemy async database URL",
        examples=["sqlite+aiosqlite:///./ports.db"],
    )

    # === Server ===
    host: str = Field(default="127.0.0.1", description="Address the server binds to")
    server_port: int = Field(
        default=DEFAULT_SERVER_PORT,
        ge=MIN_PORT,
        le=MAX_PORT,
        description="Port the server listens on",
    )
    addr: str | None = Field(
        default=None,
        description="host:port clients connect to; defaults to host and server_port",
        examples=["127.0.0.1:51234"],
    )
    pid_file: Path = Field(default_factory=default_pid_path)
    log_file: Path = Field(default_factory=default_log_path)

    # === Allocation policy ===
    port_min: int = Field(default=MIN_PORT, ge=MIN_PORT, le=MAX_PORT)
    port_max: int = Field(default=MAX_PORT, ge=MIN_PORT, le=MAX_PORT)
    probe_enabled: bool = Field(
        default=True,
        description="Check that a port is bindable on 127.0.0.1 before handing it out",
    )
    auto_assign_attempts: int = Field(
        default=3,
        ge=1,
        description="Free-port searches per auto-assign request before a lost race is reported",
    )

    # === Logging ===
    service_name: str = Field(default="port-registry")
    log_format: Literal["json", "console"] = Field(default="console")
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @model_validator(mode="after")
    def validate_port_window(self) -> "Settings":
        if self.port_min > self.port_max:
            raise ValueError(
                f"port_min ({self.port_min}) must not exceed port_max ({self.port_max})"
            )
        return self

    @property
    def server_addr(self) -> str:
        return self.addr or f"{self.host}:{self.server_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
