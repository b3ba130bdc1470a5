"""Settings tests."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from port_registry.config import (
    DEFAULT_SERVER_PORT,
    MAX_PORT,
    MIN_PORT,
    Settings,
    get_settings,
    sqlite_url,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "PORT_REGISTRY_DATABASE_URL",
        "PORT_REGISTRY_PORT_MIN",
        "PORT_REGISTRY_PORT_MAX",
        "PORT_REGISTRY_ADDR",
        "PORT_REGISTRY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the repo root out of the way
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = Settings()

    assert settings.port_min == MIN_PORT
    assert settings.port_max == MAX_PORT
    assert settings.server_port == DEFAULT_SERVER_PORT
    assert settings.server_addr == f"127.0.0.1:{DEFAULT_SERVER_PORT}"
    assert settings.probe_enabled is True
    assert settings.auto_assign_attempts == 3  # noqa: PLR2004
    assert settings.database_url.startswith("sqlite+aiosqlite:///")
    assert settings.database_url.endswith("ports.db")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORT_REGISTRY_PORT_MIN", "3000")
    monkeypatch.setenv("PORT_REGISTRY_PORT_MAX", "3999")
    monkeypatch.setenv("PORT_REGISTRY_ADDR", "127.0.0.1:9000")

    settings = Settings()

    assert (settings.port_min, settings.port_max) == (3000, 3999)
    assert settings.server_addr == "127.0.0.1:9000"


def test_inverted_window_rejected():
    with pytest.raises(ValidationError):
        Settings(port_min=5000, port_max=4000)


@pytest.mark.parametrize("field", ["port_min", "port_max", "server_port"])
def test_port_bounds(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})
    with pytest.raises(ValidationError):
        Settings(**{field: 65536})


def test_log_level_normalized():
    assert Settings(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_get_settings_cached():
    assert get_settings() is get_settings()


def test_sqlite_url_expands_home():
    url = sqlite_url("~/ports.db")

    assert url == f"sqlite+aiosqlite:///{Path.home() / 'ports.db'}"
