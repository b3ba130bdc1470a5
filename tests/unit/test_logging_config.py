"""Tests for registry logging configuration."""

import json
import logging
import re

import pytest
import structlog

from port_registry.config import get_settings
from port_registry.logging_config import get_logger, setup_logging


def strip_ansi(text):
    """Strip ANSI escape sequences from text."""
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def parse_json_lines(output):
    """Parse output containing multiple JSON lines."""
    lines = output.strip().split("\n")
    return [json.loads(line) for line in lines if line.strip()]


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_json_format(capsys):
    setup_logging(service_name="port-server", log_format="json", log_level="INFO")

    structlog.get_logger().info("allocation_created", port=3000, triple="a/i/s")

    entries = parse_json_lines(capsys.readouterr().out)
    entry = next(e for e in entries if e.get("event") == "allocation_created")
    assert entry["service"] == "port-server"
    assert entry["port"] == 3000  # noqa: PLR2004
    assert entry["triple"] == "a/i/s"
    assert entry["level"] == "info"
    assert "timestamp" in entry


def test_initialization_is_logged(capsys):
    setup_logging(service_name="port-server", log_format="json", log_level="DEBUG")

    entries = parse_json_lines(capsys.readouterr().out)
    init = next(e for e in entries if e.get("event") == "logging_initialized")
    assert init["log_format"] == "json"
    assert init["log_level"] == "DEBUG"


def test_console_format(capsys):
    setup_logging(service_name="port-server", log_format="console", log_level="INFO")

    structlog.get_logger().info("port_busy", port=5000)

    output = strip_ansi(capsys.readouterr().out)
    assert "port_busy" in output
    assert "port=5000" in output


def test_level_filters_debug(capsys):
    setup_logging(service_name="port-server", log_format="json", log_level="WARNING")

    logger = structlog.get_logger()
    logger.debug("port_skipped_busy", port=3000)
    logger.warning("port_range_exhausted", port_min=3000, port_max=3001)

    events = [e.get("event") for e in parse_json_lines(capsys.readouterr().out)]
    assert "port_skipped_busy" not in events
    assert "port_range_exhausted" in events


def test_defaults_from_settings_env(monkeypatch, capsys):
    monkeypatch.setenv("PORT_REGISTRY_SERVICE_NAME", "from-env")
    monkeypatch.setenv("PORT_REGISTRY_LOG_FORMAT", "json")
    monkeypatch.setenv("PORT_REGISTRY_LOG_LEVEL", "INFO")

    setup_logging()
    structlog.get_logger().info("env_event")

    entries = parse_json_lines(capsys.readouterr().out)
    entry = next(e for e in entries if e.get("event") == "env_event")
    assert entry["service"] == "from-env"


def test_arguments_override_settings(monkeypatch, capsys):
    monkeypatch.setenv("PORT_REGISTRY_SERVICE_NAME", "from-env")
    monkeypatch.setenv("PORT_REGISTRY_LOG_FORMAT", "console")

    setup_logging(service_name="port-server", log_format="json")
    structlog.get_logger().info("explicit_event")

    entries = parse_json_lines(capsys.readouterr().out)
    entry = next(e for e in entries if e.get("event") == "explicit_event")
    assert entry["service"] == "port-server"


def test_contextvars_merged(capsys):
    setup_logging(service_name="port-server", log_format="json", log_level="INFO")

    structlog.contextvars.bind_contextvars(correlation_id="req_abc12345")
    structlog.get_logger().info("http_request", status_code=201)

    entries = parse_json_lines(capsys.readouterr().out)
    entry = next(e for e in entries if e.get("event") == "http_request")
    assert entry["correlation_id"] == "req_abc12345"


def test_get_logger_named(capsys):
    setup_logging(service_name="port-server", log_format="json", log_level="INFO")

    get_logger("port_registry.store").info("named_event")

    entries = parse_json_lines(capsys.readouterr().out)
    entry = next(e for e in entries if e.get("event") == "named_event")
    assert entry["logger"] == "port_registry.store"
