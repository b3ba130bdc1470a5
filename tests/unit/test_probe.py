"""System port probe tests against real sockets on 127.0.0.1."""

import socket

import pytest

from port_registry.probe import PROBE_HOST, is_port_free


@pytest.fixture
def listening_port():
    """A port held by a listening socket for the duration of the test."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((PROBE_HOST, 0))
        sock.listen(1)
        yield sock.getsockname()[1]


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((PROBE_HOST, 0))
        return sock.getsockname()[1]


def test_listening_port_is_busy(listening_port):
    assert is_port_free(listening_port) is False


def test_released_port_is_free():
    assert is_port_free(free_port()) is True


def test_probe_does_not_hold_port():
    port = free_port()

    assert is_port_free(port) is True
    assert is_port_free(port) is True


@pytest.mark.parametrize("port", [-1, 65536])
def test_invalid_port_reported_busy(port):
    assert is_port_free(port) is False
