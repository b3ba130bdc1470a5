"""System-level TCP port availability probe."""

from collections.abc import Callable
import socket

PROBE_HOST = "127.0.0.1"

# Returns True when the port is free on the host. None disables probing.
PortChecker = Callable[[int], bool]


def is_port_free(port: int) -> bool:
    """Check whether a TCP listener can be bound on 127.0.0.1:port right now.

    The listener is closed immediately, so the answer is only a snapshot.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((PROBE_HOST, port))
            sock.listen(1)
            return True
    except (OSError, OverflowError, TypeError):
        return False
