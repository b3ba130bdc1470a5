"""Background port-server lifecycle: start, stop and status via a PID file."""

from dataclasses import dataclass
import os
from pathlib import Path
import signal
import subprocess
import sys
import time

import httpx

from ..client import RegistryClient
from ..config import Settings

START_POLL_INTERVAL_SEC = 0.1
START_POLL_ATTEMPTS = 20
STOP_POLL_ATTEMPTS = 50


class DaemonError(Exception):
    """Raised when the daemon cannot be started or stopped."""


@dataclass
class DaemonStatus:
    running: bool
    pid: int | None = None
    healthy: bool = False
    stale_pid_removed: bool = False


def read_pid(pid_file: Path) -> int | None:
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


def is_healthy(addr: str) -> bool:
    try:
        with RegistryClient(addr, timeout=1.0) as client:
            client.health()
    except httpx.HTTPError:
        return False
    return True


def server_command() -> list[str]:
    return [sys.executable, "-m", "port_registry.server"]


def status(settings: Settings) -> DaemonStatus:
    pid = read_pid(settings.pid_file)
    if pid is None:
        return DaemonStatus(running=False)
    if not is_process_alive(pid):
        settings.pid_file.unlink(missing_ok=True)
        return DaemonStatus(running=False, pid=pid, stale_pid_removed=True)
    return DaemonStatus(running=True, pid=pid, healthy=is_healthy(settings.server_addr))


def start(settings: Settings) -> int:
    """Spawn a detached port-server and wait until it answers health checks.

    Returns:
        PID of the new server.

    Raises:
        DaemonError: Already running, failed to spawn, or never became healthy.
    """
    current = status(settings)
    if current.running:
        raise DaemonError(f"port-server is already running (pid {current.pid})")

    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    with settings.log_file.open("a") as log:
        try:
            process = subprocess.Popen(  # noqa: S603
                server_command(),
                stdout=log,
                stderr=log,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise DaemonError(f"failed to start port-server: {e}") from e

    for _ in range(START_POLL_ATTEMPTS):
        time.sleep(START_POLL_INTERVAL_SEC)
        if process.poll() is not None:
            raise DaemonError(
                f"port-server exited with code {process.returncode}; "
                f"check logs at {settings.log_file}"
            )
        if is_healthy(settings.server_addr):
            return process.pid

    raise DaemonError(
        f"server started (pid {process.pid}) but health check not responding; "
        f"check logs at {settings.log_file}"
    )


def stop(settings: Settings) -> int:
    """Send SIGTERM to the running server and wait up to 5 seconds for it to exit.

    Returns:
        PID of the stopped server.
    """
    pid = read_pid(settings.pid_file)
    if pid is None:
        raise DaemonError("port-server is not running (no PID file)")

    if not is_process_alive(pid):
        settings.pid_file.unlink(missing_ok=True)
        raise DaemonError("port-server is not running (stale PID file removed)")

    try:
        os.kill(pid, signal.SIGTERM)
    except OSError as e:
        raise DaemonError(f"failed to stop port-server: {e}") from e

    for _ in range(STOP_POLL_ATTEMPTS):
        time.sleep(START_POLL_INTERVAL_SEC)
        if not is_process_alive(pid):
            settings.pid_file.unlink(missing_ok=True)
            return pid

    raise DaemonError(f"port-server (pid {pid}) did not stop within 5 seconds")
