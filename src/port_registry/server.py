"""port-server: the registry daemon.

Serves the HTTP API on 127.0.0.1 and keeps a PID file for ``portctl``
while running. uvicorn handles SIGINT/SIGTERM and drains in-flight
requests before the process exits.
"""

import os
from pathlib import Path

import typer
import uvicorn

from . import __version__
from .config import MAX_PORT, Settings, get_settings, sqlite_url
from .database import ensure_database_dir
from .logging_config import get_logger, setup_logging
from .main import create_app

logger = get_logger(__name__)


def write_pid_file(pid_file: Path) -> None:
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))


def remove_pid_file(pid_file: Path) -> None:
    """Remove the PID file unless another server has since claimed it."""
    try:
        owner = pid_file.read_text().strip()
    except OSError:
        return
    if owner == str(os.getpid()):
        pid_file.unlink(missing_ok=True)


def serve(settings: Settings) -> None:
    """Run the API until a shutdown signal arrives.

    The listening socket is bound before the PID file is written, so a
    second server that cannot bind exits without touching the PID file of
    the one already running.
    """
    setup_logging(
        service_name=settings.service_name,
        log_format=settings.log_format,
        log_level=settings.log_level,
    )
    ensure_database_dir(settings.database_url)

    addr = f"{settings.host}:{settings.server_port}"
    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.server_port,
        log_config=None,
        access_log=False,
    )
    server = uvicorn.Server(config)

    try:
        # Exits the process with status 1 when the address is in use
        sock = config.bind_socket()
    except SystemExit:
        logger.error("port_server_bind_failed", addr=addr)
        raise

    write_pid_file(settings.pid_file)
    logger.info("port_server_starting", addr=addr, pid=os.getpid())
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()
        remove_pid_file(settings.pid_file)
        logger.info("port_server_stopped")


app = typer.Typer(name="port-server", add_completion=False)


@app.command()
def main(
    port: int = typer.Option(
        0, "--port", min=0, max=MAX_PORT, help="Server listen port (default from settings)"
    ),
    db: str = typer.Option("", "--db", help="SQLite database path"),
    pidfile: str = typer.Option("", "--pidfile", help="PID file path"),
    version: bool = typer.Option(False, "--version", help="Print version and exit"),
):
    """Run the port registry server."""
    if version:
        typer.echo(f"port-server {__version__}")
        raise typer.Exit()

    overrides: dict = {}
    if port:
        overrides["server_port"] = port
    if db:
        overrides["database_url"] = sqlite_url(db)
    if pidfile:
        overrides["pid_file"] = Path(pidfile).expanduser()

    settings = get_settings().model_copy(update=overrides)
    serve(settings)


if __name__ == "__main__":
    app()
