"""portctl: command-line client for the port registry."""

import json as json_lib

import httpx
from rich.console import Console
from rich.table import Table
import typer

from .. import __version__
from ..client import RegistryClient
from ..config import get_settings
from ..exceptions import (
    NotFoundError,
    PortTakenError,
    RegistryError,
    ServiceAlreadyAllocatedError,
)
from . import daemon

app = typer.Typer(
    name="portctl",
    help="Allocate and release local TCP ports through the port registry",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def get_client() -> RegistryClient:
    return RegistryClient(get_settings().server_addr)


def fail(message: str) -> typer.Exit:
    err_console.print(f"[bold red]✗ Error:[/bold red] {message}")
    return typer.Exit(code=1)


# === Allocations ===


@app.command()
def allocate(
    app_name: str = typer.Option(..., "--app", help="Application name"),
    instance: str = typer.Option(..., "--instance", help="Instance name"),
    service: str = typer.Option(..., "--service", help="Service name"),
    port: int = typer.Option(0, "--port", help="Specific port to allocate (0 = auto-assign)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Allocate a port."""
    try:
        with get_client() as client:
            alloc = client.allocate(app_name, instance, service, port)
    except ServiceAlreadyAllocatedError as e:
        h = e.holder
        raise fail(
            f"{h.app}/{h.instance}/{h.service} is already allocated on port {h.port} (id={h.id})"
        ) from None
    except PortTakenError as e:
        h = e.holder
        raise fail(
            f"port {h.port} is already allocated to {h.app}/{h.instance}/{h.service} (id={h.id})"
        ) from None
    except (RegistryError, httpx.HTTPError) as e:
        raise fail(str(e)) from None

    if json_output:
        typer.echo(alloc.model_dump_json(indent=2))
        return

    console.print(
        f"[bold green]✓[/bold green] allocated port [cyan]{alloc.port}[/cyan] (id={alloc.id}) "
        f"for {alloc.app}/{alloc.instance}/{alloc.service}"
    )


@app.command()
def release(
    allocation_id: int = typer.Option(0, "--id", help="Allocation ID to release"),
    app_name: str = typer.Option("", "--app", help="Application name"),
    instance: str = typer.Option("", "--instance", help="Instance name"),
    service: str = typer.Option("", "--service", help="Service name"),
    port: int = typer.Option(0, "--port", help="Port to release"),
):
    """Release an allocation by ID, or every allocation matching the filters."""
    if not allocation_id and not (app_name or instance or service or port):
        raise fail("--id, --app, --instance, --service or --port is required")

    try:
        with get_client() as client:
            if allocation_id:
                client.release_by_id(allocation_id)
                console.print(f"[bold green]✓[/bold green] released allocation {allocation_id}")
                return
            deleted = client.release_by_filter(app_name, instance, service, port)
    except NotFoundError:
        raise fail(f"allocation {allocation_id} not found") from None
    except (RegistryError, httpx.HTTPError) as e:
        raise fail(str(e)) from None

    console.print(f"[bold green]✓[/bold green] released {deleted} allocation(s)")


@app.command(name="list")
def list_allocations(
    app_name: str = typer.Option("", "--app", help="Filter by application"),
    instance: str = typer.Option("", "--instance", help="Filter by instance"),
    service: str = typer.Option("", "--service", help="Filter by service"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List allocations."""
    try:
        with get_client() as client:
            allocations = client.list(app_name, instance, service)
    except (RegistryError, httpx.HTTPError) as e:
        raise fail(str(e)) from None

    if json_output:
        typer.echo(json_lib.dumps([a.model_dump(mode="json") for a in allocations], indent=2))
        return

    if not allocations:
        console.print("[dim]no allocations[/dim]")
        return

    table = Table(title="Allocations")
    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("App", style="magenta")
    table.add_column("Instance")
    table.add_column("Service")
    table.add_column("Port", justify="right", style="green")
    table.add_column("Created", style="dim")

    for a in allocations:
        table.add_row(
            str(a.id),
            a.app,
            a.instance,
            a.service,
            str(a.port),
            a.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@app.command()
def check(port: int = typer.Option(..., "--port", help="Port to check")):
    """Check whether a port is free in the registry. Exits 1 when it is taken."""
    try:
        with get_client() as client:
            port_status = client.check_port(port)
    except (RegistryError, httpx.HTTPError) as e:
        raise fail(str(e)) from None

    if port_status.available:
        console.print(f"[bold green]✓[/bold green] port {port} is available")
        return

    h = port_status.holder
    console.print(
        f"[bold yellow]⚠[/bold yellow] port {port} is allocated to "
        f"{h.app}/{h.instance}/{h.service} (id={h.id})"
    )
    raise typer.Exit(code=1)


@app.command()
def health():
    """Check server health."""
    try:
        with get_client() as client:
            client.health()
    except httpx.HTTPError as e:
        raise fail(str(e)) from None
    console.print("[bold green]ok[/bold green]")


# === Server lifecycle ===


@app.command()
def start():
    """Start the port-server daemon."""
    try:
        pid = daemon.start(get_settings())
    except daemon.DaemonError as e:
        raise fail(str(e)) from None
    console.print(f"[bold green]✓[/bold green] port-server started (pid {pid})")


@app.command()
def stop():
    """Stop the port-server daemon."""
    try:
        pid = daemon.stop(get_settings())
    except daemon.DaemonError as e:
        raise fail(str(e)) from None
    console.print(f"[bold green]✓[/bold green] port-server stopped (pid {pid})")


@app.command()
def restart():
    """Restart the port-server daemon."""
    settings = get_settings()
    if daemon.status(settings).running:
        try:
            daemon.stop(settings)
        except daemon.DaemonError as e:
            raise fail(str(e)) from None
    start()


@app.command()
def status():
    """Show port-server daemon status."""
    current = daemon.status(get_settings())
    if not current.running:
        suffix = " (stale PID file removed)" if current.stale_pid_removed else ""
        console.print(f"port-server is [red]not running[/red]{suffix}")
        return

    health_label = "[green]healthy[/green]" if current.healthy else "[yellow]not healthy[/yellow]"
    console.print(f"port-server is running (pid {current.pid}, {health_label})")


@app.command()
def version():
    """Print version and exit."""
    typer.echo(f"portctl {__version__}")


if __name__ == "__main__":
    app()
