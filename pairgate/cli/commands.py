"""CLI commands for pairgate."""

import asyncio
import platform
import signal
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from pairgate import __version__, __logo__

app = typer.Typer(
    name="pairgate",
    help=f"{__logo__} pairgate - pairing codes for messaging sessions",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} pairgate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """pairgate - pairing codes for messaging sessions."""
    pass


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _build_service(config, on_complete=None):
    """Create transport, storage and the pairing service from config."""
    from pairgate.pairing.service import PairingService
    from pairgate.storage import create_storage
    from pairgate.transport.bridge import BridgeTransport

    transport = BridgeTransport(
        bridge_url=config.transport.bridge_url,
        browser=config.transport.browser,
        request_timeout=config.transport.request_timeout_seconds,
        creds_filename=config.export.credentials_filename,
    )
    try:
        storage = create_storage(config)
    except ValueError as e:
        console.print(f"[red]Storage not configured: {e}[/red]")
        console.print("[dim]Set storage.uploadUrl in the config, or storage.backend to \"local\".[/dim]")
        raise typer.Exit(1)
    service = PairingService(transport, storage, config, on_complete=on_complete)
    return service, transport, storage


# ============================================================================
# Gateway
# ============================================================================


@app.command()
def gateway(
    port: int = typer.Option(None, "--port", "-p", help="Gateway port (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    once: bool = typer.Option(
        False, "--once", help="Stop after the first session is exported or rejected by the service"
    ),
):
    """Start the pairing gateway."""
    from pairgate.config.loader import load_config
    from pairgate.gateway.server import GatewayServer
    from pairgate.pairing.types import SessionOutcome

    _setup_logging(verbose)
    config = load_config()
    port = port or config.gateway.port

    console.print(f"{__logo__} Starting gateway on port {port}...")

    async def run():
        shutdown_event = asyncio.Event()

        async def on_complete(outcome: SessionOutcome) -> None:
            if once and outcome in (SessionOutcome.EXPORTED, SessionOutcome.AUTH_FAILED):
                console.print(f"[yellow]Session finished ({outcome.value}), shutting down[/yellow]")
                shutdown_event.set()

        def signal_handler():
            console.print("\n[yellow]Shutting down...[/yellow]")
            shutdown_event.set()

        if platform.system() == "Windows":
            # Windows asyncio doesn't support loop.add_signal_handler
            signal.signal(signal.SIGINT, lambda s, f: signal_handler())
            signal.signal(signal.SIGTERM, lambda s, f: signal_handler())
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, signal_handler)

        service, transport, storage = _build_service(config, on_complete=on_complete)
        server = GatewayServer(service, host=config.gateway.host, port=port)

        try:
            await server.start()
            console.print(f"[green]✓[/green] API: http://{config.gateway.host}:{port}/pair?number=...")
            await shutdown_event.wait()
        finally:
            console.print("[dim]Cleaning up...[/dim]")
            await server.stop()
            await service.stop()
            await transport.aclose()
            await storage.aclose()
            console.print("[green]✓[/green] Shutdown complete")

    asyncio.run(run())


# ============================================================================
# One-off pairing
# ============================================================================


@app.command()
def pair(
    number: str = typer.Argument(help="Phone number, any formatting"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Request a pairing code and wait until the session finishes."""
    from pairgate.config.loader import load_config
    from pairgate.pairing.types import SessionOutcome

    _setup_logging(verbose)
    config = load_config()

    async def run() -> SessionOutcome:
        service, transport, storage = _build_service(config)
        try:
            handle = service.start(number)
            reply = await handle.wait_reply()
            if reply.ok:
                console.print(f"Pairing code: [bold cyan]{reply.code}[/bold cyan]")
                console.print("[dim]Enter it on the phone under Linked devices. Waiting...[/dim]")
            else:
                console.print(f"[red]{reply.code}[/red]")
            return await handle.wait_outcome()
        finally:
            await service.stop()
            await transport.aclose()
            await storage.aclose()

    outcome = asyncio.run(run())
    if outcome == SessionOutcome.EXPORTED:
        console.print("[green]✓[/green] Session exported")
        return
    console.print(f"[red]✗[/red] Session ended: {outcome.value}")
    raise typer.Exit(1)


# ============================================================================
# Status / config
# ============================================================================


@app.command()
def status():
    """Show pairgate configuration."""
    from pairgate.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} pairgate status\n")
    console.print(
        f"Config: {config_path} "
        f"{'[green]✓[/green]' if config_path.exists() else '[yellow]defaults[/yellow]'}"
    )

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_row("Gateway", f"{config.gateway.host}:{config.gateway.port}")
    table.add_row("Bridge URL", config.transport.bridge_url)
    table.add_row("Workspace root", str(config.temp_path))
    table.add_row("Storage", config.storage.backend)
    if config.storage.backend == "http":
        table.add_row("Upload URL", config.storage.upload_url or "[dim]not set[/dim]")
    else:
        table.add_row("Archive dir", str(config.archive_path))
    table.add_row("Max retries", str(config.pairing.max_retries))
    console.print(table)


config_app = typer.Typer(help="Manage configuration")
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
):
    """Write the default configuration file."""
    from pairgate.config.loader import get_config_path, save_config
    from pairgate.config.schema import Config

    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path}[/yellow] (use --force)")
        raise typer.Exit(1)

    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")


if __name__ == "__main__":
    app()
