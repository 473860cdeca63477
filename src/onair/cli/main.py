"""
Main CLI application using Typer with router-based command dispatch.

Operator commands for the broadcast channel: inspect and drive the schedule,
register catalog rows, and serve the HTTP API.
"""

from __future__ import annotations

import typer

from ..infra.logging import configure_logging
from .commands import catalog, schedule
from .router import get_router

app = typer.Typer(help="OnAir operator CLI")

router = get_router(app)

router.register(
    "schedule",
    schedule.app,
    help_text="Broadcast schedule operations (advance, inspect)",
)

router.register(
    "catalog",
    catalog.app,
    help_text="Catalog registration and listing",
)


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    """OnAir operator CLI."""
    configure_logging(log_level)


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default HTTP_HOST)"),
    port: int = typer.Option(None, "--port", help="Bind port (default HTTP_PORT)"),
    daemon: bool = typer.Option(True, "--daemon/--no-daemon", help="Run the periodic advancement loop"),
):
    """Serve the now-playing and queue HTTP API."""
    from ..web.server import run_server

    run_server(host, port, run_daemon=daemon)
