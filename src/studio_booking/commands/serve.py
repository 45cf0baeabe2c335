"""API server command."""

import click

from ..config import get_settings
from ..db import get_db_path
from .base import ensure_initialized


@click.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
@click.option("--port", "-p", default=8000, type=int, help="Port to bind to (default: 8000)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, reload: bool):
    """Start the booking API.

    Serves the JSON API for reservations, packages, credits and
    attendance. Callers identify themselves with the X-User-Id and
    X-User-Role headers set by the auth layer in front of it.

    Examples:

        # Start on default port (8000)
        studio-booking serve

        # Expose to network (all interfaces)
        studio-booking serve --host 0.0.0.0
    """
    ensure_initialized(ctx)

    import uvicorn

    from ..web import create_app

    click.echo()
    click.echo(click.style("Starting studio-booking API...", fg="green"))
    click.echo()
    click.echo(f"  API:      http://{host}:{port}")
    click.echo(f"  Docs:     http://{host}:{port}/docs")
    click.echo(f"  Database: {get_db_path()}")
    click.echo()
    click.echo("Press Ctrl+C to stop the server.")
    click.echo()

    uvicorn.run(
        create_app() if not reload else "studio_booking.web:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=reload,
        log_level=get_settings().log_level.lower(),
    )
