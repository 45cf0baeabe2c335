"""Initialize database command."""

import click

from ..db import get_db_path, init_db
from .base import async_command, echo_info, echo_success


@click.command()
@async_command
async def init():
    """Initialize the studio-booking database.

    Creates the data directory and the SQLite schema. Safe to run again:
    existing data is kept and missing columns are added.
    """
    db_path = get_db_path()

    echo_info(f"Initializing studio-booking database at {db_path}")
    await init_db(db_path)
    echo_success("Database initialized")

    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Add users:")
    click.echo('     studio-booking users add "Ana Lopez" ana@example.com')
    click.echo()
    click.echo("  2. Schedule a class:")
    click.echo('     studio-booking classes add "Morning Flow" --date 2026-11-02 --time 09:00')
