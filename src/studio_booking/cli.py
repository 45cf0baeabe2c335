"""CLI entry point for studio-booking."""

import click

from . import __version__
from .commands import (
    attendance,
    bookings,
    classes,
    credits,
    init,
    packages,
    requests,
    serve,
    users,
)
from .config import get_settings
from .logging_config import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="studio-booking")
@click.option("--log-level", help="Override STUDIO_LOG_LEVEL")
def main(log_level: str | None):
    """studio-booking: class booking, credit ledger and package engine.

    Example usage:

        # Create the database
        studio-booking init

        # Add a user and a package
        studio-booking users add "Ana Lopez" ana@example.com
        studio-booking packages assign <user-id> <template-id>

        # Book a class
        studio-booking bookings reserve <user-id> <class-id> --date 2026-11-02
    """
    settings = get_settings()
    configure_logging((log_level or settings.log_level).upper(), settings.log_file)


# Register commands
main.add_command(init)
main.add_command(serve)
main.add_command(users)
main.add_command(classes)
main.add_command(bookings)
main.add_command(packages)
main.add_command(credits)
main.add_command(attendance)
main.add_command(requests)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
