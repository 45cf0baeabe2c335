"""Private class request commands."""

from datetime import date, time

import click

from ..models.private_request import RequestStatus
from ..services.private_requests import PrivateRequestService
from .base import async_command, echo_info, echo_success, ensure_initialized, format_table, parse_date


@click.group()
@click.pass_context
def requests(ctx):
    """File and resolve private class requests."""
    ensure_initialized(ctx)


@requests.command(name="add")
@click.argument("user_id")
@click.argument("requested_date", callback=parse_date)
@click.argument("requested_time")
@click.option("--duration", type=int, default=60, help="Length in minutes")
@async_command
async def add_request(user_id: str, requested_date: date, requested_time: str, duration: int):
    """Request a private class for a user."""
    try:
        start = time.fromisoformat(requested_time)
    except ValueError:
        raise click.BadParameter(f"'{requested_time}' is not a time (expected HH:MM)")

    request = await PrivateRequestService().create_request(
        user_id, requested_date, start, duration_minutes=duration
    )
    echo_success(f"Filed request for {requested_date} at {requested_time} (ID: {request.id})")


@requests.command()
@async_command
async def pending():
    """List requests waiting for a decision."""
    waiting = await PrivateRequestService().list_pending()
    if not waiting:
        echo_info("No pending requests")
        return

    rows = [
        [
            r.id,
            r.user_id,
            r.requested_date.isoformat(),
            r.requested_time.strftime("%H:%M"),
            str(r.duration_minutes),
        ]
        for r in waiting
    ]
    click.echo()
    click.echo(format_table(["ID", "User", "Date", "Time", "Minutes"], rows))


@requests.command()
@click.argument("request_id")
@click.option("--coach", "coach_id", help="Coach user ID for the new class")
@click.option("--notes", "admin_notes", help="Note for the client")
@async_command
async def approve(request_id: str, coach_id: str | None, admin_notes: str | None):
    """Approve a request, creating the class and its booking."""
    request = await PrivateRequestService().resolve(
        request_id, RequestStatus.APPROVED, admin_notes=admin_notes, coach_id=coach_id
    )
    echo_success(f"Approved request {request_id} (class ID: {request.class_id})")


@requests.command()
@click.argument("request_id")
@click.option("--notes", "admin_notes", help="Reason given to the client")
@async_command
async def reject(request_id: str, admin_notes: str | None):
    """Reject a request."""
    await PrivateRequestService().resolve(request_id, RequestStatus.REJECTED, admin_notes=admin_notes)
    echo_success(f"Rejected request {request_id}")
