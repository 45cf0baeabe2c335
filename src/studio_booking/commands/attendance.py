"""Attendance commands."""

from datetime import date

import click

from ..models.attendance import AttendanceStatus
from ..services.attendance import AttendanceService
from .base import async_command, echo_info, echo_success, ensure_initialized, format_table, parse_date


@click.group()
@click.pass_context
def attendance(ctx):
    """Record and review attendance."""
    ensure_initialized(ctx)


@attendance.command()
@click.argument("booking_id")
@click.argument("status")
@click.option("--by", "marked_by", required=True, help="User ID of the coach or admin")
@click.option("--reason")
@click.option("--notes")
@async_command
async def mark(booking_id: str, status: str, marked_by: str, reason: str | None, notes: str | None):
    """Mark the outcome of a booking (present, absent, excused, ...)."""
    stored = await AttendanceService().record(
        booking_id, status, marked_by, reason=reason, notes=notes
    )
    echo_success(f"Marked {stored.user_id} {stored.status.value} on {stored.occurrence_date}")


@attendance.command()
@click.argument("class_id")
@click.argument("user_id")
@click.argument("status")
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date")
@click.option("--by", "marked_by", required=True, help="User ID of the coach or admin")
@async_command
async def direct(class_id: str, user_id: str, status: str, occurrence_date: date | None, marked_by: str):
    """Record attendance for a user with no booking."""
    stored = await AttendanceService().record_direct(
        class_id, occurrence_date, user_id, status, marked_by
    )
    echo_success(f"Marked {stored.user_id} {stored.status.value} on {stored.occurrence_date}")


@attendance.command(name="list")
@click.argument("class_id")
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date")
@async_command
async def list_attendance(class_id: str, occurrence_date: date | None):
    """List attendance for an occurrence."""
    records = await AttendanceService().list_for_occurrence(class_id, occurrence_date)
    if not records:
        echo_info("No attendance recorded")
        return

    rows = [[r.user_id, r.status.value, r.marked_by, r.reason or ""] for r in records]
    click.echo()
    click.echo(format_table(["User", "Status", "Marked by", "Reason"], rows))


@attendance.command()
@click.argument("user_id")
@async_command
async def summary(user_id: str):
    """Show a user's attendance totals."""
    result = await AttendanceService().user_summary(user_id)
    click.echo(f"Classes taken: {result['classes_taken']}")
    rows = [[status.value, str(result["counts"][status.value])] for status in AttendanceStatus]
    click.echo(format_table(["Status", "Count"], rows))
