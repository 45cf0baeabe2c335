"""Booking commands."""

from datetime import date

import click

from ..errors import OverdraftWarning
from ..models.booking import Booking
from ..services.bookings import BookingService
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_table,
    parse_date,
)


def _booking_rows(bookings: list[Booking]) -> list[list[str]]:
    return [
        [
            b.id,
            b.class_id,
            b.user_id,
            b.occurrence_date.isoformat() if b.occurrence_date else "-",
            b.status.value,
            "yes" if b.credit_deducted else "no",
        ]
        for b in bookings
    ]


BOOKING_HEADERS = ["ID", "Class", "User", "Date", "Status", "Charged"]


@click.group()
@click.pass_context
def bookings(ctx):
    """Reserve, cancel and manage bookings."""
    ensure_initialized(ctx)


@bookings.command()
@click.argument("user_id")
@click.argument("class_id")
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date (recurring classes)")
@click.option("--confirm-overdraft", is_flag=True, help="Accept going below zero credits")
@async_command
async def reserve(user_id: str, class_id: str, occurrence_date: date | None, confirm_overdraft: bool):
    """Reserve a seat for a user."""
    service = BookingService()
    try:
        reservation = await service.reserve(
            user_id, class_id, occurrence_date, confirm_overdraft=confirm_overdraft
        )
    except OverdraftWarning as warning:
        echo_warning(
            f"Balance is {warning.current_balance}; this booking takes it to "
            f"{warning.would_be_balance}"
        )
        if not click.confirm("Book anyway?"):
            echo_info("Not booked")
            return
        reservation = await service.reserve(
            user_id, class_id, occurrence_date, confirm_overdraft=True
        )

    echo_success(
        f"Booked {reservation.booking.id} (balance now {reservation.balance})"
    )


@bookings.command()
@click.argument("booking_id")
@click.option("--actor", help="User ID performing the cancellation")
@async_command
async def cancel(booking_id: str, actor: str | None):
    """Cancel a booking."""
    result = await BookingService().cancel(booking_id, actor_user_id=actor)
    if result.late_cancellation:
        echo_warning("Late cancellation: the credit is forfeited")
    elif result.refunded:
        echo_success("Cancelled and refunded")
    else:
        echo_success("Cancelled (no credit had been taken)")


@bookings.command(name="list")
@click.option("--user", "user_id", help="Bookings of one user")
@click.option("--class", "class_id", help="Bookings for one class occurrence")
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date")
@click.pass_context
@async_command
async def list_bookings(ctx, user_id: str | None, class_id: str | None, occurrence_date: date | None):
    """List bookings for a user or an occurrence."""
    service = BookingService()
    if user_id:
        found = await service.list_for_user(user_id)
    elif class_id:
        found = await service.list_for_occurrence(class_id, occurrence_date)
    else:
        echo_error("Give --user or --class")
        ctx.exit(1)

    if not found:
        echo_info("No bookings found")
        return

    click.echo()
    click.echo(format_table(BOOKING_HEADERS, _booking_rows(found)))


@bookings.command()
@click.argument("class_id")
@click.argument("user_ids", nargs=-1)
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date")
@async_command
async def roster(class_id: str, user_ids: tuple[str, ...], occurrence_date: date | None):
    """Set the exact attendee list for an occurrence."""
    result = await BookingService().sync_occurrence_roster(class_id, occurrence_date, user_ids)

    echo_success(f"Added {len(result.added)}, removed {len(result.removed)}")
    if result.refunded:
        echo_info(f"Refunded: {', '.join(result.refunded)}")
    if result.uncharged:
        echo_warning(f"Added without a credit: {', '.join(result.uncharged)}")
    for error in result.errors:
        echo_error(error)


@bookings.command()
@click.argument("class_id")
@click.argument("user_id")
@click.option("--date", "occurrence_date", callback=parse_date, help="Occurrence date")
@async_command
async def remove(class_id: str, user_id: str, occurrence_date: date | None):
    """Remove a user from an occurrence."""
    result = await BookingService().remove_attendee(class_id, occurrence_date, user_id)
    echo_success("Removed" + (" and refunded" if result.refunded else ""))
