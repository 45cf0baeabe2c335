"""Class scheduling commands."""

from datetime import date, time, timedelta

import click

from ..models.classes import (
    WEEKDAY_NAMES,
    ClassCategory,
    RecurringSchedule,
    SingleSchedule,
)
from ..services.scheduling import ClassService
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


def _parse_weekdays(value: str) -> frozenset[int]:
    days = set()
    for part in value.split(","):
        name = part.strip().lower()[:3]
        if name not in WEEKDAY_NAMES:
            raise click.BadParameter(f"Unknown weekday '{part}'")
        days.add(WEEKDAY_NAMES.index(name))
    return frozenset(days)


@click.group()
@click.pass_context
def classes(ctx):
    """Manage classes and their occurrences."""
    ensure_initialized(ctx)


@classes.command(name="add")
@click.argument("title")
@click.option(
    "--category",
    type=click.Choice([c.value for c in ClassCategory]),
    default=ClassCategory.GROUP.value,
)
@click.option("--capacity", type=int, default=10, help="Seats (private classes always have 1)")
@click.option("--time", "start", required=True, help="Start time, HH:MM")
@click.option("--duration", type=int, default=60, help="Length in minutes")
@click.option("--date", "on", callback=parse_date, help="Date of a single class")
@click.option("--weekdays", help="Recurring days, e.g. mon,wed,fri")
@click.option("--from", "start_date", callback=parse_date, help="First date of a recurring class")
@click.option("--until", "end_date", callback=parse_date, help="Last date of a recurring class")
@click.option("--coach", "coach_id", help="Coach user ID")
@click.option("--hidden", is_flag=True, help="Do not list the class for self-booking")
@click.pass_context
@async_command
async def add_class(
    ctx,
    title: str,
    category: str,
    capacity: int,
    start: str,
    duration: int,
    on: date | None,
    weekdays: str | None,
    start_date: date | None,
    end_date: date | None,
    coach_id: str | None,
    hidden: bool,
):
    """Schedule a single or recurring class."""
    if weekdays:
        if not end_date:
            echo_error("--until is required for a recurring class")
            ctx.exit(1)
        schedule = RecurringSchedule(
            weekdays=_parse_weekdays(weekdays),
            start_date=start_date or date.today(),
            end_date=end_date,
        )
    elif on:
        schedule = SingleSchedule(date=on)
    else:
        echo_error("Give either --date or --weekdays")
        ctx.exit(1)

    try:
        start_time = time.fromisoformat(start)
    except ValueError:
        raise click.BadParameter(f"'{start}' is not a time (expected HH:MM)")

    class_def = await ClassService().create_class(
        title=title,
        category=ClassCategory(category),
        capacity=capacity,
        schedule=schedule,
        start_time=start_time,
        duration_minutes=duration,
        coach_id=coach_id,
        is_public=not hidden,
    )
    echo_success(f"Created class {class_def.title} (ID: {class_def.id})")


@classes.command(name="list")
@async_command
async def list_classes():
    """List all classes."""
    all_classes = await ClassService().list_classes()
    if not all_classes:
        echo_info("No classes scheduled")
        return

    rows = []
    for c in all_classes:
        if isinstance(c.schedule, RecurringSchedule):
            when = (
                f"{','.join(c.schedule.weekday_names())} "
                f"{c.schedule.start_date}..{c.schedule.end_date}"
            )
        else:
            when = str(c.schedule.date)
        rows.append([
            c.id,
            c.title[:30],
            c.category.value,
            when,
            c.start_time.strftime("%H:%M"),
            str(c.capacity),
            c.status.value,
        ])

    click.echo()
    click.echo(format_table(["ID", "Title", "Category", "When", "Time", "Cap", "Status"], rows))


@classes.command()
@click.argument("class_id")
@click.option("--days", type=int, default=14, help="How many days ahead to show")
@async_command
async def occurrences(class_id: str, days: int):
    """Show upcoming occurrences with booking counts."""
    service = ClassService()
    today = date.today()
    upcoming = await service.list_occurrences(class_id, today, today + timedelta(days=days))
    counts = await service.occurrence_booking_counts(class_id)

    if not upcoming:
        echo_info("No occurrences in that window")
        return

    rows = [
        [
            o.date.isoformat(),
            o.starts_at.strftime("%H:%M"),
            "cancelled" if o.cancelled else "open",
            str(counts.get(o.date, 0)),
        ]
        for o in upcoming
    ]
    click.echo()
    click.echo(format_table(["Date", "Start", "State", "Booked"], rows))


@classes.command(name="cancel-occurrence")
@click.argument("class_id")
@click.argument("occurrence_date", callback=parse_date)
@async_command
async def cancel_occurrence(class_id: str, occurrence_date: date):
    """Withdraw one date of a recurring class."""
    if await ClassService().cancel_occurrence(class_id, occurrence_date):
        echo_success(f"Cancelled {occurrence_date}")
        echo_warning("Existing bookings for that date were left in place")
    else:
        echo_info(f"{occurrence_date} was already cancelled")


@classes.command()
@click.argument("class_id")
@click.argument("occurrence_date", callback=parse_date)
@async_command
async def reinstate(class_id: str, occurrence_date: date):
    """Reinstate a cancelled occurrence."""
    if await ClassService().reinstate_occurrence(class_id, occurrence_date):
        echo_success(f"Reinstated {occurrence_date}")
    else:
        echo_info(f"{occurrence_date} was not cancelled")


@classes.command()
@click.argument("class_id")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@async_command
async def delete(class_id: str, force: bool):
    """Delete a class, refunding confirmed bookings."""
    service = ClassService()
    class_def = await service.get(class_id)

    if not force:
        click.echo(f"Class: {class_def.title}")
        if not click.confirm("Delete this class and all of its bookings?"):
            echo_info("Cancelled")
            return

    refunds = await service.delete_class(class_id)
    echo_success(f"Deleted class {class_id} ({refunds} refund(s) issued)")


@classes.command(name="reinstate-class")
@click.argument("class_id")
@click.option(
    "--skip",
    "skip_user_ids",
    multiple=True,
    help="Restore this user's booking without charging a credit (repeatable)",
)
@async_command
async def reinstate_class(class_id: str, skip_user_ids: tuple[str, ...]):
    """Put a cancelled class back on the schedule."""
    result = await ClassService().reinstate_class(class_id, skip_user_ids)
    echo_success(f"Reinstated class {class_id}")
    for user_id in result.charged:
        echo_info(f"Restored booking for {user_id}, charged 1 credit")
    for user_id in result.skipped:
        echo_info(f"Restored booking for {user_id} without a charge")
