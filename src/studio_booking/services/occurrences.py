"""Occurrence resolution for single and recurring classes.

Everything here is pure: callers load the cancelled dates and pass them in.
"""

from collections.abc import Collection, Iterator
from datetime import date, timedelta

from ..models.classes import ClassDefinition, Occurrence, RecurringSchedule


def is_valid_occurrence(
    class_def: ClassDefinition,
    day: date,
    cancelled_dates: Collection[date] = frozenset(),
) -> bool:
    """Check whether ``day`` is a bookable occurrence of ``class_def``.

    A single class occurs only on its own date. A recurring class occurs on
    each date inside its window whose weekday is in the schedule, except
    the dates explicitly cancelled.
    """
    schedule = class_def.schedule
    if not isinstance(schedule, RecurringSchedule):
        return day == schedule.date

    if day < schedule.start_date or day > schedule.end_date:
        return False
    if day.weekday() not in schedule.weekdays:
        return False
    return day not in cancelled_dates


def is_schedule_date(class_def: ClassDefinition, day: date) -> bool:
    """Whether the schedule produces ``day``, ignoring cancellations."""
    return is_valid_occurrence(class_def, day)


def iter_occurrences(
    class_def: ClassDefinition,
    start: date,
    end: date,
    cancelled_dates: Collection[date] = frozenset(),
) -> Iterator[Occurrence]:
    """Yield the occurrences of a class between ``start`` and ``end`` inclusive.

    Cancelled dates are still yielded, flagged ``cancelled=True``, so a
    calendar can show them struck through.
    """
    schedule = class_def.schedule
    class_id = class_def.id or ""

    if not isinstance(schedule, RecurringSchedule):
        if start <= schedule.date <= end:
            yield Occurrence(
                class_id=class_id,
                date=schedule.date,
                starts_at=class_def.starts_at(schedule.date),
                cancelled=False,
            )
        return

    day = max(start, schedule.start_date)
    last = min(end, schedule.end_date)
    while day <= last:
        if day.weekday() in schedule.weekdays:
            yield Occurrence(
                class_id=class_id,
                date=day,
                starts_at=class_def.starts_at(day),
                cancelled=day in cancelled_dates,
            )
        day += timedelta(days=1)
