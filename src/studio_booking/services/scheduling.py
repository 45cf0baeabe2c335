"""Class scheduling: definitions, occurrences and occurrence cancellation."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, time
from pathlib import Path

import aiosqlite

from ..db.engine import atomic, get_db_path
from ..db.repositories import (
    AttendanceRepository,
    BookingRepository,
    CancelledOccurrenceRepository,
    ClassRepository,
    CreditAccountRepository,
)
from ..errors import (
    ClassNotCancelled,
    ClassNotFound,
    InsufficientCredits,
    InvalidOccurrence,
    OverdraftExceeded,
    ValidationError,
)
from ..models.booking import Booking, BookingStatus, ReinstateResult
from ..models.classes import (
    CancelledOccurrence,
    ClassCategory,
    ClassDefinition,
    ClassStatus,
    Occurrence,
    RecurringSchedule,
    Schedule,
)
from .credits import CreditService
from .occurrences import is_schedule_date, iter_occurrences

logger = logging.getLogger(__name__)

# Fields an admin edit may change
EDITABLE_FIELDS = {
    "title",
    "category",
    "capacity",
    "schedule",
    "start_time",
    "duration_minutes",
    "coach_id",
    "is_public",
    "status",
}

# Edits may clear these; every other editable field needs a value
NULLABLE_FIELDS = {"coach_id"}


def validate_schedule(schedule: Schedule) -> None:
    """Raise ValidationError for an impossible schedule."""
    if isinstance(schedule, RecurringSchedule):
        if not schedule.weekdays:
            raise ValidationError("A recurring class needs at least one weekday")
        if any(d < 0 or d > 6 for d in schedule.weekdays):
            raise ValidationError(
                "Weekdays must be between 0 (Monday) and 6 (Sunday)",
                details={"weekdays": sorted(schedule.weekdays)},
            )
        if schedule.start_date > schedule.end_date:
            raise ValidationError(
                "Recurrence start date is after its end date",
                details={
                    "start_date": schedule.start_date.isoformat(),
                    "end_date": schedule.end_date.isoformat(),
                },
            )


class ClassService:
    """Admin operations on class definitions."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()
        self.classes = ClassRepository(self.db_path)
        self.cancellations = CancelledOccurrenceRepository(self.db_path)
        self.bookings = BookingRepository(self.db_path)
        self.accounts = CreditAccountRepository(self.db_path)
        self.attendance = AttendanceRepository(self.db_path)
        self.credits = CreditService(self.db_path)

    async def get(self, class_id: str) -> ClassDefinition:
        class_def = await self.classes.get(class_id)
        if class_def is None:
            raise ClassNotFound(class_id)
        return class_def

    async def list_classes(self) -> list[ClassDefinition]:
        return await self.classes.list_all()

    async def create_class(
        self,
        title: str,
        category: ClassCategory,
        capacity: int,
        schedule: Schedule,
        start_time: time,
        duration_minutes: int = 60,
        coach_id: str | None = None,
        is_public: bool = True,
        db: aiosqlite.Connection | None = None,
    ) -> ClassDefinition:
        """Create a class. Private classes always hold exactly one client."""
        if not title.strip():
            raise ValidationError("Title is required")
        if capacity < 1:
            raise ValidationError("Capacity must be at least 1", details={"capacity": capacity})
        if duration_minutes < 1:
            raise ValidationError("Duration must be positive")
        validate_schedule(schedule)

        if category == ClassCategory.PRIVATE:
            capacity = 1

        class_def = ClassDefinition(
            title=title.strip(),
            category=category,
            capacity=capacity,
            schedule=schedule,
            start_time=start_time,
            duration_minutes=duration_minutes,
            coach_id=coach_id,
            is_public=is_public,
        )
        await self.classes.create(class_def, db=db)
        logger.info(
            "Created %s class %s (%s, capacity %d)",
            category.value,
            class_def.id,
            "recurring" if class_def.is_recurring else "single",
            capacity,
        )
        return await self.classes.get(class_def.id, db=db)

    async def update_class(self, class_id: str, **changes) -> ClassDefinition:
        """Apply an admin edit.

        Capacity may not drop below the seats already taken on a
        non-recurring class.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot edit fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )
        empty = sorted(k for k, v in changes.items() if v is None and k not in NULLABLE_FIELDS)
        if empty:
            raise ValidationError(
                f"Fields cannot be empty: {', '.join(empty)}",
                details={"fields": empty},
            )

        async with atomic(None, self.db_path) as db:
            current = await self.classes.get(class_id, db=db)
            if current is None:
                raise ClassNotFound(class_id)

            updated = replace(current, **changes)
            if updated.category == ClassCategory.PRIVATE:
                updated.capacity = 1
            if updated.capacity < 1:
                raise ValidationError("Capacity must be at least 1")
            validate_schedule(updated.schedule)
            if not updated.is_recurring and updated.capacity < updated.current_bookings:
                raise ValidationError(
                    f"Capacity {updated.capacity} is below the "
                    f"{updated.current_bookings} seats already booked",
                    details={
                        "capacity": updated.capacity,
                        "current_bookings": updated.current_bookings,
                    },
                )
            await self.classes.update(updated, db=db)

        logger.info("Updated class %s: %s", class_id, ", ".join(sorted(changes)))
        return updated

    async def delete_class(self, class_id: str) -> int:
        """Delete a class and everything hanging off it.

        Confirmed bookings that were charged get their credit back.

        Returns:
            Number of refunds issued
        """
        async with atomic(None, self.db_path) as db:
            class_def = await self.classes.get(class_id, db=db)
            if class_def is None:
                raise ClassNotFound(class_id)

            confirmed = await self.bookings.list_for_class(
                class_id, statuses=(BookingStatus.CONFIRMED,), db=db
            )
            refunds = 0
            for booking in confirmed:
                if booking.credit_deducted:
                    await self.accounts.ensure(booking.user_id, class_def.category, db=db)
                    await self.accounts.add(booking.user_id, class_def.category, 1, db=db)
                    refunds += 1

            await self.classes.delete(class_id, db=db)

        logger.info("Deleted class %s, refunded %d booking(s)", class_id, refunds)
        return refunds

    async def reinstate_class(
        self, class_id: str, skip_user_ids: Iterable[str] = ()
    ) -> ReinstateResult:
        """Put a cancelled class back on the schedule.

        A private class is cancelled by its client's cancellation, so that
        booking (the most recently cancelled one) is restored if its seat
        is still free. If it was refunded on cancellation it is charged
        again with a floor of zero, unless the client is in
        ``skip_user_ids``. A late cancellation kept its credit and is
        restored as it was, minus its ``late_cancel`` attendance record.

        Raises:
            ClassNotCancelled: If the class is not cancelled
            InsufficientCredits: If the client has no credit left. Nothing
                is changed; retry with the client skipped.
        """
        skip = set(skip_user_ids)
        result = ReinstateResult()

        async with atomic(None, self.db_path) as db:
            class_def = await self.classes.get(class_id, db=db)
            if class_def is None:
                raise ClassNotFound(class_id)
            if class_def.status != ClassStatus.CANCELLED:
                raise ClassNotCancelled(
                    f"Class {class_id} is not cancelled", details={"class_id": class_id}
                )

            cancelled = []
            if class_def.category == ClassCategory.PRIVATE:
                cancelled = await self.bookings.list_for_class(
                    class_id, statuses=(BookingStatus.CANCELLED,), db=db
                )
            if cancelled and await self._seat_free(class_def, cancelled[0], db):
                await self._restore(class_def, cancelled[0], skip, result, db)

            if not class_def.is_recurring:
                count = await self.bookings.count_active(class_id, None, db=db)
                await self.classes.set_bookings(class_id, count, db=db)
            await self.classes.set_status(class_id, ClassStatus.SCHEDULED, db=db)

        logger.info(
            "Reinstated class %s: %d booking(s) restored, %d charged, %d skipped",
            class_id,
            len(result.restored),
            len(result.charged),
            len(result.skipped),
        )
        return result

    async def cancel_occurrence(self, class_id: str, occurrence_date: date) -> bool:
        """Withdraw one date of a recurring class from booking.

        Existing bookings for that date are left as they are.

        Returns:
            False if the date was already cancelled
        """
        class_def = await self.get(class_id)
        if not class_def.is_recurring:
            raise ValidationError(
                "Only recurring classes have individual occurrences to cancel",
                details={"class_id": class_id},
            )
        if not is_schedule_date(class_def, occurrence_date):
            raise InvalidOccurrence(
                f"{occurrence_date.isoformat()} is not a date of class {class_id}",
                details={"class_id": class_id, "occurrence_date": occurrence_date.isoformat()},
            )

        added = await self.cancellations.add(class_id, occurrence_date)
        if added:
            logger.info("Cancelled occurrence %s of class %s", occurrence_date, class_id)
        return added

    async def reinstate_occurrence(self, class_id: str, occurrence_date: date) -> bool:
        await self.get(class_id)
        removed = await self.cancellations.remove(class_id, occurrence_date)
        if removed:
            logger.info("Reinstated occurrence %s of class %s", occurrence_date, class_id)
        return removed

    async def list_cancelled_occurrences(
        self, class_id: str | None = None
    ) -> list[CancelledOccurrence]:
        return await self.cancellations.list_all(class_id)

    async def list_occurrences(self, class_id: str, start: date, end: date) -> list[Occurrence]:
        """Expand a class into its concrete occurrences within a window."""
        if start > end:
            raise ValidationError("Window start is after its end")
        class_def = await self.get(class_id)
        cancelled = await self.cancellations.dates_for_class(class_id)
        return list(iter_occurrences(class_def, start, end, cancelled))

    async def occurrence_booking_counts(self, class_id: str) -> dict[date, int]:
        """Seats taken per occurrence date of a recurring class."""
        await self.get(class_id)
        return await self.bookings.occurrence_counts(class_id)

    async def _seat_free(
        self, class_def: ClassDefinition, booking: Booking, db: aiosqlite.Connection
    ) -> bool:
        key = booking.occurrence_date
        if await self.bookings.find_active(class_def.id, key, booking.user_id, db=db):
            return False
        return await self.bookings.count_active(class_def.id, key, db=db) < class_def.capacity

    async def _restore(
        self,
        class_def: ClassDefinition,
        booking: Booking,
        skip: set[str],
        result: ReinstateResult,
        db: aiosqlite.Connection,
    ) -> None:
        """Confirm a cancelled booking again, re-taking a refunded credit."""
        charged = booking.credit_deducted
        if booking.credit_deducted and not booking.late_cancellation:
            if booking.user_id in skip:
                charged = False
                result.skipped.append(booking.user_id)
            else:
                try:
                    await self.credits.deduct(
                        booking.user_id, class_def.category, allow_overdraft=False, db=db
                    )
                except OverdraftExceeded as e:
                    raise InsufficientCredits(
                        [booking.user_id], class_def.category.value
                    ) from e
                result.charged.append(booking.user_id)

        if booking.late_cancellation:
            day = booking.occurrence_date or class_def.schedule.date
            await self.attendance.delete(class_def.id, day, booking.user_id, db=db)
        await self.bookings.update_status(
            booking.id, BookingStatus.CONFIRMED, late_cancellation=False, db=db
        )
        await self.bookings.set_credit_deducted(booking.id, charged, db=db)
        result.restored.append(booking.user_id)
