"""Attendance recording.

One record per (class, occurrence, user), overwritten on re-marking.
Marking someone present never charges a booking twice: only bookings that
were never charged, and direct entries with no booking, take a credit here.
"""

import logging
from datetime import date
from pathlib import Path

import aiosqlite

from ..db.engine import atomic, get_db_path
from ..db.repositories import (
    AttendanceRepository,
    BookingRepository,
    ClassRepository,
    UserRepository,
)
from ..errors import (
    BookingNotFound,
    ClassNotFound,
    InvalidBookingState,
    InvalidOccurrence,
    OverdraftExceeded,
    UserNotFound,
    ValidationError,
)
from ..models.attendance import AttendanceRecord, AttendanceStatus
from ..models.booking import BookingStatus
from ..models.classes import ClassCategory, ClassDefinition, RecurringSchedule
from .credits import CreditService
from .occurrences import is_schedule_date

logger = logging.getLogger(__name__)


def parse_status(value: str | AttendanceStatus) -> AttendanceStatus:
    try:
        return AttendanceStatus.parse(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown attendance status: {value}", details={"status": str(value)}
        ) from e


class AttendanceService:
    """Record final outcomes for occurrences."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()
        self.records = AttendanceRepository(self.db_path)
        self.bookings = BookingRepository(self.db_path)
        self.classes = ClassRepository(self.db_path)
        self.users = UserRepository(self.db_path)
        self.credits = CreditService(self.db_path)

    async def record(
        self,
        booking_id: str,
        status: str | AttendanceStatus,
        marked_by: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> AttendanceRecord:
        """Record the outcome for a booking and move the booking to match."""
        status = parse_status(status)

        async with atomic(None, self.db_path) as db:
            booking = await self.bookings.get(booking_id, db=db)
            if booking is None:
                raise BookingNotFound(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidBookingState(
                    f"Booking {booking_id} was cancelled",
                    details={"booking_id": booking_id},
                )

            class_def = await self.classes.get(booking.class_id, db=db)
            day = booking.occurrence_date or class_def.schedule.date

            stored, newly_present = await self._upsert(
                AttendanceRecord(
                    class_id=booking.class_id,
                    occurrence_date=day,
                    user_id=booking.user_id,
                    status=status,
                    marked_by=marked_by,
                    notes=notes,
                    reason=reason,
                ),
                db,
            )

            booking_status = status.booking_status()
            if booking_status is not None and booking_status != booking.status:
                await self.bookings.update_status(booking_id, booking_status, db=db)

            if newly_present and not booking.credit_deducted:
                if await self._charge(booking.user_id, class_def.category, db):
                    await self.bookings.set_credit_deducted(booking_id, True, db=db)

        logger.info(
            "Attendance for booking %s marked %s by %s", booking_id, status.value, marked_by
        )
        return stored

    async def record_direct(
        self,
        class_id: str,
        occurrence_date: date | None,
        user_id: str,
        status: str | AttendanceStatus,
        marked_by: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> AttendanceRecord:
        """Record attendance for a user who has no booking.

        Marking present here takes a credit from metered accounts, never
        going below zero.
        """
        status = parse_status(status)

        async with atomic(None, self.db_path) as db:
            class_def = await self.classes.get(class_id, db=db)
            if class_def is None:
                raise ClassNotFound(class_id)
            if await self.users.get(user_id, db=db) is None:
                raise UserNotFound(user_id)
            day = _resolve_day(class_def, occurrence_date)

            stored, newly_present = await self._upsert(
                AttendanceRecord(
                    class_id=class_id,
                    occurrence_date=day,
                    user_id=user_id,
                    status=status,
                    marked_by=marked_by,
                    notes=notes,
                    reason=reason,
                ),
                db,
            )
            if newly_present:
                await self._charge(user_id, class_def.category, db)

        logger.info(
            "Direct attendance for user %s at class %s (%s) marked %s",
            user_id,
            class_id,
            day,
            status.value,
        )
        return stored

    async def list_for_occurrence(
        self, class_id: str, occurrence_date: date | None = None
    ) -> list[AttendanceRecord]:
        class_def = await self.classes.get(class_id)
        if class_def is None:
            raise ClassNotFound(class_id)
        return await self.records.list_for_occurrence(
            class_id, _resolve_day(class_def, occurrence_date)
        )

    async def user_summary(self, user_id: str) -> dict:
        user = await self.users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)

        counts = await self.records.status_counts(user_id)
        return {
            "user_id": user_id,
            "classes_taken": user.classes_taken,
            "counts": {status.value: counts.get(status.value, 0) for status in AttendanceStatus},
        }

    async def _upsert(
        self, record: AttendanceRecord, db: aiosqlite.Connection
    ) -> tuple[AttendanceRecord, bool]:
        previous = await self.records.get(
            record.class_id, record.occurrence_date, record.user_id, db=db
        )
        stored = await self.records.upsert(record, db=db)

        newly_present = record.status == AttendanceStatus.PRESENT and (
            previous is None or previous.status != AttendanceStatus.PRESENT
        )
        if newly_present:
            await self.users.increment_classes_taken(record.user_id, db=db)
        return stored, newly_present

    async def _charge(
        self, user_id: str, category: ClassCategory, db: aiosqlite.Connection
    ) -> bool:
        """Take one credit for attendance if the account is metered and in credit."""
        account = await self.credits.get_account(user_id, category, db=db)
        if account.unlimited:
            return False
        try:
            await self.credits.deduct(user_id, category, allow_overdraft=False, db=db)
        except OverdraftExceeded:
            logger.info("User %s has no %s credit to charge for attendance", user_id, category.value)
            return False
        return True


def _resolve_day(class_def: ClassDefinition, occurrence_date: date | None) -> date:
    if isinstance(class_def.schedule, RecurringSchedule):
        if occurrence_date is None:
            raise ValidationError("An occurrence date is required for a recurring class")
    else:
        occurrence_date = occurrence_date or class_def.schedule.date

    if not is_schedule_date(class_def, occurrence_date):
        raise InvalidOccurrence(
            f"Class {class_def.id} does not run on {occurrence_date.isoformat()}",
            details={"class_id": class_def.id, "occurrence_date": occurrence_date.isoformat()},
        )
    return occurrence_date
