"""Booking ledger: reservations, cancellations and roster sync.

Every operation runs inside one ``BEGIN IMMEDIATE`` transaction, so the
capacity check, the duplicate check, the booking insert and the credit
deduction commit or roll back together. Notifications go out only after
the commit.
"""

import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import date, datetime
from pathlib import Path

import aiosqlite

from ..db.engine import get_db_path, transaction
from ..db.repositories import (
    AttendanceRepository,
    BookingRepository,
    CancelledOccurrenceRepository,
    ClassRepository,
    UserRepository,
)
from ..errors import (
    AlreadyBooked,
    AlreadyCancelled,
    BookingNotFound,
    ClassFull,
    ClassNotBookable,
    ClassNotFound,
    InvalidBookingState,
    InvalidOccurrence,
    MaxOverdraftReached,
    NotFoundError,
    OverdraftExceeded,
    OverdraftWarning,
    ValidationError,
)
from ..models.attendance import AttendanceRecord, AttendanceStatus
from ..models.booking import (
    Booking,
    BookingStatus,
    CancellationResult,
    Reservation,
    RosterSyncResult,
)
from ..models.classes import ClassCategory, ClassDefinition, ClassStatus
from ..models.credit import MAX_OVERDRAFT
from .credits import CreditService
from .notifications import LoggingNotifier, Notifier, notify_safely
from .occurrences import is_valid_occurrence

logger = logging.getLogger(__name__)

# Cancelling this close to the start forfeits the credit
LATE_CANCEL_WINDOW_MINUTES = 15

ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.ATTENDED, BookingStatus.NO_SHOW)


class BookingService:
    """Reserve, cancel and reconcile bookings against credit accounts."""

    def __init__(
        self,
        db_path: Path | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db_path = db_path or get_db_path()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or datetime.now
        self.classes = ClassRepository(self.db_path)
        self.cancellations = CancelledOccurrenceRepository(self.db_path)
        self.bookings = BookingRepository(self.db_path)
        self.attendance = AttendanceRepository(self.db_path)
        self.users = UserRepository(self.db_path)
        self.credits = CreditService(self.db_path)

    async def get(self, booking_id: str) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def list_for_user(self, user_id: str) -> list[Booking]:
        return await self.bookings.list_for_user(user_id)

    async def list_for_occurrence(
        self, class_id: str, occurrence_date: date | None = None
    ) -> list[Booking]:
        class_def = await self.classes.get(class_id)
        if class_def is None:
            raise ClassNotFound(class_id)
        key = occurrence_date if class_def.is_recurring else None
        return await self.bookings.list_for_occurrence(class_id, key)

    async def reserve(
        self,
        user_id: str,
        class_id: str,
        occurrence_date: date | None = None,
        confirm_overdraft: bool = False,
    ) -> Reservation:
        """Book a seat and take one credit.

        Args:
            user_id: User making the booking
            class_id: Class to book
            occurrence_date: Required for recurring classes
            confirm_overdraft: Caller has accepted going below zero

        Returns:
            The booking and the balance after the deduction

        Raises:
            OverdraftWarning: Balance is at or below zero and the caller
                has not confirmed
            MaxOverdraftReached: The deduction would pass the overdraft floor
        """
        async with transaction(self.db_path) as db:
            class_def, booking, balance = await self.reserve_within(
                db, user_id, class_id, occurrence_date, confirm_overdraft
            )

        logger.info(
            "Booking %s: user %s reserved class %s (%s), balance %d",
            booking.id,
            user_id,
            class_id,
            booking.occurrence_date or "single",
            balance,
        )
        await notify_safely(
            self.notifier,
            "booking_confirmed",
            user_id,
            f"Booking confirmed: {class_def.title}",
            {"booking_id": booking.id, "class_id": class_id, "balance": balance},
            db_path=self.db_path,
        )
        return Reservation(booking=await self.bookings.get(booking.id), balance=balance)

    async def reserve_within(
        self,
        db: aiosqlite.Connection,
        user_id: str,
        class_id: str,
        occurrence_date: date | None = None,
        confirm_overdraft: bool = False,
    ) -> tuple[ClassDefinition, Booking, int]:
        """The checks and writes of ``reserve`` inside the caller's transaction.

        Sends no notification.

        Returns:
            The class, the new booking and the balance after the deduction
        """
        class_def = await self._bookable_class(class_id, db)
        occurrence_date = await self._occurrence_key(class_def, occurrence_date, db)

        if class_def.is_recurring:
            taken = await self.bookings.count_active(class_id, occurrence_date, db=db)
        else:
            taken = class_def.current_bookings
        if taken >= class_def.capacity:
            raise ClassFull(
                f"Class {class_id} is full",
                details={"class_id": class_id, "capacity": class_def.capacity},
            )

        if await self.bookings.find_active(class_id, occurrence_date, user_id, db=db):
            raise AlreadyBooked(
                "You have already booked this class",
                details={"class_id": class_id, "user_id": user_id},
            )

        balance = await self.credits.get_balance(user_id, class_def.category, db=db)
        would_be = balance - 1
        if would_be < MAX_OVERDRAFT:
            raise MaxOverdraftReached(balance, would_be, MAX_OVERDRAFT)
        if balance <= 0 and not confirm_overdraft:
            raise OverdraftWarning(balance, would_be, class_def.category.value)

        booking = Booking(
            class_id=class_id,
            user_id=user_id,
            occurrence_date=occurrence_date,
            credit_deducted=True,
        )
        try:
            await self.bookings.create(booking, db=db)
        except sqlite3.IntegrityError as e:
            raise AlreadyBooked(
                "You have already booked this class",
                details={"class_id": class_id, "user_id": user_id},
            ) from e

        if not class_def.is_recurring:
            if not await self.classes.try_increment_bookings(class_id, db=db):
                raise ClassFull(
                    f"Class {class_id} is full",
                    details={"class_id": class_id, "capacity": class_def.capacity},
                )

        balance = await self.credits.deduct(
            user_id, class_def.category, allow_overdraft=True, db=db
        )
        return class_def, booking, balance

    async def cancel(self, booking_id: str, actor_user_id: str | None = None) -> CancellationResult:
        """Cancel a booking.

        Within the late window the credit is forfeited and a ``late_cancel``
        attendance record is written. Otherwise the credit comes back if it
        was taken.
        """
        async with transaction(self.db_path) as db:
            booking = await self.bookings.get(booking_id, db=db)
            if booking is None:
                raise BookingNotFound(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                raise AlreadyCancelled(
                    f"Booking {booking_id} is already cancelled",
                    details={"booking_id": booking_id},
                )
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidBookingState(
                    f"Booking {booking_id} is {booking.status.value} and cannot be cancelled",
                    details={"booking_id": booking_id, "status": booking.status.value},
                )

            class_def = await self.classes.get(booking.class_id, db=db)
            day = _attendance_day(class_def, booking)
            minutes_left = (class_def.starts_at(day) - self.clock()).total_seconds() / 60
            late = minutes_left <= LATE_CANCEL_WINDOW_MINUTES

            refunded = False
            if late:
                await self.bookings.update_status(
                    booking_id, BookingStatus.CANCELLED, late_cancellation=True, db=db
                )
                await self.attendance.upsert(
                    AttendanceRecord(
                        class_id=booking.class_id,
                        occurrence_date=day,
                        user_id=booking.user_id,
                        status=AttendanceStatus.LATE_CANCEL,
                        marked_by=actor_user_id or booking.user_id,
                        reason=f"Cancelled within {LATE_CANCEL_WINDOW_MINUTES} minutes of start",
                    ),
                    db=db,
                )
            else:
                await self.bookings.update_status(
                    booking_id, BookingStatus.CANCELLED, late_cancellation=False, db=db
                )
                if booking.credit_deducted:
                    await self.credits.refund(booking.user_id, class_def.category, db=db)
                    refunded = True

            if not class_def.is_recurring:
                await self.classes.decrement_bookings(class_def.id, db=db)
            if class_def.category == ClassCategory.PRIVATE:
                await self.classes.set_status(class_def.id, ClassStatus.CANCELLED, db=db)

        logger.info(
            "Booking %s cancelled by %s (late=%s, refunded=%s)",
            booking_id,
            actor_user_id or booking.user_id,
            late,
            refunded,
        )
        await notify_safely(
            self.notifier,
            "booking_cancelled",
            booking.user_id,
            f"Booking cancelled: {class_def.title}",
            {"booking_id": booking_id, "refunded": refunded, "late_cancellation": late},
            db_path=self.db_path,
        )
        return CancellationResult(refunded=refunded, late_cancellation=late)

    async def sync_occurrence_roster(
        self,
        class_id: str,
        occurrence_date: date | None,
        desired_user_ids: Iterable[str],
    ) -> RosterSyncResult:
        """Make the occurrence's active bookings match ``desired_user_ids``.

        Removed users are refunded if their booking was charged. Added users
        are charged if they have a credit to spare; otherwise they are
        booked anyway and reported as uncharged.

        A cancelled occurrence can still be emptied, but nobody can be added
        to it.
        """
        desired = list(dict.fromkeys(desired_user_ids))
        result = RosterSyncResult()

        async with transaction(self.db_path) as db:
            class_def = await self.classes.get(class_id, db=db)
            if class_def is None:
                raise ClassNotFound(class_id)
            occurrence_date = await self._occurrence_key(
                class_def, occurrence_date, db, allow_cancelled=True
            )
            if len(desired) > class_def.capacity:
                raise ClassFull(
                    f"Roster of {len(desired)} exceeds capacity {class_def.capacity}",
                    details={"class_id": class_id, "capacity": class_def.capacity},
                )

            active = await self.bookings.list_for_occurrence(
                class_id, occurrence_date, statuses=ACTIVE_STATUSES, db=db
            )
            existing = {b.user_id: b for b in active}
            additions = [user_id for user_id in desired if user_id not in existing]
            if additions and occurrence_date is not None:
                await self._occurrence_key(class_def, occurrence_date, db)

            for user_id, booking in existing.items():
                if user_id in desired:
                    continue
                await self.bookings.update_status(
                    booking.id, BookingStatus.CANCELLED, late_cancellation=False, db=db
                )
                result.removed.append(user_id)
                if booking.credit_deducted:
                    await self.credits.refund(user_id, class_def.category, db=db)
                    result.refunded.append(user_id)

            for user_id in additions:
                if await self.users.get(user_id, db=db) is None:
                    result.errors.append(f"Unknown user {user_id}")
                    continue

                try:
                    await self.credits.deduct(
                        user_id, class_def.category, allow_overdraft=False, db=db
                    )
                    charged = True
                except OverdraftExceeded:
                    charged = False
                    result.uncharged.append(user_id)

                await self.bookings.create(
                    Booking(
                        class_id=class_id,
                        user_id=user_id,
                        occurrence_date=occurrence_date,
                        credit_deducted=charged,
                    ),
                    db=db,
                )
                result.added.append(user_id)

            if not class_def.is_recurring:
                await self._recount(class_def, db)

        logger.info(
            "Roster sync for class %s (%s): +%d -%d, %d uncharged, %d error(s)",
            class_id,
            occurrence_date or "single",
            len(result.added),
            len(result.removed),
            len(result.uncharged),
            len(result.errors),
        )
        return result

    async def remove_attendee(
        self,
        class_id: str,
        occurrence_date: date | None,
        user_id: str,
    ) -> CancellationResult:
        """Admin removal of one user from an occurrence, with no late check."""
        async with transaction(self.db_path) as db:
            class_def = await self.classes.get(class_id, db=db)
            if class_def is None:
                raise ClassNotFound(class_id)
            key = await self._occurrence_key(class_def, occurrence_date, db, allow_cancelled=True)

            booking = await self.bookings.find_active(class_id, key, user_id, db=db)
            if booking is None or booking.status == BookingStatus.NO_SHOW:
                raise NotFoundError(
                    f"User {user_id} has no active booking for this occurrence",
                    details={"class_id": class_id, "user_id": user_id},
                )

            await self.bookings.update_status(
                booking.id, BookingStatus.CANCELLED, late_cancellation=False, db=db
            )
            await self.attendance.delete(
                class_id, _attendance_day(class_def, booking), user_id, db=db
            )

            refunded = False
            if booking.credit_deducted:
                await self.credits.refund(user_id, class_def.category, db=db)
                refunded = True

            if not class_def.is_recurring:
                await self._recount(class_def, db)

        logger.info(
            "Removed user %s from class %s (%s), refunded=%s",
            user_id,
            class_id,
            key or "single",
            refunded,
        )
        return CancellationResult(refunded=refunded, late_cancellation=False)

    async def _bookable_class(self, class_id: str, db: aiosqlite.Connection) -> ClassDefinition:
        class_def = await self.classes.get(class_id, db=db)
        if class_def is None:
            raise ClassNotFound(class_id)
        if class_def.status == ClassStatus.CANCELLED:
            raise ClassNotBookable(
                f"Class {class_id} has been cancelled", details={"class_id": class_id}
            )
        if class_def.category == ClassCategory.GROUP and not class_def.is_public:
            raise ClassNotBookable(
                f"Class {class_id} is not open for booking", details={"class_id": class_id}
            )
        return class_def

    async def _occurrence_key(
        self,
        class_def: ClassDefinition,
        occurrence_date: date | None,
        db: aiosqlite.Connection,
        allow_cancelled: bool = False,
    ) -> date | None:
        """Validate the requested occurrence and return the booking key.

        Recurring classes are keyed by date; single classes by NULL.
        """
        if class_def.is_recurring:
            if occurrence_date is None:
                raise ValidationError(
                    "An occurrence date is required for a recurring class",
                    details={"class_id": class_def.id},
                )
            cancelled = set()
            if not allow_cancelled:
                cancelled = await self.cancellations.dates_for_class(class_def.id, db=db)
            if not is_valid_occurrence(class_def, occurrence_date, cancelled):
                raise InvalidOccurrence(
                    f"Class {class_def.id} does not run on {occurrence_date.isoformat()}",
                    details={
                        "class_id": class_def.id,
                        "occurrence_date": occurrence_date.isoformat(),
                    },
                )
            return occurrence_date

        if occurrence_date is not None and occurrence_date != class_def.schedule.date:
            raise InvalidOccurrence(
                f"Class {class_def.id} runs on {class_def.schedule.date.isoformat()}",
                details={
                    "class_id": class_def.id,
                    "occurrence_date": occurrence_date.isoformat(),
                },
            )
        return None

    async def _recount(self, class_def: ClassDefinition, db: aiosqlite.Connection) -> None:
        active = await self.bookings.list_for_occurrence(
            class_def.id, None, statuses=ACTIVE_STATUSES, db=db
        )
        await self.classes.set_bookings(class_def.id, len(active), db=db)


def _attendance_day(class_def: ClassDefinition, booking: Booking) -> date:
    """Calendar date of the occurrence a booking is for."""
    if booking.occurrence_date is not None:
        return booking.occurrence_date
    return class_def.schedule.date
