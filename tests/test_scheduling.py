"""Tests for class scheduling."""

from datetime import date, datetime, time

import pytest

from studio_booking.db import AttendanceRepository
from studio_booking.errors import (
    ClassNotCancelled,
    ClassNotFound,
    InsufficientCredits,
    InvalidOccurrence,
    ValidationError,
)
from studio_booking.models.booking import BookingStatus
from studio_booking.models.classes import (
    ClassCategory,
    ClassStatus,
    RecurringSchedule,
    SingleSchedule,
)
from studio_booking.services.bookings import BookingService

GROUP = ClassCategory.GROUP
PRIVATE = ClassCategory.PRIVATE
MONDAY = date(2026, 11, 2)
WEDNESDAY = date(2026, 11, 4)


class TestCreateClass:
    """Tests for ClassService.create_class."""

    async def test_private_class_holds_one(self, class_service):
        class_def = await class_service.create_class(
            title="Private",
            category=ClassCategory.PRIVATE,
            capacity=4,
            schedule=SingleSchedule(date=MONDAY),
            start_time=time(7, 0),
        )

        assert class_def.capacity == 1
        assert class_def.status == ClassStatus.SCHEDULED
        assert class_def.current_bookings == 0

    async def test_recurring_round_trips_weekdays(self, class_service, recurring_class):
        loaded = await class_service.get(recurring_class.id)

        assert loaded.is_recurring
        assert loaded.schedule.weekdays == frozenset({0, 2})
        assert loaded.start_time == time(18, 0)

    async def test_recurring_without_weekdays_rejected(self, class_service):
        with pytest.raises(ValidationError):
            await class_service.create_class(
                title="Nothing",
                category=GROUP,
                capacity=4,
                schedule=RecurringSchedule(
                    weekdays=frozenset(),
                    start_date=date(2026, 11, 1),
                    end_date=date(2026, 11, 30),
                ),
                start_time=time(18, 0),
            )

    async def test_reversed_window_rejected(self, class_service):
        with pytest.raises(ValidationError):
            await class_service.create_class(
                title="Backwards",
                category=GROUP,
                capacity=4,
                schedule=RecurringSchedule(
                    weekdays=frozenset({1}),
                    start_date=date(2026, 12, 1),
                    end_date=date(2026, 11, 1),
                ),
                start_time=time(18, 0),
            )

    async def test_zero_capacity_rejected(self, class_service):
        with pytest.raises(ValidationError):
            await class_service.create_class(
                title="Empty",
                category=GROUP,
                capacity=0,
                schedule=SingleSchedule(date=MONDAY),
                start_time=time(9, 0),
            )


class TestUpdateClass:
    """Tests for ClassService.update_class."""

    async def test_update_title_and_capacity(self, class_service, single_class):
        updated = await class_service.update_class(
            single_class.id, title="Renamed", capacity=5
        )

        assert updated.title == "Renamed"
        assert (await class_service.get(single_class.id)).capacity == 5

    async def test_capacity_below_bookings_rejected(
        self, class_service, booking_service, credit_service, single_class, users
    ):
        for name in ("alice", "bob"):
            await credit_service.set_balance(users[name].id, GROUP, 2)
            await booking_service.reserve(users[name].id, single_class.id)

        with pytest.raises(ValidationError):
            await class_service.update_class(single_class.id, capacity=1)

    async def test_unknown_field_rejected(self, class_service, single_class):
        with pytest.raises(ValidationError):
            await class_service.update_class(single_class.id, current_bookings=0)

    async def test_unknown_class(self, class_service):
        with pytest.raises(ClassNotFound):
            await class_service.update_class("missing", title="x")

    async def test_null_field_rejected(self, class_service, single_class):
        with pytest.raises(ValidationError) as exc_info:
            await class_service.update_class(single_class.id, capacity=None)

        assert exc_info.value.details["fields"] == ["capacity"]
        assert (await class_service.get(single_class.id)).capacity == 2

    async def test_coach_can_be_cleared(self, class_service, single_class, users):
        await class_service.update_class(single_class.id, coach_id=users["coach"].id)

        updated = await class_service.update_class(single_class.id, coach_id=None)

        assert updated.coach_id is None


class TestOccurrenceCancellation:
    """Tests for cancelling single dates of a recurring class."""

    async def test_cancel_is_idempotent(self, class_service, recurring_class):
        assert await class_service.cancel_occurrence(recurring_class.id, MONDAY)
        assert not await class_service.cancel_occurrence(recurring_class.id, MONDAY)

        cancelled = await class_service.list_cancelled_occurrences(recurring_class.id)
        assert [c.occurrence_date for c in cancelled] == [MONDAY]

    async def test_single_class_has_no_occurrences_to_cancel(
        self, class_service, single_class
    ):
        with pytest.raises(ValidationError):
            await class_service.cancel_occurrence(single_class.id, MONDAY)

    async def test_off_schedule_date_rejected(self, class_service, recurring_class):
        with pytest.raises(InvalidOccurrence):
            await class_service.cancel_occurrence(recurring_class.id, date(2026, 11, 3))

    async def test_existing_bookings_are_kept(
        self, class_service, booking_service, credit_service, recurring_class, users
    ):
        await credit_service.set_balance(users["alice"].id, GROUP, 2)
        await booking_service.reserve(users["alice"].id, recurring_class.id, MONDAY)

        await class_service.cancel_occurrence(recurring_class.id, MONDAY)

        bookings = await booking_service.list_for_occurrence(recurring_class.id, MONDAY)
        assert [b.status for b in bookings] == [BookingStatus.CONFIRMED]

    async def test_reinstate(self, class_service, recurring_class):
        await class_service.cancel_occurrence(recurring_class.id, WEDNESDAY)

        assert await class_service.reinstate_occurrence(recurring_class.id, WEDNESDAY)
        assert not await class_service.reinstate_occurrence(recurring_class.id, WEDNESDAY)
        assert await class_service.list_cancelled_occurrences(recurring_class.id) == []

    async def test_list_occurrences_flags_cancelled(self, class_service, recurring_class):
        await class_service.cancel_occurrence(recurring_class.id, WEDNESDAY)

        occurrences = await class_service.list_occurrences(
            recurring_class.id, date(2026, 11, 1), date(2026, 11, 7)
        )

        assert [(o.date, o.cancelled) for o in occurrences] == [
            (MONDAY, False),
            (WEDNESDAY, True),
        ]

    async def test_list_occurrences_reversed_window(self, class_service, recurring_class):
        with pytest.raises(ValidationError):
            await class_service.list_occurrences(
                recurring_class.id, date(2026, 11, 7), date(2026, 11, 1)
            )


class TestDeleteClass:
    """Tests for ClassService.delete_class."""

    async def test_delete_refunds_charged_bookings(
        self, class_service, booking_service, credit_service, recurring_class, users
    ):
        user_id = users["alice"].id
        await credit_service.set_balance(user_id, GROUP, 3)
        await booking_service.reserve(user_id, recurring_class.id, MONDAY)
        await booking_service.reserve(user_id, recurring_class.id, WEDNESDAY)
        assert await credit_service.get_balance(user_id, GROUP) == 1

        refunds = await class_service.delete_class(recurring_class.id)

        assert refunds == 2
        assert await credit_service.get_balance(user_id, GROUP) == 3
        assert await booking_service.list_for_user(user_id) == []
        with pytest.raises(ClassNotFound):
            await class_service.get(recurring_class.id)

    async def test_booking_counts_per_occurrence(
        self, class_service, booking_service, credit_service, recurring_class, users
    ):
        await credit_service.set_balance(users["bob"].id, GROUP, 2)
        await booking_service.reserve(users["bob"].id, recurring_class.id, WEDNESDAY)

        counts = await class_service.occurrence_booking_counts(recurring_class.id)

        assert counts == {WEDNESDAY: 1}

    async def test_attended_bookings_count_as_seats(
        self,
        class_service,
        booking_service,
        attendance_service,
        credit_service,
        recurring_class,
        users,
    ):
        await credit_service.set_balance(users["bob"].id, GROUP, 2)
        reservation = await booking_service.reserve(
            users["bob"].id, recurring_class.id, WEDNESDAY
        )
        await attendance_service.record(reservation.booking.id, "present", users["coach"].id)

        counts = await class_service.occurrence_booking_counts(recurring_class.id)

        assert counts == {WEDNESDAY: 1}


@pytest.fixture
async def private_class(class_service):
    """Private class on Monday 2 November 2026 at 09:00."""
    return await class_service.create_class(
        title="1:1",
        category=PRIVATE,
        capacity=1,
        schedule=SingleSchedule(date=MONDAY),
        start_time=time(9, 0),
    )


class TestReinstateClass:
    """Tests for ClassService.reinstate_class."""

    async def _book_and_cancel(self, booking_service, credit_service, private_class, user):
        await credit_service.set_balance(user.id, PRIVATE, 1)
        reservation = await booking_service.reserve(user.id, private_class.id)
        await booking_service.cancel(reservation.booking.id)
        return reservation.booking

    async def test_refunded_booking_is_charged_again(
        self, class_service, booking_service, credit_service, private_class, users
    ):
        user_id = users["alice"].id
        booking = await self._book_and_cancel(
            booking_service, credit_service, private_class, users["alice"]
        )
        assert await credit_service.get_balance(user_id, PRIVATE) == 1

        result = await class_service.reinstate_class(private_class.id)

        assert result.restored == [user_id]
        assert result.charged == [user_id]
        assert await credit_service.get_balance(user_id, PRIVATE) == 0
        restored = await booking_service.get(booking.id)
        assert restored.status == BookingStatus.CONFIRMED
        assert restored.credit_deducted
        class_def = await class_service.get(private_class.id)
        assert class_def.status == ClassStatus.SCHEDULED
        assert class_def.current_bookings == 1

    async def test_skipped_user_is_not_charged(
        self, class_service, booking_service, credit_service, private_class, users
    ):
        user_id = users["alice"].id
        booking = await self._book_and_cancel(
            booking_service, credit_service, private_class, users["alice"]
        )

        result = await class_service.reinstate_class(private_class.id, skip_user_ids=[user_id])

        assert result.restored == [user_id]
        assert result.skipped == [user_id]
        assert result.charged == []
        assert await credit_service.get_balance(user_id, PRIVATE) == 1
        assert not (await booking_service.get(booking.id)).credit_deducted

    async def test_late_cancel_restored_without_charge(
        self, db_path, class_service, credit_service, private_class, users
    ):
        """The forfeited credit covers the restored booking."""
        user_id = users["bob"].id
        await credit_service.set_balance(user_id, PRIVATE, 1)
        service = BookingService(db_path, clock=lambda: datetime(2026, 11, 2, 8, 55))
        reservation = await service.reserve(user_id, private_class.id)
        await service.cancel(reservation.booking.id)

        result = await class_service.reinstate_class(private_class.id)

        assert result.restored == [user_id]
        assert result.charged == []
        assert await credit_service.get_balance(user_id, PRIVATE) == 0
        restored = await service.get(reservation.booking.id)
        assert restored.status == BookingStatus.CONFIRMED
        assert not restored.late_cancellation
        assert restored.credit_deducted
        record = await AttendanceRepository(db_path).get(private_class.id, MONDAY, user_id)
        assert record is None

    async def test_no_credit_leaves_class_cancelled(
        self, class_service, booking_service, credit_service, private_class, users
    ):
        user_id = users["alice"].id
        booking = await self._book_and_cancel(
            booking_service, credit_service, private_class, users["alice"]
        )
        await credit_service.set_balance(user_id, PRIVATE, 0)

        with pytest.raises(InsufficientCredits) as exc_info:
            await class_service.reinstate_class(private_class.id)

        assert exc_info.value.details["user_ids"] == [user_id]
        assert (await class_service.get(private_class.id)).status == ClassStatus.CANCELLED
        assert (await booking_service.get(booking.id)).status == BookingStatus.CANCELLED
        assert await credit_service.get_balance(user_id, PRIVATE) == 0

    async def test_cancelled_group_class_is_rescheduled(self, class_service, single_class):
        await class_service.update_class(single_class.id, status=ClassStatus.CANCELLED)

        result = await class_service.reinstate_class(single_class.id)

        assert result.restored == []
        assert (await class_service.get(single_class.id)).status == ClassStatus.SCHEDULED

    async def test_scheduled_class_rejected(self, class_service, single_class):
        with pytest.raises(ClassNotCancelled):
            await class_service.reinstate_class(single_class.id)

    async def test_unknown_class(self, class_service):
        with pytest.raises(ClassNotFound):
            await class_service.reinstate_class("missing")
