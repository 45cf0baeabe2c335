"""Tests for private class requests."""

from datetime import date, time

import pytest

from studio_booking.errors import (
    InsufficientCredits,
    PrivateRequestNotFound,
    RequestAlreadyResolved,
    UserNotFound,
    ValidationError,
)
from studio_booking.models.booking import BookingStatus
from studio_booking.models.classes import ClassCategory
from studio_booking.models.private_request import RequestStatus
from studio_booking.services.private_requests import PrivateRequestService

PRIVATE = ClassCategory.PRIVATE
FRIDAY = date(2026, 11, 6)


@pytest.fixture
def request_service(db_path, notifier):
    return PrivateRequestService(db_path, notifier=notifier)


@pytest.fixture
async def pending_request(request_service, credit_service, users):
    await credit_service.set_balance(users["alice"].id, PRIVATE, 1)
    return await request_service.create_request(users["alice"].id, FRIDAY, time(7, 30))


class TestCreateRequest:
    """Tests for PrivateRequestService.create_request."""

    async def test_create(self, request_service, pending_request, users):
        assert pending_request.status == RequestStatus.PENDING
        assert pending_request.duration_minutes == 60

        pending = await request_service.list_pending()
        assert [r.id for r in pending] == [pending_request.id]
        mine = await request_service.list_for_user(users["alice"].id)
        assert [r.id for r in mine] == [pending_request.id]

    async def test_needs_private_credit(self, request_service, users):
        with pytest.raises(InsufficientCredits) as exc_info:
            await request_service.create_request(users["bob"].id, FRIDAY, time(7, 30))

        assert exc_info.value.details["category"] == "private"
        assert await request_service.list_pending() == []

    async def test_duration_must_be_positive(self, request_service, users):
        with pytest.raises(ValidationError):
            await request_service.create_request(users["alice"].id, FRIDAY, time(7, 30), 0)

    async def test_unknown_user(self, request_service):
        with pytest.raises(UserNotFound):
            await request_service.create_request("missing", FRIDAY, time(7, 30))


class TestResolveRequest:
    """Approving books the client into a new private class."""

    async def test_approve_creates_class_and_booking(
        self,
        request_service,
        class_service,
        booking_service,
        credit_service,
        pending_request,
        users,
        notifier,
    ):
        resolved = await request_service.resolve(
            pending_request.id,
            "approved",
            admin_notes="See you there",
            coach_id=users["coach"].id,
        )

        assert resolved.status == RequestStatus.APPROVED
        assert resolved.admin_notes == "See you there"

        class_def = await class_service.get(resolved.class_id)
        assert class_def.category == PRIVATE
        assert class_def.capacity == 1
        assert class_def.current_bookings == 1
        assert class_def.schedule.date == FRIDAY
        assert class_def.start_time == time(7, 30)
        assert class_def.coach_id == users["coach"].id
        assert not class_def.is_public

        booking = await booking_service.get(resolved.booking_id)
        assert booking.user_id == users["alice"].id
        assert booking.status == BookingStatus.CONFIRMED
        assert await credit_service.get_balance(users["alice"].id, PRIVATE) == 0
        assert [kind for kind, *_ in notifier.sent] == ["private_request_approved"]

    async def test_approve_may_use_overdraft(
        self, request_service, credit_service, pending_request, users
    ):
        await credit_service.set_balance(users["alice"].id, PRIVATE, 0)

        resolved = await request_service.approve(pending_request.id)

        assert resolved.booking_id is not None
        assert await credit_service.get_balance(users["alice"].id, PRIVATE) == -1

    async def test_reject(self, request_service, credit_service, pending_request, users):
        resolved = await request_service.resolve(
            pending_request.id, RequestStatus.REJECTED, admin_notes="Fully booked"
        )

        assert resolved.status == RequestStatus.REJECTED
        assert resolved.class_id is None
        assert await credit_service.get_balance(users["alice"].id, PRIVATE) == 1
        assert await request_service.list_pending() == []

    async def test_resolve_twice(self, request_service, pending_request):
        await request_service.reject(pending_request.id)

        with pytest.raises(RequestAlreadyResolved):
            await request_service.approve(pending_request.id)

    async def test_pending_is_not_a_resolution(self, request_service, pending_request):
        with pytest.raises(ValidationError):
            await request_service.resolve(pending_request.id, "pending")

    async def test_unknown_request(self, request_service):
        with pytest.raises(PrivateRequestNotFound):
            await request_service.resolve("missing", "rejected")
