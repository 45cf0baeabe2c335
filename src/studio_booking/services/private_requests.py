"""Private class requests.

A client asks for a one-to-one slot; an admin approves or rejects it.
Approval creates a capacity-1 private class at the requested slot and
books the client into it, taking one private credit, all in the same
transaction as the status change.
"""

import logging
from datetime import date, time
from pathlib import Path

import aiosqlite

from ..db.engine import atomic, get_db_path
from ..db.repositories import PrivateClassRequestRepository, UserRepository
from ..errors import (
    InsufficientCredits,
    PrivateRequestNotFound,
    RequestAlreadyResolved,
    UserNotFound,
    ValidationError,
)
from ..models.classes import ClassCategory, SingleSchedule
from ..models.private_request import PrivateClassRequest, RequestStatus
from .bookings import BookingService
from .credits import CreditService
from .notifications import LoggingNotifier, Notifier, notify_safely
from .scheduling import ClassService

logger = logging.getLogger(__name__)

PRIVATE_CLASS_TITLE = "Private class"


class PrivateRequestService:
    """Create and resolve private class requests."""

    def __init__(self, db_path: Path | None = None, notifier: Notifier | None = None):
        self.db_path = db_path or get_db_path()
        self.notifier = notifier or LoggingNotifier()
        self.requests = PrivateClassRequestRepository(self.db_path)
        self.users = UserRepository(self.db_path)
        self.credits = CreditService(self.db_path)
        self.classes = ClassService(self.db_path)
        self.bookings = BookingService(self.db_path, notifier=self.notifier)

    async def get(self, request_id: str) -> PrivateClassRequest:
        request = await self.requests.get(request_id)
        if request is None:
            raise PrivateRequestNotFound(request_id)
        return request

    async def list_pending(self) -> list[PrivateClassRequest]:
        return await self.requests.list_pending()

    async def list_for_user(self, user_id: str) -> list[PrivateClassRequest]:
        return await self.requests.list_for_user(user_id)

    async def create_request(
        self,
        user_id: str,
        requested_date: date,
        requested_time: time,
        duration_minutes: int = 60,
    ) -> PrivateClassRequest:
        """File a request. The client must have a private credit to spend."""
        if duration_minutes < 1:
            raise ValidationError("Duration must be positive")
        if await self.users.get(user_id) is None:
            raise UserNotFound(user_id)
        if await self.credits.get_balance(user_id, ClassCategory.PRIVATE) <= 0:
            raise InsufficientCredits([user_id], ClassCategory.PRIVATE.value)

        request = PrivateClassRequest(
            user_id=user_id,
            requested_date=requested_date,
            requested_time=requested_time,
            duration_minutes=duration_minutes,
        )
        await self.requests.create(request)
        logger.info(
            "User %s requested a private class on %s at %s",
            user_id,
            requested_date,
            requested_time.strftime("%H:%M"),
        )
        return await self.get(request.id)

    async def resolve(
        self,
        request_id: str,
        status: RequestStatus | str,
        admin_notes: str | None = None,
        coach_id: str | None = None,
    ) -> PrivateClassRequest:
        """Approve or reject a pending request.

        Raises:
            ValidationError: If ``status`` is not approved or rejected
            RequestAlreadyResolved: If the request is no longer pending
        """
        try:
            status = RequestStatus(status)
        except ValueError as e:
            raise ValidationError(
                f"Unknown request status: {status}", details={"status": str(status)}
            ) from e
        if status == RequestStatus.APPROVED:
            return await self.approve(request_id, admin_notes, coach_id)
        if status == RequestStatus.REJECTED:
            return await self.reject(request_id, admin_notes)
        raise ValidationError(
            "Status must be approved or rejected", details={"status": status.value}
        )

    async def approve(
        self,
        request_id: str,
        admin_notes: str | None = None,
        coach_id: str | None = None,
    ) -> PrivateClassRequest:
        """Create the private class and book the requester into it.

        The booking takes one private credit and may go into overdraft
        down to the usual floor.
        """
        async with atomic(None, self.db_path) as db:
            request = await self._pending(request_id, db)
            class_def = await self.classes.create_class(
                title=PRIVATE_CLASS_TITLE,
                category=ClassCategory.PRIVATE,
                capacity=1,
                schedule=SingleSchedule(date=request.requested_date),
                start_time=request.requested_time,
                duration_minutes=request.duration_minutes,
                coach_id=coach_id,
                is_public=False,
                db=db,
            )
            _, booking, balance = await self.bookings.reserve_within(
                db, request.user_id, class_def.id, confirm_overdraft=True
            )
            await self.requests.resolve(
                request_id,
                RequestStatus.APPROVED,
                admin_notes,
                class_id=class_def.id,
                booking_id=booking.id,
                db=db,
            )

        logger.info(
            "Approved private class request %s: class %s, booking %s, balance %d",
            request_id,
            class_def.id,
            booking.id,
            balance,
        )
        await notify_safely(
            self.notifier,
            "private_request_approved",
            request.user_id,
            "Private class confirmed",
            {
                "request_id": request_id,
                "class_id": class_def.id,
                "booking_id": booking.id,
                "balance": balance,
            },
            db_path=self.db_path,
        )
        return await self.get(request_id)

    async def reject(self, request_id: str, admin_notes: str | None = None) -> PrivateClassRequest:
        async with atomic(None, self.db_path) as db:
            request = await self._pending(request_id, db)
            await self.requests.resolve(request_id, RequestStatus.REJECTED, admin_notes, db=db)

        logger.info("Rejected private class request %s", request_id)
        await notify_safely(
            self.notifier,
            "private_request_rejected",
            request.user_id,
            "Private class request declined",
            {"request_id": request_id, "admin_notes": admin_notes},
            db_path=self.db_path,
        )
        return await self.get(request_id)

    async def _pending(
        self, request_id: str, db: aiosqlite.Connection
    ) -> PrivateClassRequest:
        request = await self.requests.get(request_id, db=db)
        if request is None:
            raise PrivateRequestNotFound(request_id)
        if not request.is_pending:
            raise RequestAlreadyResolved(
                f"Request {request_id} is already {request.status.value}",
                details={"request_id": request_id, "status": request.status.value},
            )
        return request
