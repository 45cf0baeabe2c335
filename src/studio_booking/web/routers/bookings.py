"""Booking routes."""

from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends

from ...errors import ValidationError
from ...services.bookings import BookingService
from ...services.notifications import Notifier
from ..deps import Actor, get_actor, get_db_path, get_notifier
from ..schemas import RemoveAttendeeRequest, ReserveRequest, RosterSyncRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _service(
    db_path: Path = Depends(get_db_path), notifier: Notifier = Depends(get_notifier)
) -> BookingService:
    return BookingService(db_path, notifier=notifier)


@router.post("", status_code=201)
async def reserve(
    body: ReserveRequest,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(_service),
):
    """Reserve a seat for the calling user."""
    if not actor.user_id:
        raise ValidationError("X-User-Id header is required")
    reservation = await service.reserve(
        actor.user_id,
        body.class_id,
        occurrence_date=body.occurrence_date,
        confirm_overdraft=body.confirm_overdraft,
    )
    return reservation.to_dict()


@router.get("/{booking_id}")
async def get_booking(booking_id: str, service: BookingService = Depends(_service)):
    booking = await service.get(booking_id)
    return booking.to_dict()


@router.post("/{booking_id}/cancel")
async def cancel(
    booking_id: str,
    actor: Actor = Depends(get_actor),
    service: BookingService = Depends(_service),
):
    result = await service.cancel(booking_id, actor_user_id=actor.user_id)
    return result.to_dict()


@router.get("/occurrence/{class_id}")
async def occurrence_bookings(
    class_id: str,
    occurrence_date: date | None = None,
    service: BookingService = Depends(_service),
):
    bookings = await service.list_for_occurrence(class_id, occurrence_date)
    return {"bookings": [b.to_dict() for b in bookings]}


@router.post("/roster")
async def sync_roster(body: RosterSyncRequest, service: BookingService = Depends(_service)):
    result = await service.sync_occurrence_roster(
        body.class_id, body.occurrence_date, body.user_ids
    )
    return result.to_dict()


@router.post("/remove")
async def remove_attendee(
    body: RemoveAttendeeRequest, service: BookingService = Depends(_service)
):
    result = await service.remove_attendee(body.class_id, body.occurrence_date, body.user_id)
    return result.to_dict()
