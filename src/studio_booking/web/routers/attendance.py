"""Attendance routes."""

from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends

from ...errors import ValidationError
from ...services.attendance import AttendanceService
from ..deps import Actor, get_actor, get_db_path
from ..schemas import AttendanceRequest, DirectAttendanceRequest

router = APIRouter(prefix="/attendance", tags=["attendance"])


def _marker(actor: Actor) -> str:
    if not actor.user_id:
        raise ValidationError("X-User-Id header is required")
    return actor.user_id


@router.post("")
async def record(
    body: AttendanceRequest,
    actor: Actor = Depends(get_actor),
    db_path: Path = Depends(get_db_path),
):
    stored = await AttendanceService(db_path).record(
        body.booking_id, body.status, _marker(actor), reason=body.reason, notes=body.notes
    )
    return {"success": True, "record": stored.to_dict()}


@router.post("/direct")
async def record_direct(
    body: DirectAttendanceRequest,
    actor: Actor = Depends(get_actor),
    db_path: Path = Depends(get_db_path),
):
    stored = await AttendanceService(db_path).record_direct(
        body.class_id,
        body.occurrence_date,
        body.user_id,
        body.status,
        _marker(actor),
        reason=body.reason,
        notes=body.notes,
    )
    return {"success": True, "record": stored.to_dict()}


@router.get("/occurrence/{class_id}")
async def occurrence_attendance(
    class_id: str,
    occurrence_date: date | None = None,
    db_path: Path = Depends(get_db_path),
):
    records = await AttendanceService(db_path).list_for_occurrence(class_id, occurrence_date)
    return {"records": [r.to_dict() for r in records]}
