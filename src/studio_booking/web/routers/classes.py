"""Class scheduling routes."""

from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends

from ...services.scheduling import ClassService
from ..deps import get_db_path
from ..schemas import ClassCreate, ClassReinstateRequest, ClassUpdate, OccurrenceRequest

router = APIRouter(prefix="/classes", tags=["classes"])


@router.post("", status_code=201)
async def create_class(body: ClassCreate, db_path: Path = Depends(get_db_path)):
    class_def = await ClassService(db_path).create_class(
        title=body.title,
        category=body.category,
        capacity=body.capacity,
        schedule=body.to_schedule(),
        start_time=body.start_time,
        duration_minutes=body.duration_minutes,
        coach_id=body.coach_id,
        is_public=body.is_public,
    )
    return {"success": True, "class": class_def.to_dict()}


@router.get("")
async def list_classes(db_path: Path = Depends(get_db_path)):
    classes = await ClassService(db_path).list_classes()
    return {"classes": [c.to_dict() for c in classes]}


@router.get("/{class_id}")
async def get_class(class_id: str, db_path: Path = Depends(get_db_path)):
    class_def = await ClassService(db_path).get(class_id)
    return class_def.to_dict()


@router.patch("/{class_id}")
async def update_class(class_id: str, body: ClassUpdate, db_path: Path = Depends(get_db_path)):
    class_def = await ClassService(db_path).update_class(class_id, **body.changes())
    return {"success": True, "class": class_def.to_dict()}


@router.delete("/{class_id}")
async def delete_class(class_id: str, db_path: Path = Depends(get_db_path)):
    refunds = await ClassService(db_path).delete_class(class_id)
    return {"success": True, "refunds": refunds}


@router.get("/{class_id}/occurrences")
async def list_occurrences(
    class_id: str, start: date, end: date, db_path: Path = Depends(get_db_path)
):
    service = ClassService(db_path)
    occurrences = await service.list_occurrences(class_id, start, end)
    counts = await service.occurrence_booking_counts(class_id)
    return {
        "occurrences": [
            {**o.to_dict(), "seats_taken": counts.get(o.date, 0)} for o in occurrences
        ]
    }


@router.post("/{class_id}/occurrences/cancel")
async def cancel_occurrence(
    class_id: str, body: OccurrenceRequest, db_path: Path = Depends(get_db_path)
):
    added = await ClassService(db_path).cancel_occurrence(class_id, body.occurrence_date)
    return {"success": True, "already_cancelled": not added}


@router.post("/{class_id}/occurrences/reinstate")
async def reinstate_occurrence(
    class_id: str, body: OccurrenceRequest, db_path: Path = Depends(get_db_path)
):
    removed = await ClassService(db_path).reinstate_occurrence(class_id, body.occurrence_date)
    return {"success": True, "reinstated": removed}


@router.get("/{class_id}/occurrences/cancelled")
async def list_cancelled(class_id: str, db_path: Path = Depends(get_db_path)):
    cancelled = await ClassService(db_path).list_cancelled_occurrences(class_id)
    return {"cancelled": [c.to_dict() for c in cancelled]}


@router.post("/{class_id}/reinstate")
async def reinstate_class(
    class_id: str, body: ClassReinstateRequest, db_path: Path = Depends(get_db_path)
):
    """Put a cancelled class back on the schedule."""
    result = await ClassService(db_path).reinstate_class(class_id, body.skip_user_ids)
    return result.to_dict()
