"""Private class request routes."""

from pathlib import Path

from fastapi import APIRouter, Depends

from ...errors import ValidationError
from ...services.notifications import Notifier
from ...services.private_requests import PrivateRequestService
from ..deps import Actor, get_actor, get_db_path, get_notifier
from ..schemas import PrivateRequestCreate, PrivateRequestResolve

router = APIRouter(prefix="/private-requests", tags=["private-requests"])


def _service(
    db_path: Path = Depends(get_db_path), notifier: Notifier = Depends(get_notifier)
) -> PrivateRequestService:
    return PrivateRequestService(db_path, notifier=notifier)


@router.post("", status_code=201)
async def create_request(
    body: PrivateRequestCreate,
    actor: Actor = Depends(get_actor),
    service: PrivateRequestService = Depends(_service),
):
    """Ask for a private class on behalf of the calling user."""
    if not actor.user_id:
        raise ValidationError("X-User-Id header is required")
    request = await service.create_request(
        actor.user_id,
        body.requested_date,
        body.requested_time,
        duration_minutes=body.duration_minutes,
    )
    return {"success": True, "request": request.to_dict()}


@router.get("/pending")
async def list_pending(service: PrivateRequestService = Depends(_service)):
    requests = await service.list_pending()
    return {"requests": [r.to_dict() for r in requests]}


@router.get("/user/{user_id}")
async def user_requests(user_id: str, service: PrivateRequestService = Depends(_service)):
    requests = await service.list_for_user(user_id)
    return {"requests": [r.to_dict() for r in requests]}


@router.get("/{request_id}")
async def get_request(request_id: str, service: PrivateRequestService = Depends(_service)):
    request = await service.get(request_id)
    return request.to_dict()


@router.put("/{request_id}/status")
async def resolve_request(
    request_id: str,
    body: PrivateRequestResolve,
    service: PrivateRequestService = Depends(_service),
):
    request = await service.resolve(
        request_id, body.status, admin_notes=body.admin_notes, coach_id=body.coach_id
    )
    return {"success": True, "request": request.to_dict()}
