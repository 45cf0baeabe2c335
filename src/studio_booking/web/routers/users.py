"""User routes."""

from pathlib import Path

from fastapi import APIRouter, Depends

from ...services.attendance import AttendanceService
from ...services.bookings import BookingService
from ...services.users import UserService
from ..deps import get_db_path
from ..schemas import UserCreate

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
async def create_user(body: UserCreate, db_path: Path = Depends(get_db_path)):
    user = await UserService(db_path).create(body.name, body.email, body.role)
    return {"success": True, "user": user.to_dict()}


@router.get("")
async def list_users(db_path: Path = Depends(get_db_path)):
    users = await UserService(db_path).list_users()
    return {"users": [u.to_dict() for u in users]}


@router.get("/{user_id}")
async def get_user(user_id: str, db_path: Path = Depends(get_db_path)):
    user = await UserService(db_path).get(user_id)
    return user.to_dict()


@router.get("/{user_id}/bookings")
async def user_bookings(user_id: str, db_path: Path = Depends(get_db_path)):
    await UserService(db_path).get(user_id)
    bookings = await BookingService(db_path).list_for_user(user_id)
    return {"bookings": [b.to_dict() for b in bookings]}


@router.get("/{user_id}/attendance")
async def user_attendance(user_id: str, db_path: Path = Depends(get_db_path)):
    return await AttendanceService(db_path).user_summary(user_id)
