"""Request dependencies shared by the routers."""

from dataclasses import dataclass
from pathlib import Path

from fastapi import Header, Request

from ..models.user import UserRole
from ..services.notifications import Notifier


@dataclass
class Actor:
    """Caller identity as asserted by the upstream auth layer."""

    user_id: str | None
    role: UserRole


def get_db_path(request: Request) -> Path:
    return request.app.state.db_path


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_actor(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Actor:
    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.CLIENT
    except ValueError:
        role = UserRole.CLIENT
    return Actor(user_id=x_user_id, role=role)
