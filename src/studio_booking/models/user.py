"""User model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    CLIENT = "client"
    COACH = "coach"
    ADMIN = "admin"


@dataclass
class User:
    name: str
    email: str
    role: UserRole = UserRole.CLIENT
    classes_taken: int = 0
    id: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "classes_taken": self.classes_taken,
        }
