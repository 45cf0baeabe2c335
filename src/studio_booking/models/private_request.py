"""Private class request model."""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class PrivateClassRequest:
    """A client's request for a one-to-one session at a given slot.

    Approval creates the private class and books the client into it;
    ``class_id`` and ``booking_id`` point at what was created.
    """

    user_id: str
    requested_date: date
    requested_time: time
    duration_minutes: int = 60
    status: RequestStatus = RequestStatus.PENDING
    admin_notes: str | None = None
    class_id: str | None = None
    booking_id: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "requested_date": self.requested_date.isoformat(),
            "requested_time": self.requested_time.strftime("%H:%M"),
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "admin_notes": self.admin_notes,
            "class_id": self.class_id,
            "booking_id": self.booking_id,
        }
