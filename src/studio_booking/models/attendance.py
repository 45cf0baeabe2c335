"""Attendance record model."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from .booking import BookingStatus

# Values older clients still send
_LEGACY_ALIASES = {
    "attended": "present",
    "cancelled": "late_cancel",
    "late_cancellation": "late_cancel",
}


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE_CANCEL = "late_cancel"
    EXCUSED = "excused"
    NO_SHOW = "no_show"

    @classmethod
    def parse(cls, value: str) -> "AttendanceStatus":
        """Parse a status string, accepting legacy aliases.

        Raises:
            ValueError: If the value is not a known status
        """
        normalized = value.strip().lower()
        return cls(_LEGACY_ALIASES.get(normalized, normalized))

    def booking_status(self) -> BookingStatus | None:
        """Booking status implied by this outcome, if any."""
        if self is AttendanceStatus.PRESENT:
            return BookingStatus.ATTENDED
        if self in (AttendanceStatus.ABSENT, AttendanceStatus.NO_SHOW):
            return BookingStatus.NO_SHOW
        return None


@dataclass
class AttendanceRecord:
    """Final outcome for one user at one occurrence."""

    class_id: str
    occurrence_date: date
    user_id: str
    status: AttendanceStatus
    marked_by: str
    notes: str | None = None
    reason: str | None = None
    id: str | None = None
    marked_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "class_id": self.class_id,
            "occurrence_date": self.occurrence_date.isoformat(),
            "user_id": self.user_id,
            "status": self.status.value,
            "marked_by": self.marked_by,
            "notes": self.notes,
            "reason": self.reason,
            "marked_at": self.marked_at.isoformat() if self.marked_at else None,
        }
