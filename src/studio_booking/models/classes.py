"""Class definition and schedule models."""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

WEEKDAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


class ClassCategory(str, Enum):
    """Class category. Also keys the credit account."""

    GROUP = "group"
    PRIVATE = "private"


class ClassStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SingleSchedule:
    """A class that happens exactly once."""

    date: date

    @property
    def is_recurring(self) -> bool:
        return False


@dataclass(frozen=True)
class RecurringSchedule:
    """A class repeating on a set of weekdays within a date window.

    Weekdays follow ``date.weekday()``: 0 is Monday, 6 is Sunday.
    """

    weekdays: frozenset[int]
    start_date: date
    end_date: date

    @property
    def is_recurring(self) -> bool:
        return True

    def weekday_names(self) -> list[str]:
        return [WEEKDAY_NAMES[d] for d in sorted(self.weekdays)]


Schedule = SingleSchedule | RecurringSchedule


@dataclass
class ClassDefinition:
    """A bookable class, single or recurring."""

    title: str
    category: ClassCategory
    capacity: int
    schedule: Schedule
    start_time: time
    duration_minutes: int = 60
    coach_id: str | None = None
    is_public: bool = True
    status: ClassStatus = ClassStatus.SCHEDULED
    current_bookings: int = 0  # only maintained for non-recurring classes
    id: str | None = None
    created_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return self.schedule.is_recurring

    def starts_at(self, on: date) -> datetime:
        """Start datetime of the occurrence on the given date."""
        return datetime.combine(on, self.start_time)

    def to_dict(self) -> dict:
        """Convert to dictionary for storage and API output."""
        data = {
            "id": self.id,
            "title": self.title,
            "category": self.category.value,
            "capacity": self.capacity,
            "is_recurring": self.is_recurring,
            "start_time": self.start_time.strftime("%H:%M"),
            "duration_minutes": self.duration_minutes,
            "coach_id": self.coach_id,
            "is_public": self.is_public,
            "status": self.status.value,
            "current_bookings": self.current_bookings,
        }
        if isinstance(self.schedule, RecurringSchedule):
            data["recurrence"] = {
                "weekdays": sorted(self.schedule.weekdays),
                "start_date": self.schedule.start_date.isoformat(),
                "end_date": self.schedule.end_date.isoformat(),
            }
            data["date"] = None
        else:
            data["recurrence"] = None
            data["date"] = self.schedule.date.isoformat()
        return data


@dataclass(frozen=True)
class Occurrence:
    """One concrete calendar instance of a class."""

    class_id: str
    date: date
    starts_at: datetime
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "date": self.date.isoformat(),
            "starts_at": self.starts_at.isoformat(),
            "cancelled": self.cancelled,
        }


@dataclass
class CancelledOccurrence:
    """One withdrawn instance of a recurring class."""

    class_id: str
    occurrence_date: date
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "occurrence_date": self.occurrence_date.isoformat(),
        }
