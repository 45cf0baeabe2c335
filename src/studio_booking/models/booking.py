"""Booking models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"

    @property
    def is_active(self) -> bool:
        return self is not BookingStatus.CANCELLED


@dataclass
class Booking:
    """A user's reservation for one occurrence of a class.

    ``occurrence_date`` is only set for recurring classes.
    """

    class_id: str
    user_id: str
    occurrence_date: date | None = None
    status: BookingStatus = BookingStatus.CONFIRMED
    credit_deducted: bool = False
    late_cancellation: bool = False
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "class_id": self.class_id,
            "user_id": self.user_id,
            "occurrence_date": (
                self.occurrence_date.isoformat() if self.occurrence_date else None
            ),
            "status": self.status.value,
            "credit_deducted": self.credit_deducted,
            "late_cancellation": self.late_cancellation,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Reservation:
    """Result of a successful reserve: the booking and post-deduction balance."""

    booking: Booking
    balance: int

    def to_dict(self) -> dict:
        return {
            "success": True,
            "booking": self.booking.to_dict(),
            "balance": self.balance,
        }


@dataclass
class CancellationResult:
    refunded: bool
    late_cancellation: bool

    def to_dict(self) -> dict:
        return {
            "success": True,
            "refunded": self.refunded,
            "late_cancellation": self.late_cancellation,
        }


@dataclass
class RosterSyncResult:
    """Outcome of reconciling an occurrence roster."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    refunded: list[str] = field(default_factory=list)
    uncharged: list[str] = field(default_factory=list)  # added without a deduction
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "added": self.added,
            "removed": self.removed,
            "refunded": self.refunded,
            "uncharged": self.uncharged,
            "errors": self.errors,
        }


@dataclass
class ReinstateResult:
    """Outcome of putting a cancelled class back on the schedule."""

    restored: list[str] = field(default_factory=list)
    charged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # restored without the charge

    def to_dict(self) -> dict:
        return {
            "success": True,
            "restored": self.restored,
            "charged": self.charged,
            "skipped": self.skipped,
        }
