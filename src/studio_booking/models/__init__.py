"""Data models for studio-booking."""

from .attendance import AttendanceRecord, AttendanceStatus
from .booking import (
    Booking,
    BookingStatus,
    CancellationResult,
    ReinstateResult,
    Reservation,
    RosterSyncResult,
)
from .classes import (
    CancelledOccurrence,
    ClassCategory,
    ClassDefinition,
    ClassStatus,
    Occurrence,
    RecurringSchedule,
    Schedule,
    SingleSchedule,
)
from .credit import MAX_OVERDRAFT, CreditAccount
from .package import Package, PackageBundle, PackageStatus, PackageTemplate
from .private_request import PrivateClassRequest, RequestStatus
from .user import User, UserRole

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "Booking",
    "BookingStatus",
    "CancellationResult",
    "CancelledOccurrence",
    "ClassCategory",
    "ClassDefinition",
    "ClassStatus",
    "CreditAccount",
    "MAX_OVERDRAFT",
    "Occurrence",
    "Package",
    "PackageBundle",
    "PackageStatus",
    "PackageTemplate",
    "PrivateClassRequest",
    "RecurringSchedule",
    "ReinstateResult",
    "RequestStatus",
    "Reservation",
    "RosterSyncResult",
    "Schedule",
    "SingleSchedule",
    "User",
    "UserRole",
]
