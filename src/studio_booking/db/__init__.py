"""Database layer for studio-booking."""

from .engine import atomic, connect, get_db_path, init_db, transaction
from .repositories import (
    AttendanceRepository,
    BookingRepository,
    CancelledOccurrenceRepository,
    ClassRepository,
    CreditAccountRepository,
    NotificationLogRepository,
    PackageBundleRepository,
    PackageRepository,
    PackageTemplateRepository,
    PrivateClassRequestRepository,
    UserRepository,
)

__all__ = [
    "atomic",
    "AttendanceRepository",
    "BookingRepository",
    "CancelledOccurrenceRepository",
    "ClassRepository",
    "connect",
    "CreditAccountRepository",
    "get_db_path",
    "init_db",
    "NotificationLogRepository",
    "PackageBundleRepository",
    "PackageRepository",
    "PackageTemplateRepository",
    "PrivateClassRequestRepository",
    "transaction",
    "UserRepository",
]
