"""Services for studio-booking."""

from .attendance import AttendanceService
from .bookings import LATE_CANCEL_WINDOW_MINUTES, BookingService
from .credits import CreditService
from .notifications import LoggingNotifier, Notifier, notify_safely
from .occurrences import is_valid_occurrence, iter_occurrences
from .packages import PackageService
from .private_requests import PrivateRequestService
from .scheduling import ClassService
from .users import UserService

__all__ = [
    "AttendanceService",
    "BookingService",
    "ClassService",
    "CreditService",
    "is_valid_occurrence",
    "iter_occurrences",
    "LATE_CANCEL_WINDOW_MINUTES",
    "LoggingNotifier",
    "Notifier",
    "notify_safely",
    "PackageService",
    "PrivateRequestService",
    "UserService",
]
