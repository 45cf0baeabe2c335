"""Pytest configuration and fixtures."""

import tempfile
from datetime import date, datetime, time
from pathlib import Path

import pytest

from studio_booking.config import reset_settings
from studio_booking.db import init_db
from studio_booking.models.classes import (
    ClassCategory,
    RecurringSchedule,
    SingleSchedule,
)
from studio_booking.models.user import UserRole
from studio_booking.services.attendance import AttendanceService
from studio_booking.services.bookings import BookingService
from studio_booking.services.credits import CreditService
from studio_booking.services.packages import PackageService
from studio_booking.services.scheduling import ClassService
from studio_booking.services.users import UserService

# Monday 2 November 2026, 08:00
FIXED_NOW = datetime(2026, 11, 2, 8, 0)
TODAY = FIXED_NOW.date()


class RecordingNotifier:
    """Notifier that keeps what it was asked to send."""

    def __init__(self):
        self.sent = []

    async def send(self, kind, user_id, subject, payload):
        self.sent.append((kind, user_id, subject, payload))


class FailingNotifier:
    async def send(self, kind, user_id, subject, payload):
        raise ConnectionError("mail server unreachable")


@pytest.fixture(autouse=True)
def fresh_settings():
    """Make every test re-read the environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
async def db_path(temp_db_path):
    """Temporary database with the schema created."""
    await init_db(temp_db_path)
    return temp_db_path


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def credit_service(db_path):
    return CreditService(db_path)


@pytest.fixture
def class_service(db_path):
    return ClassService(db_path)


@pytest.fixture
def booking_service(db_path, notifier):
    return BookingService(db_path, notifier=notifier, clock=lambda: FIXED_NOW)


@pytest.fixture
def package_service(db_path, notifier):
    return PackageService(
        db_path, notifier=notifier, today=lambda: TODAY, auto_renew_behavior="override"
    )


@pytest.fixture
def attendance_service(db_path):
    return AttendanceService(db_path)


@pytest.fixture
async def users(db_path):
    """Three clients and a coach, keyed by first name."""
    service = UserService(db_path)
    created = {}
    for name in ("alice", "bob", "carol"):
        created[name] = await service.create(name.title(), f"{name}@example.com")
    created["coach"] = await service.create("Coach", "coach@example.com", UserRole.COACH)
    return created


@pytest.fixture
async def single_class(class_service):
    """Group class on Monday 2 November 2026 at 09:00, capacity 2."""
    return await class_service.create_class(
        title="Morning Flow",
        category=ClassCategory.GROUP,
        capacity=2,
        schedule=SingleSchedule(date=TODAY),
        start_time=time(9, 0),
    )


@pytest.fixture
async def recurring_class(class_service):
    """Mon/Wed group class through November 2026 at 18:00, capacity 1."""
    return await class_service.create_class(
        title="Evening Reformer",
        category=ClassCategory.GROUP,
        capacity=1,
        schedule=RecurringSchedule(
            weekdays=frozenset({0, 2}),
            start_date=date(2026, 11, 1),
            end_date=date(2026, 11, 30),
        ),
        start_time=time(18, 0),
    )
