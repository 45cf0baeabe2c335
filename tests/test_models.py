"""Tests for data models."""

from datetime import date, time

import pytest

from studio_booking.errors import (
    ClassFull,
    MaxOverdraftReached,
    NotFoundError,
    OverdraftWarning,
    TransientStoreError,
    UserNotFound,
)
from studio_booking.models.attendance import AttendanceStatus
from studio_booking.models.booking import BookingStatus, RosterSyncResult
from studio_booking.models.classes import (
    ClassCategory,
    ClassDefinition,
    RecurringSchedule,
    SingleSchedule,
)
from studio_booking.models.package import Package, PackageTemplate


class TestClassDefinition:
    """Tests for ClassDefinition model."""

    def test_recurring_to_dict(self):
        """Test recurring schedule serialization."""
        class_def = ClassDefinition(
            title="Reformer",
            category=ClassCategory.GROUP,
            capacity=6,
            schedule=RecurringSchedule(
                weekdays=frozenset({4, 0}),
                start_date=date(2026, 11, 1),
                end_date=date(2026, 12, 31),
            ),
            start_time=time(18, 30),
        )
        data = class_def.to_dict()

        assert data["is_recurring"] is True
        assert data["date"] is None
        assert data["recurrence"]["weekdays"] == [0, 4]
        assert data["start_time"] == "18:30"

    def test_single_date_serialization(self):
        """Test single-date serialization."""
        class_def = ClassDefinition(
            title="Private session",
            category=ClassCategory.PRIVATE,
            capacity=1,
            schedule=SingleSchedule(date=date(2026, 11, 3)),
            start_time=time(7, 15),
        )
        data = class_def.to_dict()

        assert not class_def.is_recurring
        assert data["date"] == "2026-11-03"
        assert data["recurrence"] is None
        assert class_def.starts_at(date(2026, 11, 3)).hour == 7

    def test_weekday_names(self):
        schedule = RecurringSchedule(
            weekdays=frozenset({2, 0, 6}),
            start_date=date(2026, 1, 1),
            end_date=date(2026, 2, 1),
        )
        assert schedule.weekday_names() == ["mon", "wed", "sun"]


class TestAttendanceStatus:
    """Tests for attendance status parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("present", AttendanceStatus.PRESENT),
            ("attended", AttendanceStatus.PRESENT),
            ("Cancelled", AttendanceStatus.LATE_CANCEL),
            ("late_cancellation", AttendanceStatus.LATE_CANCEL),
            (" no_show ", AttendanceStatus.NO_SHOW),
        ],
    )
    def test_parse_accepts_aliases(self, raw, expected):
        assert AttendanceStatus.parse(raw) == expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            AttendanceStatus.parse("sleeping")

    def test_booking_status_mapping(self):
        assert AttendanceStatus.PRESENT.booking_status() == BookingStatus.ATTENDED
        assert AttendanceStatus.ABSENT.booking_status() == BookingStatus.NO_SHOW
        assert AttendanceStatus.NO_SHOW.booking_status() == BookingStatus.NO_SHOW
        assert AttendanceStatus.EXCUSED.booking_status() is None
        assert AttendanceStatus.LATE_CANCEL.booking_status() is None


class TestPackageModels:
    """Tests for package and template models."""

    def test_template_live_window(self):
        template = PackageTemplate(
            name="Autumn 8",
            category=ClassCategory.GROUP,
            classes_included=8,
            live_from=date(2026, 9, 1),
            live_until=date(2026, 11, 30),
        )

        assert template.is_live(date(2026, 10, 15))
        assert not template.is_live(date(2026, 8, 31))
        assert not template.is_live(date(2026, 12, 1))

    def test_inactive_template_is_never_live(self):
        template = PackageTemplate(
            name="Old", category=ClassCategory.GROUP, classes_included=4, is_active=False
        )
        assert not template.is_live(date(2026, 10, 15))

    def test_package_lapse(self):
        package = Package(
            user_id="u1",
            category=ClassCategory.PRIVATE,
            name="Private 4",
            classes_included=4,
            start_date=date(2026, 10, 1),
            end_date=date(2026, 10, 31),
        )

        assert package.is_active
        assert not package.has_lapsed(date(2026, 10, 31))
        assert package.has_lapsed(date(2026, 11, 1))


class TestErrors:
    """Tests for error payloads."""

    def test_overdraft_warning_payload(self):
        error = OverdraftWarning(current_balance=0, would_be_balance=-1, category="group")
        data = error.to_dict()

        assert data["success"] is False
        assert data["code"] == "OVERDRAFT_WARNING"
        assert data["details"]["current_balance"] == 0
        assert data["details"]["would_be_balance"] == -1
        assert error.http_status == 409

    def test_max_overdraft_payload(self):
        error = MaxOverdraftReached(current_balance=-2, would_be_balance=-3, max_overdraft=-2)
        assert error.to_dict()["code"] == "MAX_OVERDRAFT_REACHED"
        assert error.details["max_overdraft"] == -2

    def test_default_code_is_class_name(self):
        assert ClassFull("full").code == "ClassFull"

    def test_not_found_hierarchy(self):
        error = UserNotFound("u9")
        assert isinstance(error, NotFoundError)
        assert error.http_status == 404
        assert error.details == {"user_id": "u9"}

    def test_transient_is_retryable_status(self):
        assert TransientStoreError("busy").http_status == 503


def test_roster_result_to_dict():
    result = RosterSyncResult(added=["u3"], removed=["u1"], refunded=["u1"])
    data = result.to_dict()

    assert data["success"] is True
    assert data["added"] == ["u3"]
    assert data["uncharged"] == []
