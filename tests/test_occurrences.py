"""Tests for occurrence resolution."""

from datetime import date, time

from studio_booking.models.classes import (
    ClassCategory,
    ClassDefinition,
    RecurringSchedule,
    SingleSchedule,
)
from studio_booking.services.occurrences import is_valid_occurrence, iter_occurrences


def _recurring(weekdays=frozenset({0, 2}), start=date(2026, 11, 1), end=date(2026, 11, 30)):
    return ClassDefinition(
        id="c1",
        title="Reformer",
        category=ClassCategory.GROUP,
        capacity=4,
        schedule=RecurringSchedule(weekdays=weekdays, start_date=start, end_date=end),
        start_time=time(18, 0),
    )


def _single(on=date(2026, 11, 3)):
    return ClassDefinition(
        id="c2",
        title="Private",
        category=ClassCategory.PRIVATE,
        capacity=1,
        schedule=SingleSchedule(date=on),
        start_time=time(7, 0),
    )


class TestIsValidOccurrence:
    """Tests for is_valid_occurrence."""

    def test_single_class_only_on_its_date(self):
        class_def = _single()
        assert is_valid_occurrence(class_def, date(2026, 11, 3))
        assert not is_valid_occurrence(class_def, date(2026, 11, 4))

    def test_recurring_matching_weekday(self):
        # 2 Nov 2026 is a Monday, 4 Nov a Wednesday
        class_def = _recurring()
        assert is_valid_occurrence(class_def, date(2026, 11, 2))
        assert is_valid_occurrence(class_def, date(2026, 11, 4))

    def test_recurring_wrong_weekday(self):
        assert not is_valid_occurrence(_recurring(), date(2026, 11, 3))

    def test_recurring_window_bounds_inclusive(self):
        class_def = _recurring(start=date(2026, 11, 2), end=date(2026, 11, 30))
        assert is_valid_occurrence(class_def, date(2026, 11, 2))
        assert is_valid_occurrence(class_def, date(2026, 11, 30))
        assert not is_valid_occurrence(class_def, date(2026, 10, 26))
        assert not is_valid_occurrence(class_def, date(2026, 12, 2))

    def test_cancelled_date_is_not_valid(self):
        class_def = _recurring()
        cancelled = {date(2026, 11, 9)}
        assert not is_valid_occurrence(class_def, date(2026, 11, 9), cancelled)
        assert is_valid_occurrence(class_def, date(2026, 11, 16), cancelled)


class TestIterOccurrences:
    """Tests for iter_occurrences."""

    def test_expands_recurring_within_window(self):
        occurrences = list(
            iter_occurrences(_recurring(), date(2026, 11, 1), date(2026, 11, 8))
        )

        assert [o.date for o in occurrences] == [date(2026, 11, 2), date(2026, 11, 4)]
        assert occurrences[0].starts_at.hour == 18
        assert all(o.class_id == "c1" for o in occurrences)

    def test_cancelled_dates_are_flagged(self):
        occurrences = list(
            iter_occurrences(
                _recurring(),
                date(2026, 11, 1),
                date(2026, 11, 8),
                cancelled_dates={date(2026, 11, 4)},
            )
        )

        assert [o.cancelled for o in occurrences] == [False, True]

    def test_clipped_to_schedule_window(self):
        class_def = _recurring(start=date(2026, 11, 10), end=date(2026, 11, 12))
        occurrences = list(iter_occurrences(class_def, date(2026, 11, 1), date(2026, 11, 30)))

        assert [o.date for o in occurrences] == [date(2026, 11, 11)]

    def test_single_class_inside_and_outside_window(self):
        class_def = _single()
        assert len(list(iter_occurrences(class_def, date(2026, 11, 1), date(2026, 11, 5)))) == 1
        assert list(iter_occurrences(class_def, date(2026, 11, 4), date(2026, 11, 5))) == []
