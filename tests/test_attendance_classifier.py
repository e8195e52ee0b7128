"""Tests for attendance classification."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from payroll_workflow.calculators.attendance_classifier import AttendanceClassifier
from payroll_workflow.calculators.types import AttendancePolicy, AttendanceStatus
from payroll_workflow.errors import (
    DuplicateCheckIn,
    DuplicateCheckOut,
    InvalidDateRange,
    NoActiveCheckIn,
)

DAY = date(2024, 3, 4)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


class TestArrival:
    """Check-in classification against the cutoffs."""

    def test_on_or_before_cutoff_is_present(self):
        classifier = AttendanceClassifier()
        assert classifier.classify_arrival(at(8, 59)).status == AttendanceStatus.PRESENT
        assert classifier.classify_arrival(at(9, 0)).status == AttendanceStatus.PRESENT
        assert classifier.classify_arrival(at(9, 0)).late_minutes == 0

    def test_after_cutoff_is_late_with_minutes(self):
        arrival = AttendanceClassifier().classify_arrival(at(9, 15))
        assert arrival.status == AttendanceStatus.LATE
        assert arrival.late_minutes == 15

    def test_absence_cutoff_is_still_late(self):
        arrival = AttendanceClassifier().classify_arrival(at(13, 30))
        assert arrival.status == AttendanceStatus.LATE
        assert arrival.late_minutes == 270

    def test_after_absence_cutoff_is_absent(self):
        arrival = AttendanceClassifier().classify_arrival(at(13, 31))
        assert arrival.status == AttendanceStatus.ABSENT

    def test_custom_policy(self):
        classifier = AttendanceClassifier(
            AttendancePolicy(on_time_cutoff=time(8, 0), absence_cutoff=time(10, 0))
        )
        assert classifier.classify_arrival(at(8, 30)).status == AttendanceStatus.LATE
        assert classifier.classify_arrival(at(10, 1)).status == AttendanceStatus.ABSENT


class TestMissingCheckIn:
    """Days with no check-in."""

    def test_undecided_before_cutoff(self):
        assert AttendanceClassifier().classify_missing(DAY, at(12, 0)) is None

    def test_absent_after_cutoff(self):
        assert AttendanceClassifier().classify_missing(DAY, at(13, 31)) == AttendanceStatus.ABSENT


class TestCheckInOut:
    """Check-in / check-out sequencing."""

    def test_duplicate_check_in_rejected(self):
        with pytest.raises(DuplicateCheckIn) as exc_info:
            AttendanceClassifier().check_in(DAY, at(8, 0), "present", at(8, 5))
        assert exc_info.value.current_state == "present"

    def test_check_out_without_check_in(self):
        with pytest.raises(NoActiveCheckIn):
            AttendanceClassifier().check_out(DAY, None, None, None, at(17, 0))

    def test_duplicate_check_out_rejected(self):
        with pytest.raises(DuplicateCheckOut):
            AttendanceClassifier().check_out(DAY, at(8, 0), at(17, 0), "checked-out", at(17, 5))

    def test_check_out_returns_hours(self):
        hours = AttendanceClassifier().check_out(DAY, at(8, 0), None, "present", at(17, 30))
        assert hours == Decimal("9.50")

    def test_check_out_before_check_in(self):
        with pytest.raises(InvalidDateRange):
            AttendanceClassifier().total_hours(at(9, 0), at(8, 0))


class TestClassifyDay:
    """Whole-day classification used after time corrections."""

    def test_complete_day(self):
        day = AttendanceClassifier().classify_day(at(9, 30), at(18, 0))
        assert day.status == AttendanceStatus.CHECKED_OUT
        assert day.arrival_status == AttendanceStatus.LATE
        assert day.late_minutes == 30
        assert day.total_hours == Decimal("8.50")

    def test_check_in_only(self):
        day = AttendanceClassifier().classify_day(at(8, 0), None)
        assert day.status == AttendanceStatus.PRESENT
        assert day.total_hours == Decimal("0")

    def test_no_check_in(self):
        day = AttendanceClassifier().classify_day(None, None)
        assert day.status == AttendanceStatus.ABSENT


class TestNightHours:
    """Overlap with the 22:00-06:00 window."""

    def test_day_shift_has_none(self):
        assert AttendanceClassifier().night_hours(at(8, 0), at(17, 0)) == Decimal("0.00")

    def test_shift_across_midnight(self):
        hours = AttendanceClassifier().night_hours(at(20, 0), at(2, 0, date(2024, 3, 5)))
        assert hours == Decimal("4.00")

    def test_early_morning(self):
        assert AttendanceClassifier().night_hours(at(4, 0), at(10, 0)) == Decimal("2.00")
