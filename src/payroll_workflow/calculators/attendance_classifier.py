"""Attendance classification from check-in/check-out times."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from payroll_workflow.calculators.types import (
    ZERO,
    AttendancePolicy,
    AttendanceStatus,
    to_money,
)
from payroll_workflow.errors import (
    DuplicateCheckIn,
    DuplicateCheckOut,
    InvalidDateRange,
    NoActiveCheckIn,
)

SECONDS_PER_HOUR = Decimal(3600)


@dataclass(frozen=True)
class Arrival:
    """Classification made when an employee checks in."""

    status: AttendanceStatus
    late_minutes: int


@dataclass(frozen=True)
class ClassifiedDay:
    """Full classification of a day from its (possibly corrected) times."""

    status: AttendanceStatus
    arrival_status: AttendanceStatus | None
    late_minutes: int
    total_hours: Decimal


class AttendanceClassifier:
    """Classifies attendance days against the configured thresholds.

    - check-in at or before ``on_time_cutoff`` -> present
    - check-in after it, up to ``absence_cutoff`` -> late
    - check-in after ``absence_cutoff``, or no check-in by then -> absent
    - once checked out -> checked-out, with elapsed wall time as hours
    """

    def __init__(self, policy: AttendancePolicy | None = None):
        self.policy = policy or AttendancePolicy()

    def classify_arrival(self, check_in_at: datetime) -> Arrival:
        arrival = check_in_at.time()
        if arrival <= self.policy.on_time_cutoff:
            return Arrival(AttendanceStatus.PRESENT, 0)
        late_minutes = self._minutes_between(self.policy.on_time_cutoff, arrival)
        if arrival <= self.policy.absence_cutoff:
            return Arrival(AttendanceStatus.LATE, late_minutes)
        return Arrival(AttendanceStatus.ABSENT, late_minutes)

    def classify_missing(self, work_date: date, now: datetime) -> AttendanceStatus | None:
        """Status for a day with no check-in, or None while still undecided."""
        cutoff = datetime.combine(work_date, self.policy.absence_cutoff)
        if now > cutoff:
            return AttendanceStatus.ABSENT
        return None

    def check_in(
        self,
        work_date: date,
        existing_check_in: datetime | None,
        current_status: str | None,
        at: datetime,
    ) -> Arrival:
        """Validate and classify a check-in."""
        if existing_check_in is not None:
            raise DuplicateCheckIn(work_date, current_status or "")
        return self.classify_arrival(at)

    def check_out(
        self,
        work_date: date,
        check_in_at: datetime | None,
        existing_check_out: datetime | None,
        current_status: str | None,
        at: datetime,
    ) -> Decimal:
        """Validate a check-out and return the elapsed hours."""
        if check_in_at is None:
            raise NoActiveCheckIn(work_date, current_status)
        if existing_check_out is not None:
            raise DuplicateCheckOut(work_date, current_status or "")
        return self.total_hours(check_in_at, at)

    def classify_day(
        self,
        check_in_at: datetime | None,
        check_out_at: datetime | None,
    ) -> ClassifiedDay:
        """Classify a day from both times, as after a time correction."""
        if check_in_at is None:
            return ClassifiedDay(AttendanceStatus.ABSENT, AttendanceStatus.ABSENT, 0, ZERO)

        arrival = self.classify_arrival(check_in_at)
        if check_out_at is None:
            return ClassifiedDay(arrival.status, arrival.status, arrival.late_minutes, ZERO)

        return ClassifiedDay(
            AttendanceStatus.CHECKED_OUT,
            arrival.status,
            arrival.late_minutes,
            self.total_hours(check_in_at, check_out_at),
        )

    def total_hours(self, check_in_at: datetime, check_out_at: datetime) -> Decimal:
        if check_out_at < check_in_at:
            raise InvalidDateRange(
                check_in_at, check_out_at, "Check-out cannot be earlier than check-in"
            )
        seconds = Decimal(int((check_out_at - check_in_at).total_seconds()))
        return to_money(seconds / SECONDS_PER_HOUR)

    def night_hours(self, check_in_at: datetime, check_out_at: datetime) -> Decimal:
        """Hours of the shift overlapping the night window."""
        if check_out_at <= check_in_at:
            return ZERO

        start, end = self.policy.night_start, self.policy.night_end
        total = timedelta()
        day = check_in_at.date() - timedelta(days=1)
        while day <= check_out_at.date():
            window_start = datetime.combine(day, start)
            if end <= start:
                window_end = datetime.combine(day + timedelta(days=1), end)
            else:
                window_end = datetime.combine(day, end)
            overlap = min(check_out_at, window_end) - max(check_in_at, window_start)
            if overlap > timedelta():
                total += overlap
            day += timedelta(days=1)

        return to_money(Decimal(int(total.total_seconds())) / SECONDS_PER_HOUR)

    @staticmethod
    def _minutes_between(earlier: time, later: time) -> int:
        anchor = date(2000, 1, 1)
        delta = datetime.combine(anchor, later) - datetime.combine(anchor, earlier)
        return max(0, int(delta.total_seconds() // 60))
