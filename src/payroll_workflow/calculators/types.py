"""Type definitions for the computation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CENTS = Decimal("0.01")
RATE_PRECISION = Decimal("0.0001")
ZERO = Decimal("0")


def to_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_rate(amount: Decimal) -> Decimal:
    """Round to internal rate precision."""
    return amount.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


class PayBasis(str, Enum):
    """How an employee's base pay is expressed."""

    MONTHLY = "monthly"
    DAILY = "daily"


class AttendanceStatus(str, Enum):
    """Per-day attendance status."""

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    CHECKED_OUT = "checked-out"


class HolidayType(str, Enum):
    """Holiday flags on a payroll period."""

    REGULAR = "regular_holiday"
    SPECIAL = "special_holiday"


class PayrollCycle(str, Enum):
    """Payroll period cycle."""

    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi_monthly"
    BI_WEEKLY = "bi_weekly"

    @property
    def periods_per_year(self) -> int:
        return {
            PayrollCycle.MONTHLY: 12,
            PayrollCycle.SEMI_MONTHLY: 24,
            PayrollCycle.BI_WEEKLY: 26,
        }[self]

    @property
    def monthly_fraction(self) -> Decimal:
        """Share of a monthly amount that falls into one period."""
        return Decimal(12) / Decimal(self.periods_per_year)


@dataclass(frozen=True)
class AttendancePolicy:
    """Attendance thresholds.

    The late cutoff and the absence cutoff are the same instant: a check-in
    after ``absence_cutoff`` is absent, anything between the two cutoffs is
    late.
    """

    on_time_cutoff: time = time(9, 0)
    absence_cutoff: time = time(13, 30)
    night_start: time = time(22, 0)
    night_end: time = time(6, 0)


@dataclass(frozen=True)
class PremiumMultipliers:
    """Multipliers applied to the hourly rate for premium hours."""

    overtime: Decimal = Decimal("1.25")
    night_differential: Decimal = Decimal("1.10")
    special_holiday: Decimal = Decimal("1.30")
    regular_holiday: Decimal = Decimal("2.00")

    def for_holiday(self, holiday_type: HolidayType | str) -> Decimal:
        if HolidayType(holiday_type) == HolidayType.REGULAR:
            return self.regular_holiday
        return self.special_holiday


@dataclass(frozen=True)
class EmployeePayProfile:
    """Roster fields the engine needs for one employee."""

    employee_id: UUID
    pay_basis: PayBasis
    monthly_rate: Decimal | None = None
    daily_rate: Decimal | None = None
    hourly_rate: Decimal | None = None
    work_hours_per_day: Decimal | None = None
    meal_allowance: Decimal = ZERO
    transport_allowance: Decimal = ZERO
    other_allowance: Decimal = ZERO
    other_deductions: Decimal = ZERO
    is_tax_exempt: bool = False


@dataclass(frozen=True)
class EmployeeRates:
    """Resolved rates for one employee."""

    pay_basis: PayBasis
    monthly_rate: Decimal | None
    daily_rate: Decimal
    hourly_rate: Decimal
    hours_per_day: Decimal


@dataclass(frozen=True)
class AttendanceEntry:
    """A classified attendance day as read by the engine."""

    work_date: date
    status: AttendanceStatus
    check_in_at: datetime | None = None
    check_out_at: datetime | None = None
    arrival_status: AttendanceStatus | None = None
    late_minutes: int = 0
    total_hours: Decimal = ZERO

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "work_date": self.work_date.isoformat(),
            "status": AttendanceStatus(self.status).value,
            "arrival_status": AttendanceStatus(self.arrival_status).value if self.arrival_status else None,
            "check_in_at": self.check_in_at.isoformat() if self.check_in_at else None,
            "check_out_at": self.check_out_at.isoformat() if self.check_out_at else None,
            "late_minutes": self.late_minutes,
            "total_hours": str(self.total_hours),
        }


@dataclass(frozen=True)
class LeaveSpan:
    """An approved leave covering ``start_date``..``end_date`` inclusive."""

    start_date: date
    end_date: date

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class PeriodWindow:
    """The period facts a single computation depends on."""

    period_id: UUID
    cycle: PayrollCycle
    start_date: date
    end_date: date
    cutoff_start: date
    cutoff_end: date
    holidays: dict[date, HolidayType] = field(default_factory=dict)


@dataclass(frozen=True)
class TaxSettingsSnapshot:
    """Immutable view of the tax settings singleton."""

    minimum_taxable_income: Decimal = Decimal("250000")
    tax_exemption_enabled: bool = True
    auto_apply_exemption: bool = True


@dataclass(frozen=True)
class TaxBracket:
    """Bracket of the annual withholding schedule.

    Tax for an amount inside the bracket is
    ``flat_amount + (amount - min_amount) * rate``.
    """

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.15 for 15%
    flat_amount: Decimal = ZERO


@dataclass(frozen=True)
class ContributionBracket:
    """Statutory contribution bracket keyed by gross pay."""

    min_amount: Decimal
    max_amount: Decimal | None
    employee_share: Decimal = ZERO  # Fixed amount
    rate: Decimal = ZERO  # Applied to gross on top of the fixed amount


@dataclass(frozen=True)
class StatutoryContributions:
    sss: Decimal = ZERO
    philhealth: Decimal = ZERO
    pagibig: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.sss + self.philhealth + self.pagibig


@dataclass
class AttendanceSummary:
    """Day and hour counts aggregated over the cutoff window."""

    scheduled_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    leave_days: int = 0
    late_days: int = 0
    regular_hours: Decimal = ZERO
    late_hours: Decimal = ZERO
    undertime_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    night_hours: Decimal = ZERO
    holiday_hours: dict[HolidayType, Decimal] = field(default_factory=dict)


@dataclass
class Earnings:
    basic_salary: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    night_differential_pay: Decimal = ZERO
    holiday_pay: Decimal = ZERO
    paid_leave_pay: Decimal = ZERO
    allowances: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (
            self.basic_salary
            + self.overtime_pay
            + self.night_differential_pay
            + self.holiday_pay
            + self.paid_leave_pay
            + self.allowances
        )


@dataclass
class Deductions:
    late_deduction: Decimal = ZERO
    undertime_deduction: Decimal = ZERO
    absence_deduction: Decimal = ZERO
    sss_contribution: Decimal = ZERO
    philhealth_contribution: Decimal = ZERO
    pagibig_contribution: Decimal = ZERO
    withholding_tax: Decimal = ZERO
    other_deductions: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (
            self.late_deduction
            + self.undertime_deduction
            + self.absence_deduction
            + self.sss_contribution
            + self.philhealth_contribution
            + self.pagibig_contribution
            + self.withholding_tax
            + self.other_deductions
        )


@dataclass
class PayrollComputation:
    """Result of computing one employee for one period."""

    employee_id: UUID
    period_id: UUID
    calculation_id: UUID
    rates: EmployeeRates
    attendance: AttendanceSummary
    earnings: Earnings
    deductions: Deductions
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    inputs_fingerprint: str

    @property
    def has_deficit(self) -> bool:
        return self.net_pay < 0
