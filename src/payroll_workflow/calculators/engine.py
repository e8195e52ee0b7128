"""Payroll computation engine - per-employee, per-period pipeline."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from payroll_workflow.calculators.attendance_classifier import AttendanceClassifier
from payroll_workflow.calculators.calendar import WorkCalendar
from payroll_workflow.calculators.contributions import ContributionTable
from payroll_workflow.calculators.rate_resolver import RateResolver
from payroll_workflow.calculators.tax_calculator import TaxCalculator
from payroll_workflow.calculators.types import (
    ZERO,
    AttendanceEntry,
    AttendanceStatus,
    AttendanceSummary,
    Deductions,
    EmployeePayProfile,
    EmployeeRates,
    Earnings,
    LeaveSpan,
    PayBasis,
    PayrollComputation,
    PeriodWindow,
    PremiumMultipliers,
    TaxSettingsSnapshot,
    to_money,
    to_rate,
)
from payroll_workflow.errors import InvariantViolation

if TYPE_CHECKING:
    from payroll_workflow.config import Settings

MINUTES_PER_HOUR = Decimal(60)


@dataclass(frozen=True)
class ComputationInputs:
    """Everything one computation reads. The engine does no I/O."""

    profile: EmployeePayProfile
    window: PeriodWindow
    attendance: Sequence[AttendanceEntry]
    tax_settings: TaxSettingsSnapshot
    leaves: Sequence[LeaveSpan] = field(default_factory=tuple)
    extra_deductions: Decimal = ZERO


class PayrollComputationEngine:
    """Computes one PayrollRecord's figures.

    Calculation pipeline (stable order per employee):
    1) Resolve daily/hourly rates from the pay basis
    2) Walk the scheduled days of the cutoff window: leave, absence,
       worked, late and undertime hours; then unscheduled days worked
    3) Price earnings and attendance deductions
    4) Gross = sum of earnings
    5) Statutory contributions keyed by gross
    6) Withholding tax
    7) Total deductions and net (never clamped)
    8) Verify totals
    """

    def __init__(
        self,
        rate_resolver: RateResolver | None = None,
        tax_calculator: TaxCalculator | None = None,
        contributions: ContributionTable | None = None,
        classifier: AttendanceClassifier | None = None,
        multipliers: PremiumMultipliers | None = None,
        calendar: WorkCalendar | None = None,
        engine_version: str = "1.0.0",
    ):
        self.rate_resolver = rate_resolver or RateResolver()
        self.tax_calculator = tax_calculator or TaxCalculator()
        self.contributions = contributions or ContributionTable.defaults()
        self.classifier = classifier or AttendanceClassifier()
        self.multipliers = multipliers or PremiumMultipliers()
        self.calendar = calendar or WorkCalendar()
        self.engine_version = engine_version

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        contributions: ContributionTable | None = None,
        tax_calculator: TaxCalculator | None = None,
    ) -> PayrollComputationEngine:
        return cls(
            rate_resolver=RateResolver(
                settings.working_days_per_month, settings.default_work_hours_per_day
            ),
            tax_calculator=tax_calculator,
            contributions=contributions,
            classifier=AttendanceClassifier(settings.attendance_policy()),
            multipliers=settings.premium_multipliers(),
            calendar=settings.payroll_calendar(),
            engine_version=settings.engine_version,
        )

    def compute(self, inputs: ComputationInputs) -> PayrollComputation:
        """Compute earnings, deductions and net pay for one employee."""
        profile, window = inputs.profile, inputs.window

        # 1) Rates
        rates = self.rate_resolver.resolve(profile)

        # 2) Attendance
        summary = self.summarize_attendance(rates, window, inputs.attendance, inputs.leaves)

        # 3) Earnings
        earnings = self._price_earnings(profile, rates, window, summary)

        # 4) Gross
        gross_pay = earnings.total

        # 5) Contributions
        contributions = self.contributions(gross_pay)

        # 6) Withholding
        withholding = self.tax_calculator.calculate_withholding(
            gross_pay,
            window.cycle,
            inputs.tax_settings,
            employee_exempt=profile.is_tax_exempt,
        )

        # 7) Deductions and net
        fraction = window.cycle.monthly_fraction
        deductions = Deductions(
            late_deduction=to_money(summary.late_hours * rates.hourly_rate),
            undertime_deduction=to_money(summary.undertime_hours * rates.hourly_rate),
            absence_deduction=to_money(rates.daily_rate * summary.absent_days),
            sss_contribution=contributions.sss,
            philhealth_contribution=contributions.philhealth,
            pagibig_contribution=contributions.pagibig,
            withholding_tax=withholding,
            other_deductions=to_money(profile.other_deductions * fraction + inputs.extra_deductions),
        )
        total_deductions = deductions.total
        net_pay = gross_pay - total_deductions

        # 8) Verify
        self._verify_totals(earnings, deductions, gross_pay, total_deductions, net_pay)

        inputs_fingerprint = self._compute_inputs_fingerprint(inputs)
        rules_fingerprint = self._compute_rules_fingerprint()
        calculation_id = self._generate_calculation_id(
            window.period_id, profile.employee_id, inputs_fingerprint, rules_fingerprint
        )

        return PayrollComputation(
            employee_id=profile.employee_id,
            period_id=window.period_id,
            calculation_id=calculation_id,
            rates=rates,
            attendance=summary,
            earnings=earnings,
            deductions=deductions,
            gross_pay=gross_pay,
            total_deductions=total_deductions,
            net_pay=net_pay,
            inputs_fingerprint=inputs_fingerprint,
        )

    def summarize_attendance(
        self,
        rates: EmployeeRates,
        window: PeriodWindow,
        attendance: Sequence[AttendanceEntry],
        leaves: Sequence[LeaveSpan] = (),
    ) -> AttendanceSummary:
        """Aggregate the cutoff window into day and hour counts."""
        hours_per_day = rates.hours_per_day
        by_date = {
            entry.work_date: entry
            for entry in attendance
            if window.cutoff_start <= entry.work_date <= window.cutoff_end
        }
        scheduled = self.calendar.working_days(
            window.cutoff_start, window.cutoff_end, window.holidays.keys()
        )
        summary = AttendanceSummary(scheduled_days=len(scheduled))

        for day in scheduled:
            if any(leave.covers(day) for leave in leaves):
                summary.leave_days += 1
                continue

            entry = by_date.get(day)
            if entry is None or self._arrival_status(entry) == AttendanceStatus.ABSENT:
                summary.absent_days += 1
                continue

            summary.present_days += 1
            worked = self._worked_hours(entry)
            regular = min(worked, hours_per_day)
            summary.regular_hours += regular
            summary.overtime_hours += max(worked - hours_per_day, ZERO)

            shortfall = hours_per_day - regular
            late = ZERO
            if self._arrival_status(entry) == AttendanceStatus.LATE:
                late = min(to_rate(Decimal(entry.late_minutes) / MINUTES_PER_HOUR), shortfall)
                summary.late_days += 1
            summary.late_hours += late
            summary.undertime_hours += shortfall - late
            summary.night_hours += self._night_hours(entry)

        # Unscheduled days worked: holidays at the holiday rate, rest days as overtime
        scheduled_set = set(scheduled)
        for day, entry in sorted(by_date.items()):
            if day in scheduled_set or self._arrival_status(entry) == AttendanceStatus.ABSENT:
                continue
            worked = self._worked_hours(entry)
            if worked <= 0:
                continue
            holiday_type = window.holidays.get(day)
            if holiday_type is not None:
                summary.holiday_hours[holiday_type] = (
                    summary.holiday_hours.get(holiday_type, ZERO) + worked
                )
            else:
                summary.overtime_hours += worked
            summary.night_hours += self._night_hours(entry)

        return summary

    def _price_earnings(
        self,
        profile: EmployeePayProfile,
        rates: EmployeeRates,
        window: PeriodWindow,
        summary: AttendanceSummary,
    ) -> Earnings:
        fraction = window.cycle.monthly_fraction
        hourly = rates.hourly_rate

        if rates.pay_basis == PayBasis.MONTHLY and summary.absent_days == 0:
            # Salaried with nothing to deduct for absence: pro-rated salary,
            # less the days paid separately as leave.
            basic = rates.monthly_rate * fraction - rates.daily_rate * summary.leave_days
        else:
            basic = summary.regular_hours * hourly

        holiday_pay = sum(
            (hours * hourly * self.multipliers.for_holiday(holiday_type)
             for holiday_type, hours in summary.holiday_hours.items()),
            ZERO,
        )
        allowances = (
            profile.meal_allowance + profile.transport_allowance + profile.other_allowance
        ) * fraction

        return Earnings(
            basic_salary=to_money(basic),
            overtime_pay=to_money(summary.overtime_hours * hourly * self.multipliers.overtime),
            night_differential_pay=to_money(
                summary.night_hours * hourly * self.multipliers.night_differential
            ),
            holiday_pay=to_money(holiday_pay),
            paid_leave_pay=to_money(rates.daily_rate * summary.leave_days),
            allowances=to_money(allowances),
        )

    def _arrival_status(self, entry: AttendanceEntry) -> AttendanceStatus:
        if entry.check_in_at is None:
            return AttendanceStatus.ABSENT
        if entry.arrival_status is not None:
            return AttendanceStatus(entry.arrival_status)
        if entry.status != AttendanceStatus.CHECKED_OUT:
            return AttendanceStatus(entry.status)
        return self.classifier.classify_arrival(entry.check_in_at).status

    @staticmethod
    def _worked_hours(entry: AttendanceEntry) -> Decimal:
        # A day never checked out has no measurable hours
        if entry.check_in_at is None or entry.check_out_at is None:
            return ZERO
        return entry.total_hours

    def _night_hours(self, entry: AttendanceEntry) -> Decimal:
        if entry.check_in_at is None or entry.check_out_at is None:
            return ZERO
        return self.classifier.night_hours(entry.check_in_at, entry.check_out_at)

    @staticmethod
    def _verify_totals(
        earnings: Earnings,
        deductions: Deductions,
        gross_pay: Decimal,
        total_deductions: Decimal,
        net_pay: Decimal,
    ) -> None:
        if gross_pay != earnings.total:
            raise InvariantViolation(f"gross_pay {gross_pay} != sum of earnings {earnings.total}")
        if total_deductions != deductions.total:
            raise InvariantViolation(
                f"total_deductions {total_deductions} != sum of deductions {deductions.total}"
            )
        if net_pay != gross_pay - total_deductions:
            raise InvariantViolation(
                f"net_pay {net_pay} != gross_pay {gross_pay} - total_deductions {total_deductions}"
            )

    def _generate_calculation_id(
        self,
        period_id: UUID,
        employee_id: UUID,
        inputs_fingerprint: str,
        rules_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "period_id": str(period_id),
            "employee_id": str(employee_id),
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "rules_fingerprint": rules_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_inputs_fingerprint(self, inputs: ComputationInputs) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        profile, window = inputs.profile, inputs.window
        data: dict[str, Any] = {
            "profile": {
                "pay_basis": profile.pay_basis.value,
                "monthly_rate": str(profile.monthly_rate),
                "daily_rate": str(profile.daily_rate),
                "hourly_rate": str(profile.hourly_rate),
                "work_hours_per_day": str(profile.work_hours_per_day),
                "allowances": [
                    str(profile.meal_allowance),
                    str(profile.transport_allowance),
                    str(profile.other_allowance),
                ],
                "other_deductions": str(profile.other_deductions),
                "is_tax_exempt": profile.is_tax_exempt,
            },
            "window": {
                "cycle": window.cycle.value,
                "cutoff": [window.cutoff_start.isoformat(), window.cutoff_end.isoformat()],
                "holidays": {d.isoformat(): t.value for d, t in sorted(window.holidays.items())},
            },
            "attendance": [
                e.to_canonical_dict()
                for e in sorted(inputs.attendance, key=lambda e: e.work_date)
            ],
            "leaves": sorted(
                [leave.start_date.isoformat(), leave.end_date.isoformat()]
                for leave in inputs.leaves
            ),
            "tax_settings": [
                str(inputs.tax_settings.minimum_taxable_income),
                inputs.tax_settings.tax_exemption_enabled,
            ],
            "extra_deductions": str(inputs.extra_deductions),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def _compute_rules_fingerprint(self) -> str:
        """Compute fingerprint of the rate, table and multiplier configuration."""
        data = {
            "working_days_per_month": str(self.rate_resolver.working_days_per_month),
            "default_hours": str(self.rate_resolver.default_work_hours_per_day),
            "contributions": self.contributions.to_canonical_dict(),
            "withholding": self.tax_calculator.to_canonical_list(),
            "multipliers": [
                str(self.multipliers.overtime),
                str(self.multipliers.night_differential),
                str(self.multipliers.special_holiday),
                str(self.multipliers.regular_holiday),
            ],
            "rest_days": sorted(self.calendar.rest_days),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
