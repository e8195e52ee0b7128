"""Pay rate resolution from an employee's pay basis."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from payroll_workflow.calculators.types import (
    EmployeePayProfile,
    EmployeeRates,
    PayBasis,
    to_rate,
)
from payroll_workflow.errors import ValidationError


class RateNotFoundError(ValidationError):
    """Raised when the pay basis has no rate to derive from."""

    code = "RATE_NOT_FOUND"

    def __init__(self, employee_id: UUID, pay_basis: PayBasis, missing: str):
        self.employee_id = employee_id
        self.pay_basis = pay_basis
        super().__init__(
            f"No {missing} configured for {pay_basis.value} employee {employee_id}",
            employee_id=employee_id,
            pay_basis=pay_basis,
            missing=missing,
        )


class RateResolver:
    """Resolves daily and hourly rates.

    Rate selection:
    1. Monthly basis: daily = monthly / working days per month,
       hourly = daily / work hours per day
    2. Daily basis: the configured daily rate; hourly is the configured
       hourly rate or daily / work hours per day
    """

    def __init__(
        self,
        working_days_per_month: int = 22,
        default_work_hours_per_day: Decimal = Decimal("8"),
    ):
        if working_days_per_month <= 0:
            raise ValueError("working_days_per_month must be positive")
        self.working_days_per_month = Decimal(working_days_per_month)
        self.default_work_hours_per_day = default_work_hours_per_day

    def resolve(self, profile: EmployeePayProfile) -> EmployeeRates:
        hours = profile.work_hours_per_day or self.default_work_hours_per_day
        if hours <= 0:
            hours = self.default_work_hours_per_day

        if profile.pay_basis == PayBasis.MONTHLY:
            if profile.monthly_rate is None:
                raise RateNotFoundError(profile.employee_id, profile.pay_basis, "monthly rate")
            daily = to_rate(profile.monthly_rate / self.working_days_per_month)
            hourly = to_rate(daily / hours)
            return EmployeeRates(
                pay_basis=PayBasis.MONTHLY,
                monthly_rate=profile.monthly_rate,
                daily_rate=daily,
                hourly_rate=hourly,
                hours_per_day=hours,
            )

        if profile.daily_rate is None:
            raise RateNotFoundError(profile.employee_id, profile.pay_basis, "daily rate")
        daily = to_rate(profile.daily_rate)
        hourly = to_rate(profile.hourly_rate) if profile.hourly_rate else to_rate(daily / hours)
        return EmployeeRates(
            pay_basis=PayBasis.DAILY,
            monthly_rate=None,
            daily_rate=daily,
            hourly_rate=hourly,
            hours_per_day=hours,
        )
