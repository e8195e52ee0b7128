"""Withholding tax calculation against an annual progressive schedule."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from payroll_workflow.calculators.types import (
    ZERO,
    PayrollCycle,
    TaxBracket,
    TaxSettingsSnapshot,
    to_money,
)


def _bracket(min_amount: str, max_amount: str | None, rate: str, flat: str = "0") -> TaxBracket:
    return TaxBracket(
        min_amount=Decimal(min_amount),
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        rate=Decimal(rate),
        flat_amount=Decimal(flat),
    )


# Annual schedule over the excess above the 250,000 exemption threshold.
# With the default threshold this reproduces the TRAIN law table.
DEFAULT_WITHHOLDING_SCHEDULE: tuple[TaxBracket, ...] = (
    _bracket("0", "150000", "0.15"),
    _bracket("150000", "550000", "0.20", "22500"),
    _bracket("550000", "1750000", "0.25", "102500"),
    _bracket("1750000", "7750000", "0.30", "402500"),
    _bracket("7750000", None, "0.35", "2202500"),
)


class TaxCalculator:
    """Computes per-period withholding from gross pay.

    - an employee flagged exempt pays nothing
    - with the exemption enabled, annualised gross below the minimum taxable
      income pays nothing; above it the schedule applies to the excess
    - with the exemption disabled the schedule applies to the whole
      annualised gross
    The annual tax is divided back over the periods of the cycle.
    """

    def __init__(self, schedule: Sequence[TaxBracket] = DEFAULT_WITHHOLDING_SCHEDULE):
        self.schedule = tuple(sorted(schedule, key=lambda b: b.min_amount))

    def annualize(self, gross_pay: Decimal, cycle: PayrollCycle) -> Decimal:
        return gross_pay * cycle.periods_per_year

    def taxable_annual_income(
        self,
        gross_pay: Decimal,
        cycle: PayrollCycle,
        settings: TaxSettingsSnapshot,
    ) -> Decimal:
        annual = self.annualize(gross_pay, cycle)
        if not settings.tax_exemption_enabled:
            return max(annual, ZERO)
        if annual < settings.minimum_taxable_income:
            return ZERO
        return annual - settings.minimum_taxable_income

    def calculate_withholding(
        self,
        gross_pay: Decimal,
        cycle: PayrollCycle,
        settings: TaxSettingsSnapshot,
        employee_exempt: bool = False,
    ) -> Decimal:
        if employee_exempt or gross_pay <= 0:
            return ZERO

        taxable = self.taxable_annual_income(gross_pay, cycle, settings)
        if taxable <= 0:
            return ZERO

        annual_tax = self._calculate_progressive_tax(taxable)
        return to_money(annual_tax / cycle.periods_per_year)

    def is_below_threshold(
        self, annual_income: Decimal, settings: TaxSettingsSnapshot
    ) -> bool:
        """Whether auto-applied exemption would flag this income exempt."""
        return settings.tax_exemption_enabled and annual_income < settings.minimum_taxable_income

    def _calculate_progressive_tax(self, amount: Decimal) -> Decimal:
        """Tax on ``amount`` using the bracket that contains it."""
        if amount <= 0:
            return ZERO

        for bracket in reversed(self.schedule):
            if amount < bracket.min_amount:
                continue
            if bracket.max_amount is not None and amount > bracket.max_amount:
                # Above the top of a bounded bracket with no bracket above it
                return bracket.flat_amount + (bracket.max_amount - bracket.min_amount) * bracket.rate
            return bracket.flat_amount + (amount - bracket.min_amount) * bracket.rate

        return ZERO

    def to_canonical_list(self) -> list[list[str | None]]:
        return [
            [str(b.min_amount), str(b.max_amount) if b.max_amount is not None else None,
             str(b.rate), str(b.flat_amount)]
            for b in self.schedule
        ]
