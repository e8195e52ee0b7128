"""Tax settings singleton and statutory reference tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.contributions import DEFAULT_BRACKETS, ContributionTable
from payroll_workflow.calculators.tax_calculator import DEFAULT_WITHHOLDING_SCHEDULE, TaxCalculator
from payroll_workflow.calculators.types import PayBasis
from payroll_workflow.config import Settings, get_settings
from payroll_workflow.errors import InvalidSetting
from payroll_workflow.models import ContributionBracket, Employee, TaxSettings, WithholdingBracket
from payroll_workflow.models.reference import TAX_SETTINGS_SINGLETON_ID

logger = logging.getLogger(__name__)


@dataclass
class TaxExemptionSummary:
    minimum_taxable_income: Decimal
    tax_exemption_enabled: bool
    total_employees: int
    exempt_count: int
    taxable_count: int
    exempt_employees: list[Employee] = field(default_factory=list)


class ReferenceDataService:
    """Reads and maintains the tax settings and bracket tables.

    Empty bracket tables fall back to the built-in defaults so a fresh
    database can compute payroll before anything is seeded.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def get_tax_settings(self) -> TaxSettings:
        """Return the singleton, creating it with defaults on first use."""
        tax_settings = await self.session.get(TaxSettings, TAX_SETTINGS_SINGLETON_ID)
        if tax_settings is None:
            tax_settings = TaxSettings(
                tax_settings_id=TAX_SETTINGS_SINGLETON_ID,
                minimum_taxable_income=Decimal("250000"),
                tax_exemption_enabled=True,
                auto_apply_exemption=True,
            )
            self.session.add(tax_settings)
            await self.session.flush()
            logger.info("Created default tax settings")
        return tax_settings

    async def update_tax_settings(
        self,
        minimum_taxable_income: Decimal | None = None,
        tax_exemption_enabled: bool | None = None,
        auto_apply_exemption: bool | None = None,
        updated_by: str | None = None,
    ) -> tuple[TaxSettings, int]:
        """Update the singleton in place.

        Returns the settings and the number of employees whose exemption
        flag changed (non-zero only when auto-apply is on).
        """
        if minimum_taxable_income is not None and minimum_taxable_income < 0:
            raise InvalidSetting(
                "minimum_taxable_income",
                minimum_taxable_income,
                "Minimum taxable income cannot be negative",
            )

        tax_settings = await self.get_tax_settings()
        if minimum_taxable_income is not None:
            tax_settings.minimum_taxable_income = minimum_taxable_income
        if tax_exemption_enabled is not None:
            tax_settings.tax_exemption_enabled = tax_exemption_enabled
        if auto_apply_exemption is not None:
            tax_settings.auto_apply_exemption = auto_apply_exemption
        tax_settings.updated_by = updated_by
        await self.session.flush()

        synced = 0
        if tax_settings.auto_apply_exemption:
            synced = await self.apply_exemptions(tax_settings)

        logger.info(
            "Tax settings updated by %s: minimum=%s enabled=%s auto_apply=%s (%d employee flags changed)",
            updated_by,
            tax_settings.minimum_taxable_income,
            tax_settings.tax_exemption_enabled,
            tax_settings.auto_apply_exemption,
            synced,
        )
        return tax_settings, synced

    async def apply_exemptions(self, tax_settings: TaxSettings) -> int:
        """Flag active employees exempt when annual base pay is below the minimum."""
        snapshot = tax_settings.snapshot()
        calculator = TaxCalculator()
        result = await self.session.execute(select(Employee).where(Employee.status == "active"))

        changed = 0
        for employee in result.scalars().all():
            annual = self.annual_base_income(employee)
            if annual is None:
                continue
            exempt = calculator.is_below_threshold(annual, snapshot)
            if bool(employee.is_tax_exempt) != exempt:
                employee.is_tax_exempt = exempt
                changed += 1

        await self.session.flush()
        return changed

    def annual_base_income(self, employee: Employee) -> Decimal | None:
        if employee.pay_basis == PayBasis.MONTHLY.value:
            if employee.monthly_rate is None:
                return None
            return employee.monthly_rate * 12
        if employee.daily_rate is None:
            return None
        return employee.daily_rate * self.settings.working_days_per_month * 12

    async def exemption_summary(self) -> TaxExemptionSummary:
        """Counts of exempt and taxable active employees under the current settings."""
        tax_settings = await self.get_tax_settings()
        result = await self.session.execute(
            select(Employee).where(Employee.status == "active").order_by(Employee.employee_number)
        )
        employees = list(result.scalars().all())
        exempt = [e for e in employees if e.is_tax_exempt]
        return TaxExemptionSummary(
            minimum_taxable_income=tax_settings.minimum_taxable_income,
            tax_exemption_enabled=tax_settings.tax_exemption_enabled,
            total_employees=len(employees),
            exempt_count=len(exempt),
            taxable_count=len(employees) - len(exempt),
            exempt_employees=exempt,
        )

    async def load_contribution_table(self) -> ContributionTable:
        result = await self.session.execute(
            select(ContributionBracket).order_by(ContributionBracket.kind, ContributionBracket.min_amount)
        )
        rows = result.scalars().all()
        if not rows:
            return ContributionTable.defaults()
        return ContributionTable.from_rows((row.kind, row.to_value()) for row in rows)

    async def load_tax_calculator(self) -> TaxCalculator:
        result = await self.session.execute(
            select(WithholdingBracket).order_by(WithholdingBracket.min_amount)
        )
        rows = result.scalars().all()
        if not rows:
            return TaxCalculator()
        return TaxCalculator([row.to_value() for row in rows])

    async def seed_defaults(self, replace: bool = False) -> dict[str, int]:
        """Write the built-in tables. Existing tables are kept unless ``replace``."""
        counts = {"contribution_brackets": 0, "withholding_brackets": 0}

        existing = await self.session.execute(select(ContributionBracket.contribution_bracket_id).limit(1))
        if replace:
            await self.session.execute(delete(ContributionBracket))
        if replace or existing.first() is None:
            for kind, brackets in DEFAULT_BRACKETS.items():
                for bracket in brackets:
                    self.session.add(
                        ContributionBracket(
                            kind=kind,
                            min_amount=bracket.min_amount,
                            max_amount=bracket.max_amount,
                            employee_share=bracket.employee_share,
                            rate=bracket.rate,
                        )
                    )
                    counts["contribution_brackets"] += 1

        existing = await self.session.execute(select(WithholdingBracket.withholding_bracket_id).limit(1))
        if replace:
            await self.session.execute(delete(WithholdingBracket))
        if replace or existing.first() is None:
            for bracket in DEFAULT_WITHHOLDING_SCHEDULE:
                self.session.add(
                    WithholdingBracket(
                        min_amount=bracket.min_amount,
                        max_amount=bracket.max_amount,
                        rate=bracket.rate,
                        flat_amount=bracket.flat_amount,
                        description=f"{bracket.rate * 100:.0f}% over {bracket.min_amount}",
                    )
                )
                counts["withholding_brackets"] += 1

        await self.get_tax_settings()
        await self.session.flush()
        return counts
