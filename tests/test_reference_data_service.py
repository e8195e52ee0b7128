"""Tests for tax settings and reference tables."""

from decimal import Decimal

import pytest

from payroll_workflow.calculators.contributions import DEFAULT_BRACKETS
from payroll_workflow.calculators.tax_calculator import DEFAULT_WITHHOLDING_SCHEDULE
from payroll_workflow.errors import InvalidSetting
from payroll_workflow.services.reference_data_service import ReferenceDataService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def reference_data(session, settings) -> ReferenceDataService:
    return ReferenceDataService(session, settings)


class TestTaxSettings:
    async def test_defaults_created_once(self, reference_data):
        first = await reference_data.get_tax_settings()
        second = await reference_data.get_tax_settings()

        assert first is second
        assert first.minimum_taxable_income == Decimal("250000")
        assert first.tax_exemption_enabled is True
        assert first.auto_apply_exemption is True

    async def test_negative_minimum_rejected(self, reference_data):
        with pytest.raises(InvalidSetting):
            await reference_data.update_tax_settings(minimum_taxable_income=Decimal("-1"))

    async def test_auto_apply_flags_employees(self, reference_data, make_employee):
        low = await make_employee(monthly_rate=Decimal("15000"))
        high = await make_employee(monthly_rate=Decimal("40000"))
        daily = await make_employee(pay_basis="daily", monthly_rate=None, daily_rate=Decimal("600"))

        _, changed = await reference_data.update_tax_settings(
            minimum_taxable_income=Decimal("300000"), updated_by="hr-1"
        )

        # 15,000 x 12 and 600 x 22 x 12 are under 300,000
        assert changed == 2
        assert low.is_tax_exempt is True
        assert daily.is_tax_exempt is True
        assert high.is_tax_exempt is False

    async def test_auto_apply_off_leaves_flags(self, reference_data, make_employee):
        employee = await make_employee(monthly_rate=Decimal("10000"))

        _, changed = await reference_data.update_tax_settings(auto_apply_exemption=False)

        assert changed == 0
        assert employee.is_tax_exempt is False

    async def test_disabled_exemption_clears_flags(self, reference_data, make_employee):
        employee = await make_employee(monthly_rate=Decimal("10000"), is_tax_exempt=True)

        _, changed = await reference_data.update_tax_settings(tax_exemption_enabled=False)

        assert changed == 1
        assert employee.is_tax_exempt is False

    async def test_exemption_summary(self, reference_data, make_employee):
        low = await make_employee(monthly_rate=Decimal("15000"))
        await make_employee(monthly_rate=Decimal("40000"))
        await make_employee(monthly_rate=Decimal("12000"), status="inactive")
        await reference_data.update_tax_settings(minimum_taxable_income=Decimal("300000"))

        summary = await reference_data.exemption_summary()

        assert summary.minimum_taxable_income == Decimal("300000")
        assert summary.tax_exemption_enabled is True
        assert (summary.total_employees, summary.exempt_count, summary.taxable_count) == (2, 1, 1)
        assert [e.employee_id for e in summary.exempt_employees] == [low.employee_id]


class TestReferenceTables:
    async def test_empty_tables_use_defaults(self, reference_data):
        table = await reference_data.load_contribution_table()
        assert table(Decimal("21000")).sss == Decimal("945.00")
        calculator = await reference_data.load_tax_calculator()
        assert len(calculator.schedule) == len(DEFAULT_WITHHOLDING_SCHEDULE)

    async def test_seed_is_idempotent(self, reference_data):
        counts = await reference_data.seed_defaults()
        assert counts["contribution_brackets"] == sum(len(b) for b in DEFAULT_BRACKETS.values())
        assert counts["withholding_brackets"] == len(DEFAULT_WITHHOLDING_SCHEDULE)

        again = await reference_data.seed_defaults()
        assert again == {"contribution_brackets": 0, "withholding_brackets": 0}

    async def test_seeded_tables_round_trip(self, reference_data):
        await reference_data.seed_defaults()

        table = await reference_data.load_contribution_table()
        result = table(Decimal("21000"))
        assert (result.sss, result.philhealth, result.pagibig) == (
            Decimal("945.00"),
            Decimal("525.00"),
            Decimal("200.00"),
        )
