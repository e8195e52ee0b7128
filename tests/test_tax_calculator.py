"""Unit tests for TaxCalculator."""

from decimal import Decimal

from payroll_workflow.calculators.tax_calculator import TaxCalculator
from payroll_workflow.calculators.types import PayrollCycle, TaxBracket, TaxSettingsSnapshot

DEFAULTS = TaxSettingsSnapshot()


class TestProgressiveTaxCalculation:
    """Annual schedule lookups."""

    def test_first_bracket(self):
        calc = TaxCalculator()
        assert calc._calculate_progressive_tax(Decimal("100000")) == Decimal("15000.00")

    def test_bracket_boundary_uses_flat_amount(self):
        """400,000 annual income owes exactly 22,500."""
        calc = TaxCalculator()
        assert calc._calculate_progressive_tax(Decimal("150000")) == Decimal("22500")

    def test_upper_bracket(self):
        calc = TaxCalculator()
        # 102,500 + 25% of (950,000 - 550,000)
        assert calc._calculate_progressive_tax(Decimal("950000")) == Decimal("202500.00")

    def test_zero_amount(self):
        assert TaxCalculator()._calculate_progressive_tax(Decimal("0")) == Decimal("0")

    def test_custom_schedule(self):
        calc = TaxCalculator([TaxBracket(Decimal("0"), None, Decimal("0.10"))])
        assert calc._calculate_progressive_tax(Decimal("1000")) == Decimal("100.00")


class TestWithholding:
    """Per-period withholding."""

    def test_monthly_above_threshold(self):
        """30,000 monthly: 360,000 annual, 110,000 taxable, 16,500 a year."""
        tax = TaxCalculator().calculate_withholding(Decimal("30000"), PayrollCycle.MONTHLY, DEFAULTS)
        assert tax == Decimal("1375.00")

    def test_semi_monthly_matches_monthly(self):
        tax = TaxCalculator().calculate_withholding(
            Decimal("15000"), PayrollCycle.SEMI_MONTHLY, DEFAULTS
        )
        assert tax == Decimal("687.50")

    def test_below_threshold_pays_nothing(self):
        tax = TaxCalculator().calculate_withholding(Decimal("20000"), PayrollCycle.MONTHLY, DEFAULTS)
        assert tax == Decimal("0")

    def test_exemption_disabled_taxes_full_amount(self):
        settings = TaxSettingsSnapshot(tax_exemption_enabled=False)
        tax = TaxCalculator().calculate_withholding(Decimal("10000"), PayrollCycle.MONTHLY, settings)
        assert tax == Decimal("1500.00")

    def test_exempt_employee_pays_nothing(self):
        tax = TaxCalculator().calculate_withholding(
            Decimal("100000"), PayrollCycle.MONTHLY, DEFAULTS, employee_exempt=True
        )
        assert tax == Decimal("0")

    def test_raised_threshold(self):
        settings = TaxSettingsSnapshot(minimum_taxable_income=Decimal("400000"))
        tax = TaxCalculator().calculate_withholding(Decimal("30000"), PayrollCycle.MONTHLY, settings)
        assert tax == Decimal("0")


class TestThreshold:
    """Auto-applied exemption decisions."""

    def test_below_and_above(self):
        calc = TaxCalculator()
        assert calc.is_below_threshold(Decimal("240000"), DEFAULTS) is True
        assert calc.is_below_threshold(Decimal("250000"), DEFAULTS) is False

    def test_disabled_never_exempts(self):
        settings = TaxSettingsSnapshot(tax_exemption_enabled=False)
        assert TaxCalculator().is_below_threshold(Decimal("1000"), settings) is False
