"""Tests for statutory contribution lookups."""

from decimal import Decimal

import pytest

from payroll_workflow.calculators.contributions import ContributionTable
from payroll_workflow.calculators.types import ContributionBracket


class TestDefaultTables:
    def test_mid_range(self):
        result = ContributionTable.defaults()(Decimal("21000"))
        assert result.sss == Decimal("945.00")
        assert result.philhealth == Decimal("525.00")
        assert result.pagibig == Decimal("200.00")
        assert result.total == Decimal("1670.00")

    def test_low_gross(self):
        result = ContributionTable.defaults()(Decimal("3000"))
        assert result.sss == Decimal("180.00")
        assert result.philhealth == Decimal("0")
        assert result.pagibig == Decimal("30.00")

    def test_ceilings(self):
        result = ContributionTable.defaults()(Decimal("50000"))
        assert (result.sss, result.philhealth, result.pagibig) == (
            Decimal("1350.00"),
            Decimal("1000.00"),
            Decimal("200.00"),
        )

    def test_zero_gross(self):
        assert ContributionTable.defaults()(Decimal("0")).total == Decimal("0")


class TestCustomTables:
    def test_from_rows(self):
        table = ContributionTable.from_rows(
            [("sss", ContributionBracket(Decimal("0"), None, employee_share=Decimal("100")))]
        )
        result = table(Decimal("5000"))
        assert result.sss == Decimal("100.00")
        assert result.philhealth == Decimal("0")

    def test_gap_yields_zero(self):
        table = ContributionTable(
            sss=[ContributionBracket(Decimal("1000"), Decimal("2000"), rate=Decimal("0.1"))]
        )
        assert table(Decimal("500")).sss == Decimal("0")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            ContributionTable.from_rows([("gsis", ContributionBracket(Decimal("0"), None))])
