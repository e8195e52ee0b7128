"""Unit tests for RateResolver."""

from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_workflow.calculators.rate_resolver import RateNotFoundError, RateResolver
from payroll_workflow.calculators.types import EmployeePayProfile, PayBasis


class TestMonthlyBasis:
    """Monthly-rated employees."""

    def test_derives_daily_and_hourly(self):
        """22,000 a month over 22 days is 1,000 a day and 125 an hour."""
        profile = EmployeePayProfile(uuid4(), PayBasis.MONTHLY, monthly_rate=Decimal("22000"))
        rates = RateResolver().resolve(profile)

        assert rates.daily_rate == Decimal("1000.0000")
        assert rates.hourly_rate == Decimal("125.0000")
        assert rates.hours_per_day == Decimal("8")

    def test_custom_hours_per_day(self):
        profile = EmployeePayProfile(
            uuid4(),
            PayBasis.MONTHLY,
            monthly_rate=Decimal("22000"),
            work_hours_per_day=Decimal("6"),
        )
        rates = RateResolver().resolve(profile)
        assert rates.hourly_rate == Decimal("166.6667")

    def test_working_days_configurable(self):
        profile = EmployeePayProfile(uuid4(), PayBasis.MONTHLY, monthly_rate=Decimal("26000"))
        rates = RateResolver(working_days_per_month=26).resolve(profile)
        assert rates.daily_rate == Decimal("1000.0000")

    def test_missing_monthly_rate(self):
        profile = EmployeePayProfile(uuid4(), PayBasis.MONTHLY)
        with pytest.raises(RateNotFoundError) as exc_info:
            RateResolver().resolve(profile)
        assert exc_info.value.code == "RATE_NOT_FOUND"


class TestDailyBasis:
    """Daily-rated employees."""

    def test_hourly_from_daily(self):
        profile = EmployeePayProfile(uuid4(), PayBasis.DAILY, daily_rate=Decimal("800"))
        rates = RateResolver().resolve(profile)

        assert rates.daily_rate == Decimal("800.0000")
        assert rates.hourly_rate == Decimal("100.0000")
        assert rates.monthly_rate is None

    def test_explicit_hourly_wins(self):
        profile = EmployeePayProfile(
            uuid4(),
            PayBasis.DAILY,
            daily_rate=Decimal("800"),
            hourly_rate=Decimal("110"),
        )
        assert RateResolver().resolve(profile).hourly_rate == Decimal("110.0000")

    def test_missing_daily_rate(self):
        profile = EmployeePayProfile(uuid4(), PayBasis.DAILY, monthly_rate=Decimal("22000"))
        with pytest.raises(RateNotFoundError):
            RateResolver().resolve(profile)


def test_rejects_non_positive_working_days():
    with pytest.raises(ValueError):
        RateResolver(working_days_per_month=0)
