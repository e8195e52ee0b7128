"""Payroll period, record and payslip models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from payroll_workflow.models.employee import Employee


EARNING_FIELDS = (
    "basic_salary",
    "overtime_pay",
    "night_differential_pay",
    "holiday_pay",
    "paid_leave_pay",
    "allowances",
)

DEDUCTION_FIELDS = (
    "late_deduction",
    "undertime_deduction",
    "absence_deduction",
    "sss_contribution",
    "philhealth_contribution",
    "pagibig_contribution",
    "withholding_tax",
    "other_deductions",
)


def _money() -> Mapped[Decimal]:
    return mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))


def _hours() -> Mapped[Decimal]:
    return mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))


class PayrollPeriod(Base, TimestampMixin):
    """Payroll period with its lifecycle status."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_name: Mapped[str] = mapped_column(String, nullable=False)
    cycle: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    attendance_cutoff_start: Mapped[date] = mapped_column(Date, nullable=False)
    attendance_cutoff_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending_computation")
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Aggregates refreshed after computation
    total_gross: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    total_net: Mapped[Decimal] = _money()

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String, nullable=True)
    payroll_run_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payroll_run_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_computation', 'computation_completed', 'locked', 'payroll_run')",
            name="payroll_period_status_check",
        ),
        CheckConstraint(
            "cycle IN ('monthly', 'semi_monthly', 'bi_weekly')",
            name="payroll_period_cycle_check",
        ),
        CheckConstraint("end_date >= start_date", name="payroll_period_dates_check"),
    )

    # Relationships
    holidays: Mapped[list[PayrollHoliday]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PayrollHoliday.holiday_date",
    )


class PayrollHoliday(Base):
    """Holiday flag on a date inside a payroll period."""

    __tablename__ = "payroll_holiday"

    payroll_holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    holiday_type: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "holiday_date", name="payroll_holiday_period_date_unique"),
        CheckConstraint(
            "holiday_type IN ('regular_holiday', 'special_holiday')",
            name="payroll_holiday_type_check",
        ),
    )

    period: Mapped[PayrollPeriod] = relationship(back_populates="holidays")


class PayrollRecord(Base, TimestampMixin):
    """One employee's earnings and deductions for one period."""

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # Earnings
    basic_salary: Mapped[Decimal] = _money()
    overtime_pay: Mapped[Decimal] = _money()
    night_differential_pay: Mapped[Decimal] = _money()
    holiday_pay: Mapped[Decimal] = _money()
    paid_leave_pay: Mapped[Decimal] = _money()
    allowances: Mapped[Decimal] = _money()
    gross_pay: Mapped[Decimal] = _money()

    # Deductions
    late_deduction: Mapped[Decimal] = _money()
    undertime_deduction: Mapped[Decimal] = _money()
    absence_deduction: Mapped[Decimal] = _money()
    sss_contribution: Mapped[Decimal] = _money()
    philhealth_contribution: Mapped[Decimal] = _money()
    pagibig_contribution: Mapped[Decimal] = _money()
    withholding_tax: Mapped[Decimal] = _money()
    other_deductions: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()

    net_pay: Mapped[Decimal] = _money()

    # Ad-hoc deduction carried into every recompute, on top of the recurring one
    adjustment_deductions: Mapped[Decimal] = _money()

    # Attendance summary used for the computation
    scheduled_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leave_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_hours: Mapped[Decimal] = _hours()
    undertime_hours: Mapped[Decimal] = _hours()
    overtime_hours: Mapped[Decimal] = _hours()
    night_hours: Mapped[Decimal] = _hours()
    holiday_hours: Mapped[Decimal] = _hours()
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    # Traceability
    calculation_id: Mapped[UUID | None] = mapped_column(nullable=True)
    inputs_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    return_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "employee_id", name="payroll_record_period_employee_unique"),
        CheckConstraint(
            "status IN ('draft', 'computed', 'approved', 'locked', 'paid')",
            name="payroll_record_status_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(lazy="selectin")

    def earnings_snapshot(self) -> dict[str, str]:
        return {name: str(getattr(self, name)) for name in EARNING_FIELDS}

    def deductions_snapshot(self) -> dict[str, str]:
        return {name: str(getattr(self, name)) for name in DEDUCTION_FIELDS}


class Payslip(Base):
    """Immutable snapshot of a locked payroll record."""

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_record.payroll_record_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    period_name: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    earnings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    deductions: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    gross_pay: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    net_pay: Mapped[Decimal] = _money()
    calculation_id: Mapped[UUID | None] = mapped_column(nullable=True)
    generated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
