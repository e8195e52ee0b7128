"""Employee roster and attendance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.calculators.types import (
    AttendanceEntry,
    AttendanceStatus,
    EmployeePayProfile,
    PayBasis,
)
from payroll_workflow.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record with the pay configuration payroll reads."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Pay configuration
    pay_basis: Mapped[str] = mapped_column(String, nullable=False, default=PayBasis.MONTHLY.value)
    monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    work_hours_per_day: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    # Monthly amounts, pro-rated per period
    meal_allowance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    transport_allowance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    other_allowance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    leave_balance: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    is_tax_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "pay_basis IN ('monthly', 'daily')",
            name="employee_pay_basis_check",
        ),
        CheckConstraint("leave_balance >= 0", name="employee_leave_balance_check"),
    )

    # Relationships
    attendance: Mapped[list[AttendanceDay]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    def pay_profile(self) -> EmployeePayProfile:
        """Snapshot of the pay configuration for the calculators."""
        return EmployeePayProfile(
            employee_id=self.employee_id,
            pay_basis=PayBasis(self.pay_basis),
            monthly_rate=self.monthly_rate,
            daily_rate=self.daily_rate,
            hourly_rate=self.hourly_rate,
            work_hours_per_day=self.work_hours_per_day,
            meal_allowance=self.meal_allowance or Decimal("0"),
            transport_allowance=self.transport_allowance or Decimal("0"),
            other_allowance=self.other_allowance or Decimal("0"),
            other_deductions=self.other_deductions or Decimal("0"),
            is_tax_exempt=bool(self.is_tax_exempt),
        )


class AttendanceDay(Base, TimestampMixin):
    """One employee's attendance on one date.

    Check-in/out times are local wall-clock times.
    """

    __tablename__ = "attendance_day"

    attendance_day_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    check_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    arrival_status: Mapped[str | None] = mapped_column(String, nullable=True)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    corrected_by_request_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="attendance_day_employee_date_unique"),
        CheckConstraint(
            "status IN ('present', 'late', 'absent', 'checked-out')",
            name="attendance_day_status_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="attendance")

    def to_entry(self) -> AttendanceEntry:
        return AttendanceEntry(
            work_date=self.work_date,
            status=AttendanceStatus(self.status),
            check_in_at=self.check_in_at,
            check_out_at=self.check_out_at,
            arrival_status=AttendanceStatus(self.arrival_status) if self.arrival_status else None,
            late_minutes=self.late_minutes or 0,
            total_hours=self.total_hours or Decimal("0"),
        )
