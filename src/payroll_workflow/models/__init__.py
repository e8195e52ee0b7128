"""ORM models."""

from payroll_workflow.models.base import Base, TimestampMixin
from payroll_workflow.models.employee import AttendanceDay, Employee
from payroll_workflow.models.payroll import (
    DEDUCTION_FIELDS,
    EARNING_FIELDS,
    PayrollHoliday,
    PayrollPeriod,
    PayrollRecord,
    Payslip,
)
from payroll_workflow.models.reference import ContributionBracket, TaxSettings, WithholdingBracket
from payroll_workflow.models.approval import ApprovalRequest, ApprovalStep

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "AttendanceDay",
    "PayrollPeriod",
    "PayrollHoliday",
    "PayrollRecord",
    "Payslip",
    "EARNING_FIELDS",
    "DEDUCTION_FIELDS",
    "TaxSettings",
    "ContributionBracket",
    "WithholdingBracket",
    "ApprovalRequest",
    "ApprovalStep",
]
