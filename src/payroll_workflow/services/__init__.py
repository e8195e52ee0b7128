"""Service layer for payroll and approval operations."""

from payroll_workflow.services.approval_workflow import ApprovalChainPolicy, ApprovalWorkflowService
from payroll_workflow.services.attendance_service import AttendanceService
from payroll_workflow.services.locking_service import LockingService
from payroll_workflow.services.payroll_period_service import HolidaySpec, PayrollPeriodService
from payroll_workflow.services.reference_data_service import ReferenceDataService
from payroll_workflow.services.state_machine import (
    ApprovalStateMachine,
    ApprovalStatus,
    PeriodStateMachine,
    PeriodStatus,
    RecordStateMachine,
    RecordStatus,
)

__all__ = [
    "ApprovalChainPolicy",
    "ApprovalWorkflowService",
    "AttendanceService",
    "LockingService",
    "HolidaySpec",
    "PayrollPeriodService",
    "ReferenceDataService",
    "ApprovalStateMachine",
    "ApprovalStatus",
    "PeriodStateMachine",
    "PeriodStatus",
    "RecordStateMachine",
    "RecordStatus",
]
