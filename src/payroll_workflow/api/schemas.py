"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_workflow.calculators.types import HolidayType, PayrollCycle


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    kind: str | None = None
    current_state: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Payroll period schemas
# ============================================================================


class HolidayIn(BaseModel):
    holiday_date: date
    holiday_type: HolidayType
    name: str | None = None


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    holiday_date: date
    holiday_type: str
    name: str | None = None


class PayrollPeriodCreate(BaseModel):
    """Schema for initializing a payroll period."""

    period_name: str = Field(min_length=1)
    cycle: PayrollCycle = PayrollCycle.SEMI_MONTHLY
    start_date: date
    end_date: date
    attendance_cutoff_start: date | None = None
    attendance_cutoff_end: date | None = None
    holidays: list[HolidayIn] = Field(default_factory=list)


class PayrollPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    period_name: str
    cycle: str
    start_date: date
    end_date: date
    attendance_cutoff_start: date
    attendance_cutoff_end: date
    status: str
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    version: int
    computed_at: datetime | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    payroll_run_at: datetime | None = None
    holidays: list[HolidayResponse] = Field(default_factory=list)
    created_at: datetime


class WarningResponse(BaseModel):
    code: str
    detail: str


class PayrollPeriodCreated(BaseModel):
    period: PayrollPeriodResponse
    records_created: int
    warnings: list[WarningResponse]


class PayrollRecordResponse(BaseModel):
    """Schema for one payroll record."""

    model_config = ConfigDict(from_attributes=True)

    payroll_record_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    status: str

    basic_salary: Decimal
    overtime_pay: Decimal
    night_differential_pay: Decimal
    holiday_pay: Decimal
    paid_leave_pay: Decimal
    allowances: Decimal
    gross_pay: Decimal

    late_deduction: Decimal
    undertime_deduction: Decimal
    absence_deduction: Decimal
    sss_contribution: Decimal
    philhealth_contribution: Decimal
    pagibig_contribution: Decimal
    withholding_tax: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    adjustment_deductions: Decimal

    scheduled_days: int
    present_days: int
    absent_days: int
    leave_days: int
    late_hours: Decimal
    undertime_hours: Decimal
    overtime_hours: Decimal
    night_hours: Decimal
    holiday_hours: Decimal

    calculation_id: UUID | None = None
    error_message: str | None = None
    return_reason: str | None = None
    version: int
    computed_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None


class RecordOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: UUID
    employee_id: UUID
    status: str
    ok: bool
    net_pay: Decimal | None = None
    error: dict[str, Any] | None = None


class ComputeAllResponse(BaseModel):
    period: PayrollPeriodResponse
    computed: int
    failed: int
    outcomes: list[RecordOutcomeResponse]


class ComputeRecordRequest(BaseModel):
    extra_deductions: Decimal | None = Field(default=None, ge=0)


class ReturnRecordRequest(BaseModel):
    reason: str


class PayslipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    payroll_record_id: UUID
    employee_id: UUID
    employee_name: str
    period_name: str
    period_start: date
    period_end: date
    earnings: dict[str, Any]
    deductions: dict[str, Any]
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    calculation_id: UUID | None = None
    generated_at: datetime


class PayslipRunResponse(BaseModel):
    period: PayrollPeriodResponse
    created: int
    payslips: list[PayslipResponse]


class PeriodSummaryResponse(BaseModel):
    period: PayrollPeriodResponse
    records_by_status: dict[str, int]
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    records_with_deficit: int
    total_sss: Decimal
    total_philhealth: Decimal
    total_pagibig: Decimal
    total_withholding_tax: Decimal


# ============================================================================
# Attendance schemas
# ============================================================================


class CheckInRequest(BaseModel):
    employee_id: UUID
    at: datetime | None = None


class CheckOutRequest(BaseModel):
    employee_id: UUID
    at: datetime | None = None
    work_date: date | None = None


class AttendanceDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attendance_day_id: UUID
    employee_id: UUID
    work_date: date
    check_in_at: datetime | None = None
    check_out_at: datetime | None = None
    status: str
    arrival_status: str | None = None
    late_minutes: int
    total_hours: Decimal
    corrected_by_request_id: UUID | None = None


# ============================================================================
# Approval schemas
# ============================================================================


class LeaveRequestCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str
    leave_type: str = "vacation"


class TimeCorrectionCreate(BaseModel):
    work_date: date
    reason: str
    check_in_at: datetime | None = None
    check_out_at: datetime | None = None


class ApproveRequest(BaseModel):
    comment: str | None = None
    level: int | None = Field(default=None, ge=1)


class RejectRequest(BaseModel):
    reason: str
    level: int | None = Field(default=None, ge=1)


class ApprovalStepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: int
    approver_role: str
    approver_id: str | None = None
    decision: str
    comment: str | None = None
    decided_at: datetime


class ApprovalRequestResponse(BaseModel):
    """Schema for an approval request and its trail."""

    model_config = ConfigDict(from_attributes=True)

    approval_request_id: UUID
    requester_id: UUID
    requester_role: str
    kind: str
    reason: str
    payload: dict[str, Any]
    status: str
    display_status: str
    approval_chain: list[str]
    current_approval_level: int
    total_approvals_required: int
    expected_role: str | None = None
    rejection_reason: str | None = None
    version: int
    created_at: datetime
    completed_at: datetime | None = None
    steps: list[ApprovalStepResponse] = Field(default_factory=list)


# ============================================================================
# Tax settings schemas
# ============================================================================


class TaxSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    minimum_taxable_income: Decimal
    tax_exemption_enabled: bool
    auto_apply_exemption: bool
    updated_at: datetime | None = None
    updated_by: str | None = None


class TaxSettingsUpdate(BaseModel):
    minimum_taxable_income: Decimal | None = None
    tax_exemption_enabled: bool | None = None
    auto_apply_exemption: bool | None = None


class TaxSettingsUpdated(BaseModel):
    settings: TaxSettingsResponse
    employees_updated: int


class ExemptEmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_number: str
    full_name: str
    monthly_rate: Decimal | None = None


class TaxExemptionSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    minimum_taxable_income: Decimal
    tax_exemption_enabled: bool
    total_employees: int
    exempt_count: int
    taxable_count: int
    exempt_employees: list[ExemptEmployeeResponse]
