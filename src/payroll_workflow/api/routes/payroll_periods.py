"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_workflow.api.dependencies import ActorId, ActorRole, DbSession
from payroll_workflow.api.schemas import (
    ComputeAllResponse,
    ComputeRecordRequest,
    ErrorResponse,
    PayrollPeriodCreate,
    PayrollPeriodCreated,
    PayrollPeriodResponse,
    PayrollRecordResponse,
    PayslipResponse,
    PayslipRunResponse,
    PeriodSummaryResponse,
    RecordOutcomeResponse,
    ReturnRecordRequest,
    WarningResponse,
)
from payroll_workflow.errors import EntityNotFound
from payroll_workflow.services.payroll_period_service import HolidaySpec, PayrollPeriodService

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])

_errors = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


async def _record_in_period(
    service: PayrollPeriodService, period_id: UUID, record_id: UUID
) -> None:
    record = await service.get_record(record_id)
    if record.payroll_period_id != period_id:
        raise EntityNotFound("PayrollRecord", record_id)


# ============================================================================
# Periods
# ============================================================================


@router.post(
    "",
    response_model=PayrollPeriodCreated,
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
)
async def create_payroll_period(
    db: DbSession,
    payload: PayrollPeriodCreate,
    actor_id: ActorId,
) -> PayrollPeriodCreated:
    """Initialize a period with one draft record per eligible employee."""
    service = PayrollPeriodService(db)
    result = await service.initialize(
        period_name=payload.period_name,
        cycle=payload.cycle.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        cutoff_start=payload.attendance_cutoff_start,
        cutoff_end=payload.attendance_cutoff_end,
        holidays=[
            HolidaySpec(h.holiday_date, h.holiday_type, h.name) for h in payload.holidays
        ],
        created_by=actor_id,
    )
    return PayrollPeriodCreated(
        period=PayrollPeriodResponse.model_validate(result.period),
        records_created=result.records_created,
        warnings=[WarningResponse(code=w.code, detail=w.message) for w in result.warnings],
    )


@router.get("", response_model=list[PayrollPeriodResponse])
async def list_payroll_periods(
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[PayrollPeriodResponse]:
    periods = await PayrollPeriodService(db).list_periods(status_filter)
    return [PayrollPeriodResponse.model_validate(p) for p in periods]


@router.get("/{period_id}", response_model=PayrollPeriodResponse, responses=_errors)
async def get_payroll_period(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    period = await PayrollPeriodService(db).get_period(period_id)
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/records",
    response_model=list[PayrollRecordResponse],
    responses=_errors,
)
async def list_payroll_records(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[PayrollRecordResponse]:
    service = PayrollPeriodService(db)
    await service.get_period(period_id)
    records = await service.list_records(period_id, status_filter)
    return [PayrollRecordResponse.model_validate(r) for r in records]


@router.get("/{period_id}/summary", response_model=PeriodSummaryResponse, responses=_errors)
async def get_period_summary(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> PeriodSummaryResponse:
    summary = await PayrollPeriodService(db).summary(period_id)
    return PeriodSummaryResponse(
        period=PayrollPeriodResponse.model_validate(summary.period),
        records_by_status=summary.records_by_status,
        total_gross=summary.total_gross,
        total_deductions=summary.total_deductions,
        total_net=summary.total_net,
        records_with_deficit=summary.records_with_deficit,
        total_sss=summary.total_sss,
        total_philhealth=summary.total_philhealth,
        total_pagibig=summary.total_pagibig,
        total_withholding_tax=summary.total_withholding_tax,
    )


# ============================================================================
# Computation and review
# ============================================================================


@router.post("/{period_id}/compute", response_model=ComputeAllResponse, responses=_errors)
async def compute_period(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> ComputeAllResponse:
    """Compute every draft or computed record; failures are reported per record."""
    result = await PayrollPeriodService(db).compute_all(period_id)
    return ComputeAllResponse(
        period=PayrollPeriodResponse.model_validate(result.period),
        computed=result.computed_count,
        failed=result.error_count,
        outcomes=[RecordOutcomeResponse.model_validate(o) for o in result.outcomes],
    )


@router.post(
    "/{period_id}/records/{record_id}/compute",
    response_model=PayrollRecordResponse,
    responses=_errors,
)
async def compute_record(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    record_id: Annotated[UUID, Path()],
    payload: ComputeRecordRequest | None = None,
) -> PayrollRecordResponse:
    service = PayrollPeriodService(db)
    await _record_in_period(service, period_id, record_id)
    extra = payload.extra_deductions if payload else None
    record = await service.compute_record(record_id, extra)
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{period_id}/records/{record_id}/approve",
    response_model=PayrollRecordResponse,
    responses=_errors,
)
async def approve_record(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    record_id: Annotated[UUID, Path()],
    actor_role: ActorRole,
    actor_id: ActorId,
) -> PayrollRecordResponse:
    service = PayrollPeriodService(db)
    await _record_in_period(service, period_id, record_id)
    record = await service.approve_record(record_id, actor_role, actor_id)
    return PayrollRecordResponse.model_validate(record)


@router.post(
    "/{period_id}/records/{record_id}/return",
    response_model=PayrollRecordResponse,
    responses=_errors,
)
async def return_record(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    record_id: Annotated[UUID, Path()],
    payload: ReturnRecordRequest,
    actor_role: ActorRole,
    actor_id: ActorId,
) -> PayrollRecordResponse:
    service = PayrollPeriodService(db)
    await _record_in_period(service, period_id, record_id)
    record = await service.return_record(record_id, actor_role, payload.reason, actor_id)
    return PayrollRecordResponse.model_validate(record)


# ============================================================================
# Lock and payroll run
# ============================================================================


@router.post("/{period_id}/lock", response_model=PayrollPeriodResponse, responses=_errors)
async def lock_period(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    actor_role: ActorRole,
    actor_id: ActorId,
) -> PayrollPeriodResponse:
    """Lock the period. Every record must be approved."""
    period = await PayrollPeriodService(db).lock(period_id, actor_role, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post("/{period_id}/payslips", response_model=PayslipRunResponse, responses=_errors)
async def generate_payslips(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
    actor_role: ActorRole,
    actor_id: ActorId,
) -> PayslipRunResponse:
    """Generate payslips for a locked period. Repeating the call is harmless."""
    result = await PayrollPeriodService(db).generate_payslips(period_id, actor_role, actor_id)
    return PayslipRunResponse(
        period=PayrollPeriodResponse.model_validate(result.period),
        created=result.created,
        payslips=[PayslipResponse.model_validate(p) for p in result.payslips],
    )


@router.get("/{period_id}/payslips", response_model=list[PayslipResponse], responses=_errors)
async def list_payslips(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> list[PayslipResponse]:
    service = PayrollPeriodService(db)
    await service.get_period(period_id)
    return [PayslipResponse.model_validate(p) for p in await service.list_payslips(period_id)]
