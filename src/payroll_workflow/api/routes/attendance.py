"""Attendance API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_workflow.api.dependencies import DbSession
from payroll_workflow.api.schemas import (
    AttendanceDayResponse,
    CheckInRequest,
    CheckOutRequest,
    ErrorResponse,
)
from payroll_workflow.services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])

_errors = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/check-in",
    response_model=AttendanceDayResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
)
async def check_in(db: DbSession, payload: CheckInRequest) -> AttendanceDayResponse:
    day = await AttendanceService(db).check_in(payload.employee_id, payload.at)
    return AttendanceDayResponse.model_validate(day)


@router.post("/check-out", response_model=AttendanceDayResponse, responses=_errors)
async def check_out(db: DbSession, payload: CheckOutRequest) -> AttendanceDayResponse:
    day = await AttendanceService(db).check_out(payload.employee_id, payload.at, payload.work_date)
    return AttendanceDayResponse.model_validate(day)


@router.get(
    "/{employee_id}",
    response_model=list[AttendanceDayResponse],
    responses=_errors,
)
async def list_attendance(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    start: Annotated[date | None, Query()] = None,
    end: Annotated[date | None, Query()] = None,
) -> list[AttendanceDayResponse]:
    days = await AttendanceService(db).list_for_employee(employee_id, start, end)
    return [AttendanceDayResponse.model_validate(d) for d in days]
