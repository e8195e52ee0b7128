"""Employee payslip API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from payroll_workflow.api.dependencies import ActorId, DbSession, EmployeeActor, OptionalActorRole
from payroll_workflow.api.schemas import ErrorResponse, PayslipResponse
from payroll_workflow.services.payroll_period_service import PayrollPeriodService

router = APIRouter(prefix="/payslips", tags=["payslips"])


@router.get("/mine", response_model=list[PayslipResponse])
async def list_my_payslips(
    db: DbSession,
    employee_id: EmployeeActor,
) -> list[PayslipResponse]:
    """The caller's payslips, latest period first."""
    payslips = await PayrollPeriodService(db).list_employee_payslips(employee_id)
    return [PayslipResponse.model_validate(p) for p in payslips]


@router.get(
    "/{payslip_id}",
    response_model=PayslipResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payslip(
    db: DbSession,
    payslip_id: Annotated[UUID, Path()],
    actor_role: OptionalActorRole,
    actor_id: ActorId,
) -> PayslipResponse:
    payslip = await PayrollPeriodService(db).get_payslip(payslip_id, actor_role, actor_id)
    return PayslipResponse.model_validate(payslip)
