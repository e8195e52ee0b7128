"""Approval request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payroll_workflow.api.dependencies import (
    ActorId,
    ActorRole,
    DbSession,
    EmployeeActor,
)
from payroll_workflow.api.schemas import (
    ApprovalRequestResponse,
    ApproveRequest,
    ErrorResponse,
    LeaveRequestCreate,
    RejectRequest,
    TimeCorrectionCreate,
)
from payroll_workflow.services.approval_workflow import ApprovalWorkflowService

router = APIRouter(prefix="/approval-requests", tags=["approvals"])

_errors = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/leave",
    response_model=ApprovalRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
)
async def submit_leave(
    db: DbSession,
    requester_id: EmployeeActor,
    payload: LeaveRequestCreate,
) -> ApprovalRequestResponse:
    request = await ApprovalWorkflowService(db).submit_leave(
        requester_id,
        payload.start_date,
        payload.end_date,
        payload.reason,
        payload.leave_type,
    )
    return ApprovalRequestResponse.model_validate(request)


@router.post(
    "/time-correction",
    response_model=ApprovalRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
)
async def submit_time_correction(
    db: DbSession,
    requester_id: EmployeeActor,
    payload: TimeCorrectionCreate,
) -> ApprovalRequestResponse:
    request = await ApprovalWorkflowService(db).submit_time_correction(
        requester_id,
        payload.work_date,
        payload.reason,
        payload.check_in_at,
        payload.check_out_at,
    )
    return ApprovalRequestResponse.model_validate(request)


@router.get("/pending", response_model=list[ApprovalRequestResponse])
async def list_pending(db: DbSession, actor_role: ActorRole) -> list[ApprovalRequestResponse]:
    """Requests waiting on the caller's role."""
    requests = await ApprovalWorkflowService(db).pending_for(actor_role)
    return [ApprovalRequestResponse.model_validate(r) for r in requests]


@router.get("/mine", response_model=list[ApprovalRequestResponse], responses=_errors)
async def list_mine(
    db: DbSession,
    requester_id: EmployeeActor,
    kind: Annotated[str | None, Query()] = None,
    request_status: Annotated[str | None, Query(alias="status")] = None,
) -> list[ApprovalRequestResponse]:
    """The caller's own requests, newest first."""
    requests = await ApprovalWorkflowService(db).list_for_requester(
        requester_id, kind, request_status
    )
    return [ApprovalRequestResponse.model_validate(r) for r in requests]


@router.get("/history", response_model=list[ApprovalRequestResponse], responses=_errors)
async def list_history(
    db: DbSession,
    actor_role: ActorRole,
    actor_id: ActorId,
    kind: Annotated[str | None, Query()] = None,
    request_status: Annotated[str | None, Query(alias="status")] = None,
) -> list[ApprovalRequestResponse]:
    """Approvers see every request; other roles see their own."""
    requests = await ApprovalWorkflowService(db).history(
        actor_role, actor_id, kind, request_status
    )
    return [ApprovalRequestResponse.model_validate(r) for r in requests]


@router.get("/{request_id}", response_model=ApprovalRequestResponse, responses=_errors)
async def get_request(
    db: DbSession,
    request_id: Annotated[UUID, Path()],
) -> ApprovalRequestResponse:
    request = await ApprovalWorkflowService(db).get(request_id)
    return ApprovalRequestResponse.model_validate(request)


@router.post("/{request_id}/approve", response_model=ApprovalRequestResponse, responses=_errors)
async def approve_request(
    db: DbSession,
    request_id: Annotated[UUID, Path()],
    actor_role: ActorRole,
    actor_id: ActorId,
    payload: ApproveRequest | None = None,
) -> ApprovalRequestResponse:
    request = await ApprovalWorkflowService(db).approve(
        request_id,
        actor_role,
        actor_id,
        payload.comment if payload else None,
        payload.level if payload else None,
    )
    return ApprovalRequestResponse.model_validate(request)


@router.post("/{request_id}/reject", response_model=ApprovalRequestResponse, responses=_errors)
async def reject_request(
    db: DbSession,
    request_id: Annotated[UUID, Path()],
    payload: RejectRequest,
    actor_role: ActorRole,
    actor_id: ActorId,
) -> ApprovalRequestResponse:
    request = await ApprovalWorkflowService(db).reject(
        request_id, actor_role, payload.reason, actor_id, payload.level
    )
    return ApprovalRequestResponse.model_validate(request)
