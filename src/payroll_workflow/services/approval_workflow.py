"""Multi-level approval of leave and time-correction requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.attendance_classifier import AttendanceClassifier
from payroll_workflow.calculators.calendar import WorkCalendar
from payroll_workflow.config import Settings, get_settings
from payroll_workflow.database import advisory_lock, request_lock_key
from payroll_workflow.errors import (
    EntityNotFound,
    InsufficientBalance,
    InvalidDateRange,
    InvalidSetting,
    MissingReason,
    NoApprovalChain,
    NotYourTurn,
    RequestClosed,
    ValidationError,
)
from payroll_workflow.models import ApprovalRequest, ApprovalStep, AttendanceDay, Employee
from payroll_workflow.models.base import utcnow
from payroll_workflow.services.state_machine import ApprovalStateMachine, ApprovalStatus

logger = logging.getLogger(__name__)

LEAVE = "leave"
TIME_CORRECTION = "time_correction"
REQUEST_KINDS = (LEAVE, TIME_CORRECTION)

# Requester role -> roles that must approve, in order
DEFAULT_APPROVAL_CHAINS: dict[str, tuple[str, ...]] = {
    "employee": ("supervisor", "hr_staff", "hr_head"),
    "supervisor": ("hr_staff", "hr_head"),
    "hr_staff": ("hr_head",),
    "hr_head": ("supervisor",),
}


class ApprovalChainPolicy:
    """Resolves the approval chain for a request kind and requester role.

    ``overrides`` keyed by ``(kind, role)`` win over the per-role chains.
    """

    def __init__(
        self,
        chains: Mapping[str, tuple[str, ...]] | None = None,
        overrides: Mapping[tuple[str, str], tuple[str, ...]] | None = None,
    ):
        self.chains = dict(DEFAULT_APPROVAL_CHAINS if chains is None else chains)
        self.overrides = dict(overrides or {})

    def resolve(self, kind: str, requester_role: str) -> tuple[str, ...]:
        chain = self.overrides.get((kind, requester_role))
        if chain is None:
            chain = self.chains.get(requester_role)
        if not chain:
            raise NoApprovalChain(requester_role, kind)
        return tuple(chain)

    def approver_roles(self) -> set[str]:
        """Every role that appears on some chain."""
        chains = [*self.chains.values(), *self.overrides.values()]
        return {role for chain in chains for role in chain}


class ApprovalWorkflowService:
    """Submits requests and moves them through their chain.

    Approvals are strictly sequential: only the role at the current level
    may act. Concurrent decisions on one request are serialized; the first
    writer wins and the other sees the request as closed. The request's
    effect (leave balance debit, attendance overwrite) is applied in the same
    transaction as the final approval.
    """

    def __init__(
        self,
        session: AsyncSession,
        policy: ApprovalChainPolicy | None = None,
        settings: Settings | None = None,
        leave_calendar: WorkCalendar | None = None,
        classifier: AttendanceClassifier | None = None,
    ):
        settings = settings or get_settings()
        self.session = session
        self.policy = policy or ApprovalChainPolicy()
        self.leave_calendar = leave_calendar or settings.leave_calendar()
        self.classifier = classifier or AttendanceClassifier(settings.attendance_policy())

    # ===== Queries =====

    async def get(self, request_id: UUID, fresh: bool = False) -> ApprovalRequest:
        stmt = select(ApprovalRequest).where(ApprovalRequest.approval_request_id == request_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        request = (await self.session.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise EntityNotFound("ApprovalRequest", request_id)
        return request

    async def pending_for(self, role: str) -> list[ApprovalRequest]:
        """Open requests waiting on ``role``."""
        result = await self.session.execute(
            select(ApprovalRequest)
            .where(
                ApprovalRequest.status.in_(
                    [ApprovalStatus.PENDING.value, ApprovalStatus.IN_REVIEW.value]
                )
            )
            .order_by(ApprovalRequest.created_at)
        )
        return [r for r in result.scalars().all() if r.expected_role == role]

    async def list_for_requester(
        self,
        requester_id: UUID,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[ApprovalRequest]:
        """The requester's own requests, newest first."""
        stmt = select(ApprovalRequest).where(ApprovalRequest.requester_id == requester_id)
        return await self._list(stmt, kind, status)

    async def history(
        self,
        actor_role: str,
        actor_id: UUID | str | None,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[ApprovalRequest]:
        """Requests visible to the actor.

        Roles that sit on an approval chain see every request; anyone else
        sees only their own.
        """
        if actor_role in self.policy.approver_roles():
            return await self._list(select(ApprovalRequest), kind, status)
        if not actor_id:
            raise ValidationError("An employee ID is required to read your own requests")
        try:
            requester_id = actor_id if isinstance(actor_id, UUID) else UUID(actor_id)
        except ValueError:
            raise ValidationError(f"Invalid employee ID '{actor_id}'", actor_id=actor_id) from None
        return await self.list_for_requester(requester_id, kind, status)

    async def _list(self, stmt, kind: str | None, status: str | None) -> list[ApprovalRequest]:
        if kind is not None:
            if kind not in REQUEST_KINDS:
                raise InvalidSetting("kind", kind, f"Unknown request kind '{kind}'")
            stmt = stmt.where(ApprovalRequest.kind == kind)
        if status is not None:
            stmt = stmt.where(ApprovalRequest.status == status)
        result = await self.session.execute(stmt.order_by(ApprovalRequest.created_at.desc()))
        return list(result.scalars().all())

    # ===== Submit =====

    async def submit_leave(
        self,
        requester_id: UUID,
        start_date: date,
        end_date: date,
        reason: str,
        leave_type: str = "vacation",
    ) -> ApprovalRequest:
        """Submit a leave request.

        Days are counted on the leave calendar. The balance is checked here
        and again when the final approval debits it.
        """
        reason = _require_reason(reason)
        if end_date < start_date:
            raise InvalidDateRange(start_date, end_date)

        employee = await self._get_employee(requester_id)
        days = self.leave_calendar.count_working_days(start_date, end_date)
        if days == 0:
            raise InvalidDateRange(
                start_date, end_date, "Leave range contains no working days"
            )

        requested = Decimal(days)
        balance = employee.leave_balance or Decimal("0")
        if balance <= 0 or balance < requested:
            raise InsufficientBalance(requested, balance)

        payload = {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "leave_type": leave_type,
            "days": days,
        }
        return await self._create(employee, LEAVE, reason, payload)

    async def submit_time_correction(
        self,
        requester_id: UUID,
        work_date: date,
        reason: str,
        corrected_check_in: datetime | None = None,
        corrected_check_out: datetime | None = None,
    ) -> ApprovalRequest:
        """Submit a correction of one day's check-in and/or check-out."""
        reason = _require_reason(reason)
        if corrected_check_in is None and corrected_check_out is None:
            raise ValidationError(
                "A corrected check-in or check-out time is required",
                work_date=work_date,
            )
        employee = await self._get_employee(requester_id)
        await self._corrected_times(
            employee.employee_id, work_date, corrected_check_in, corrected_check_out
        )
        payload = {
            "work_date": work_date.isoformat(),
            "check_in_at": corrected_check_in.isoformat() if corrected_check_in else None,
            "check_out_at": corrected_check_out.isoformat() if corrected_check_out else None,
        }
        return await self._create(employee, TIME_CORRECTION, reason, payload)

    async def _create(
        self,
        employee: Employee,
        kind: str,
        reason: str,
        payload: dict[str, Any],
    ) -> ApprovalRequest:
        chain = self.policy.resolve(kind, employee.role)
        request = ApprovalRequest(
            requester_id=employee.employee_id,
            requester_role=employee.role,
            kind=kind,
            reason=reason,
            payload=payload,
            status=ApprovalStatus.PENDING.value,
            approval_chain=list(chain),
            current_approval_level=0,
            total_approvals_required=len(chain),
            steps=[],
        )
        self.session.add(request)
        await self.session.flush()
        logger.info(
            "%s request %s submitted by %s; chain %s",
            kind,
            request.approval_request_id,
            employee.employee_number,
            " -> ".join(chain),
        )
        return request

    # ===== Decide =====

    async def approve(
        self,
        request_id: UUID,
        approver_role: str,
        approver_id: str | None = None,
        comment: str | None = None,
        level: int | None = None,
    ) -> ApprovalRequest:
        """Record the current level's approval; the last one applies the request.

        ``level`` is the 1-based level the approver acts on. When omitted it is
        the approver role's position in the chain.
        """
        async with advisory_lock(self.session, request_lock_key(request_id)):
            request = await self.get(request_id, fresh=True)
            next_level = self._check_turn(request, approver_role, level)

            new_status = ApprovalStateMachine.status_after_approval(
                next_level, request.total_approvals_required
            )
            ApprovalStateMachine.validate_transition(request.status, new_status)

            final = new_status == ApprovalStatus.APPROVED
            if final:
                await self._check_applicable(request)

            await self._cas(
                request,
                new_status,
                current_approval_level=next_level,
                completed_at=utcnow() if final else None,
            )
            if final:
                await self._apply(request)
            request.steps.append(
                ApprovalStep(
                    level=next_level,
                    approver_role=approver_role,
                    approver_id=approver_id,
                    decision="approved",
                    comment=comment,
                )
            )
            await self.session.flush()

        logger.info(
            "Request %s approved by %s at level %d/%d",
            request_id,
            approver_role,
            next_level,
            request.total_approvals_required,
        )
        return request

    async def reject(
        self,
        request_id: UUID,
        approver_role: str,
        reason: str,
        approver_id: str | None = None,
        level: int | None = None,
    ) -> ApprovalRequest:
        """Reject at the current level. Rejection is final."""
        reason = _require_reason(reason)
        async with advisory_lock(self.session, request_lock_key(request_id)):
            request = await self.get(request_id, fresh=True)
            level = self._check_turn(request, approver_role, level)
            ApprovalStateMachine.validate_transition(request.status, ApprovalStatus.REJECTED)

            await self._cas(
                request,
                ApprovalStatus.REJECTED,
                rejection_reason=reason,
                completed_at=utcnow(),
            )
            request.steps.append(
                ApprovalStep(
                    level=level,
                    approver_role=approver_role,
                    approver_id=approver_id,
                    decision="rejected",
                    comment=reason,
                )
            )
            await self.session.flush()

        logger.info("Request %s rejected by %s: %s", request_id, approver_role, reason)
        return request

    @staticmethod
    def _check_turn(request: ApprovalRequest, role: str, level: int | None = None) -> int:
        """Return the 1-based level being decided, or raise."""
        if ApprovalStateMachine.is_terminal(request.status):
            raise RequestClosed(request.approval_request_id, request.status)

        acting = request.current_approval_level + 1
        if level is None and role in request.approval_chain:
            level = request.approval_chain.index(role) + 1
        if level is not None and level < acting:
            # That level was already decided by someone else
            raise RequestClosed(request.approval_request_id, request.display_status)

        expected = request.expected_role
        if role != expected or (level is not None and level != acting):
            raise NotYourTurn(role, expected or "", request.current_approval_level, request.display_status)
        return acting

    async def _cas(self, request: ApprovalRequest, to_status: ApprovalStatus, **values: Any) -> None:
        """Conditional update on version; losing the race means the request moved on."""
        values = {k: v for k, v in values.items() if v is not None}
        result = await self.session.execute(
            update(ApprovalRequest)
            .where(
                ApprovalRequest.approval_request_id == request.approval_request_id,
                ApprovalRequest.status == request.status,
                ApprovalRequest.version == request.version,
            )
            .values(status=to_status.value, version=request.version + 1, **values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = await self.get(request.approval_request_id, fresh=True)
            raise RequestClosed(request.approval_request_id, current.display_status)

    # ===== Effects =====

    async def _check_applicable(self, request: ApprovalRequest) -> None:
        """Refuse a final approval whose effect can no longer be applied."""
        if request.kind == LEAVE:
            days = Decimal(str(request.payload["days"]))
            employee = await self._get_employee(request.requester_id, fresh=True)
            if employee.leave_balance < days:
                raise InsufficientBalance(days, employee.leave_balance)
        elif request.kind == TIME_CORRECTION:
            payload = request.payload
            await self._corrected_times(
                request.requester_id,
                date.fromisoformat(payload["work_date"]),
                _parse_datetime(payload.get("check_in_at")),
                _parse_datetime(payload.get("check_out_at")),
            )

    async def _apply(self, request: ApprovalRequest) -> None:
        if request.kind == LEAVE:
            await self._debit_leave(request)
        elif request.kind == TIME_CORRECTION:
            await self._correct_attendance(request)

    async def _debit_leave(self, request: ApprovalRequest) -> None:
        days = Decimal(str(request.payload["days"]))
        result = await self.session.execute(
            update(Employee)
            .where(
                Employee.employee_id == request.requester_id,
                Employee.leave_balance >= days,
            )
            .values(leave_balance=Employee.leave_balance - days)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            employee = await self._get_employee(request.requester_id, fresh=True)
            raise InsufficientBalance(days, employee.leave_balance)

    async def _correct_attendance(self, request: ApprovalRequest) -> None:
        payload = request.payload
        work_date = date.fromisoformat(payload["work_date"])
        check_in, check_out = await self._corrected_times(
            request.requester_id,
            work_date,
            _parse_datetime(payload.get("check_in_at")),
            _parse_datetime(payload.get("check_out_at")),
        )

        day = await self._attendance_day(request.requester_id, work_date)
        if day is None:
            day = AttendanceDay(employee_id=request.requester_id, work_date=work_date)
            self.session.add(day)
        classified = self.classifier.classify_day(check_in, check_out)

        day.check_in_at = check_in
        day.check_out_at = check_out
        day.status = classified.status.value
        day.arrival_status = classified.arrival_status.value if classified.arrival_status else None
        day.late_minutes = classified.late_minutes
        day.total_hours = classified.total_hours
        day.corrected_by_request_id = request.approval_request_id
        await self.session.flush()

    async def _attendance_day(self, employee_id: UUID, work_date: date) -> AttendanceDay | None:
        result = await self.session.execute(
            select(AttendanceDay).where(
                AttendanceDay.employee_id == employee_id,
                AttendanceDay.work_date == work_date,
            )
        )
        return result.scalar_one_or_none()

    async def _corrected_times(
        self,
        employee_id: UUID,
        work_date: date,
        corrected_in: datetime | None,
        corrected_out: datetime | None,
    ) -> tuple[datetime | None, datetime | None]:
        """Merge a correction with the stored day; the result must be ordered."""
        day = await self._attendance_day(employee_id, work_date)
        check_in = corrected_in or (day.check_in_at if day else None)
        check_out = corrected_out or (day.check_out_at if day else None)
        if check_in is not None and check_out is not None and check_out < check_in:
            raise InvalidDateRange(
                check_in,
                check_out,
                "Check-out cannot be earlier than check-in",
            )
        return check_in, check_out

    async def _get_employee(self, employee_id: UUID, fresh: bool = False) -> Employee:
        stmt = select(Employee).where(Employee.employee_id == employee_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        employee = (await self.session.execute(stmt)).scalar_one_or_none()
        if employee is None:
            raise EntityNotFound("Employee", employee_id)
        return employee


def _require_reason(reason: str | None) -> str:
    if reason is None or not reason.strip():
        raise MissingReason("reason")
    return reason.strip()


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
