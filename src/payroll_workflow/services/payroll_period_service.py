"""Payroll period service - orchestrates a period from creation to payroll run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.engine import ComputationInputs, PayrollComputationEngine
from payroll_workflow.calculators.types import (
    ZERO,
    HolidayType,
    LeaveSpan,
    PayrollComputation,
    PayrollCycle,
    PeriodWindow,
    TaxSettingsSnapshot,
    to_money,
)
from payroll_workflow.config import Settings, get_settings
from payroll_workflow.database import advisory_lock, period_lock_key, record_lock_key
from payroll_workflow.errors import (
    EngineError,
    EntityNotFound,
    IncompleteApprovals,
    InvalidDateRange,
    InvalidSetting,
    InvalidTransition,
    InvariantViolation,
    MissingReason,
    NoAttendanceInWindow,
    NoEligibleEmployees,
    NotAuthorized,
    OverlappingPeriod,
    RecordNotComputable,
    UnexpectedError,
    ValidationError,
)
from payroll_workflow.models import (
    ApprovalRequest,
    AttendanceDay,
    Employee,
    PayrollHoliday,
    PayrollPeriod,
    PayrollRecord,
    Payslip,
)
from payroll_workflow.models.base import utcnow
from payroll_workflow.services.locking_service import LockingService
from payroll_workflow.services.reference_data_service import ReferenceDataService
from payroll_workflow.services.state_machine import (
    ApprovalStatus,
    PeriodStateMachine,
    PeriodStatus,
    RecordStateMachine,
    RecordStatus,
)

logger = logging.getLogger(__name__)

# Roles that may read any employee's payslip
PAYSLIP_VIEWER_ROLES = ("hr_staff", "hr_head")


@dataclass(frozen=True)
class HolidaySpec:
    holiday_date: date
    holiday_type: HolidayType
    name: str | None = None


@dataclass
class InitializeResult:
    period: PayrollPeriod
    records_created: int
    warnings: list[EngineError] = field(default_factory=list)


@dataclass
class RecordOutcome:
    """Per-record result of a batch computation."""

    record_id: UUID
    employee_id: UUID
    status: str
    ok: bool
    net_pay: Decimal | None = None
    error: dict[str, Any] | None = None
    exception: EngineError | None = field(default=None, repr=False, compare=False)


@dataclass
class ComputeAllResult:
    period: PayrollPeriod
    outcomes: list[RecordOutcome]

    @property
    def computed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok and o.error is not None)


@dataclass
class PayslipRunResult:
    period: PayrollPeriod
    payslips: list[Payslip]
    created: int


@dataclass
class PeriodSummary:
    period: PayrollPeriod
    records_by_status: dict[str, int]
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    records_with_deficit: int
    total_sss: Decimal = ZERO
    total_philhealth: Decimal = ZERO
    total_pagibig: Decimal = ZERO
    total_withholding_tax: Decimal = ZERO


class PayrollPeriodService:
    """Service for managing the payroll period lifecycle.

    Operations:
    - initialize: Create a period with one draft record per eligible employee
    - compute_all / compute_record: Run the computation engine
    - approve_record / return_record: Review individual records
    - lock: Freeze every record once all are approved
    - generate_payslips: Snapshot locked records and mark the period run

    Nothing here commits; the caller owns the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        engine: PayrollComputationEngine | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.locking_service = LockingService(session)
        self.reference_data = ReferenceDataService(session, self.settings)
        self._engine = engine

    # ===== Queries =====

    async def get_period(self, period_id: UUID, fresh: bool = False) -> PayrollPeriod:
        stmt = select(PayrollPeriod).where(PayrollPeriod.payroll_period_id == period_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        period = (await self.session.execute(stmt)).scalar_one_or_none()
        if period is None:
            raise EntityNotFound("PayrollPeriod", period_id)
        return period

    async def get_record(self, record_id: UUID, fresh: bool = False) -> PayrollRecord:
        stmt = select(PayrollRecord).where(PayrollRecord.payroll_record_id == record_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        record = (await self.session.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise EntityNotFound("PayrollRecord", record_id)
        return record

    async def list_periods(self, status: str | None = None) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriod).order_by(PayrollPeriod.start_date.desc())
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)
        return list((await self.session.execute(stmt)).scalars().all())

    async def list_records(self, period_id: UUID, status: str | None = None) -> list[PayrollRecord]:
        stmt = (
            select(PayrollRecord)
            .where(PayrollRecord.payroll_period_id == period_id)
            .order_by(PayrollRecord.created_at, PayrollRecord.payroll_record_id)
        )
        if status is not None:
            stmt = stmt.where(PayrollRecord.status == status)
        return list((await self.session.execute(stmt)).scalars().all())

    async def list_payslips(self, period_id: UUID) -> list[Payslip]:
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.payroll_period_id == period_id)
            .order_by(Payslip.employee_name)
        )
        return list(result.scalars().all())

    async def list_employee_payslips(self, employee_id: UUID) -> list[Payslip]:
        """An employee's payslips, latest period first."""
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.employee_id == employee_id)
            .order_by(Payslip.period_end.desc())
        )
        return list(result.scalars().all())

    async def get_payslip(
        self,
        payslip_id: UUID,
        actor_role: str | None,
        actor_id: UUID | str | None,
    ) -> Payslip:
        """One payslip, readable by its employee and by HR."""
        payslip = await self.session.get(Payslip, payslip_id)
        if payslip is None:
            raise EntityNotFound("Payslip", payslip_id)
        own = actor_id is not None and str(payslip.employee_id) == str(actor_id)
        if not own and actor_role not in PAYSLIP_VIEWER_ROLES:
            raise NotAuthorized(actor_role, "view another employee's payslip", PAYSLIP_VIEWER_ROLES)
        return payslip

    # ===== Initialize =====

    async def initialize(
        self,
        period_name: str,
        cycle: str,
        start_date: date,
        end_date: date,
        cutoff_start: date | None = None,
        cutoff_end: date | None = None,
        holidays: Iterable[HolidaySpec] = (),
        created_by: str | None = None,
    ) -> InitializeResult:
        """Create a period and a draft record for every eligible employee.

        Eligible means active and hired on or before the period end. An empty
        roster or an empty attendance window is reported as a warning, not an
        error.
        """
        if not period_name or not period_name.strip():
            raise MissingReason("period_name")
        try:
            cycle_value = PayrollCycle(cycle)
        except ValueError:
            raise InvalidSetting("cycle", cycle, f"Unknown payroll cycle '{cycle}'") from None
        if end_date < start_date:
            raise InvalidDateRange(start_date, end_date)

        cutoff_start = cutoff_start or start_date
        cutoff_end = cutoff_end or end_date
        if cutoff_end < cutoff_start:
            raise InvalidDateRange(cutoff_start, cutoff_end, "Attendance cutoff end is before its start")

        holiday_list = list(holidays)
        seen: set[date] = set()
        for holiday in holiday_list:
            if not start_date <= holiday.holiday_date <= end_date and not (
                cutoff_start <= holiday.holiday_date <= cutoff_end
            ):
                raise InvalidDateRange(
                    start_date, end_date, f"Holiday {holiday.holiday_date} falls outside the period"
                )
            if holiday.holiday_date in seen:
                raise InvalidSetting("holidays", holiday.holiday_date, "Duplicate holiday date")
            seen.add(holiday.holiday_date)

        overlapping = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.start_date <= end_date, PayrollPeriod.end_date >= start_date)
            .limit(1)
        )
        existing = overlapping.scalar_one_or_none()
        if existing is not None:
            raise OverlappingPeriod(existing.period_name, existing.start_date, existing.end_date)

        period = PayrollPeriod(
            period_name=period_name.strip(),
            cycle=cycle_value.value,
            start_date=start_date,
            end_date=end_date,
            attendance_cutoff_start=cutoff_start,
            attendance_cutoff_end=cutoff_end,
            status=PeriodStatus.PENDING_COMPUTATION.value,
            created_by=created_by,
            holidays=[
                PayrollHoliday(
                    holiday_date=h.holiday_date,
                    holiday_type=HolidayType(h.holiday_type).value,
                    name=h.name,
                )
                for h in holiday_list
            ],
        )
        self.session.add(period)
        await self.session.flush()

        employees = await self.session.execute(
            select(Employee)
            .where(
                Employee.status == "active",
                (Employee.hire_date.is_(None)) | (Employee.hire_date <= end_date),
            )
            .order_by(Employee.employee_number)
        )
        eligible = list(employees.scalars().all())
        for employee in eligible:
            self.session.add(
                PayrollRecord(
                    payroll_period_id=period.payroll_period_id,
                    employee_id=employee.employee_id,
                    status=RecordStatus.DRAFT.value,
                )
            )
        period.employee_count = len(eligible)
        await self.session.flush()

        warnings: list[EngineError] = []
        if not eligible:
            warnings.append(NoEligibleEmployees(end_date))
        attendance_rows = await self.session.scalar(
            select(func.count())
            .select_from(AttendanceDay)
            .where(AttendanceDay.work_date.between(cutoff_start, cutoff_end))
        )
        if not attendance_rows:
            warnings.append(NoAttendanceInWindow(cutoff_start, cutoff_end))

        for warning in warnings:
            logger.warning("Period %s: %s", period.period_name, warning.message)
        logger.info(
            "Initialized payroll period %s (%s to %s) with %d record(s)",
            period.period_name,
            start_date,
            end_date,
            len(eligible),
        )
        return InitializeResult(period=period, records_created=len(eligible), warnings=warnings)

    # ===== Compute =====

    async def compute_all(self, period_id: UUID) -> ComputeAllResult:
        """Compute every draft/computed record in the period.

        A failure on one record is reported in its outcome and never stops
        the batch. Approved records are left as they are.
        """
        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)
            self.locking_service.ensure_mutable(period)

            engine = await self._get_engine()
            tax_settings = (await self.reference_data.get_tax_settings()).snapshot()
            window = self._window(period)

            outcomes: list[RecordOutcome] = []
            for record in await self.list_records(period_id):
                if not RecordStateMachine.can_compute(record.status):
                    outcomes.append(
                        RecordOutcome(record.payroll_record_id, record.employee_id, record.status, ok=False)
                    )
                    continue
                async with advisory_lock(self.session, record_lock_key(record.payroll_record_id)):
                    outcomes.append(
                        await self._compute_one(
                            record, window, engine, tax_settings, record.adjustment_deductions
                        )
                    )

            await self._refresh_totals(period)
            await self._maybe_complete(period)

        result = ComputeAllResult(period=period, outcomes=outcomes)
        logger.info(
            "Computed period %s: %d ok, %d failed, %d skipped",
            period.period_name,
            result.computed_count,
            result.error_count,
            len(outcomes) - result.computed_count - result.error_count,
        )
        return result

    async def compute_record(
        self,
        record_id: UUID,
        extra_deductions: Decimal | None = None,
    ) -> PayrollRecord:
        """Compute (or recompute) a single record.

        ``extra_deductions`` replaces the record's stored ad-hoc deduction and
        is kept for later batch recomputes; None keeps the stored amount.
        """
        if extra_deductions is not None and extra_deductions < 0:
            raise ValidationError(
                "Extra deductions cannot be negative", extra_deductions=extra_deductions
            )
        record = await self.get_record(record_id)
        period_id = record.payroll_period_id

        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)
            self.locking_service.ensure_mutable(period)

            async with advisory_lock(self.session, record_lock_key(record_id)):
                record = await self.get_record(record_id, fresh=True)
                if not RecordStateMachine.can_compute(record.status):
                    raise RecordNotComputable(record_id, record.status)

                engine = await self._get_engine()
                tax_settings = (await self.reference_data.get_tax_settings()).snapshot()
                adjustment = (
                    record.adjustment_deductions
                    if extra_deductions is None
                    else to_money(extra_deductions)
                )
                outcome = await self._compute_one(
                    record, self._window(period), engine, tax_settings, adjustment
                )
                if outcome.exception is not None:
                    raise outcome.exception

            await self._refresh_totals(period)
            await self._maybe_complete(period)

        return record

    async def _compute_one(
        self,
        record: PayrollRecord,
        window: PeriodWindow,
        engine: PayrollComputationEngine,
        tax_settings: TaxSettingsSnapshot,
        adjustment: Decimal,
    ) -> RecordOutcome:
        employee = record.employee
        try:
            inputs = await self._build_inputs(employee, window, tax_settings, adjustment)
            computation = engine.compute(inputs)
        except InvariantViolation:
            raise
        except EngineError as e:
            return await self._record_failure(record, e)
        except Exception as e:
            logger.exception("Unexpected error computing record %s", record.payroll_record_id)
            return await self._record_failure(
                record, UnexpectedError(str(e) or type(e).__name__, record.status)
            )

        await self._write_computation(record, computation, adjustment)
        if computation.has_deficit:
            logger.warning(
                "Record %s for %s has negative net pay %s",
                record.payroll_record_id,
                employee.full_name,
                computation.net_pay,
            )
        return RecordOutcome(
            record.payroll_record_id,
            record.employee_id,
            record.status,
            ok=True,
            net_pay=computation.net_pay,
        )

    async def _record_failure(self, record: PayrollRecord, error: EngineError) -> RecordOutcome:
        await self.session.execute(
            update(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == record.payroll_record_id)
            .values(error_message=error.message)
            .execution_options(synchronize_session="fetch")
        )
        logger.warning(
            "Record %s failed to compute: [%s] %s",
            record.payroll_record_id,
            error.code,
            error.message,
        )
        return RecordOutcome(
            record.payroll_record_id,
            record.employee_id,
            record.status,
            ok=False,
            error=error.to_dict(),
            exception=error,
        )

    async def _write_computation(
        self,
        record: PayrollRecord,
        computation: PayrollComputation,
        adjustment: Decimal,
    ) -> None:
        RecordStateMachine.validate_transition(record.status, RecordStatus.COMPUTED)
        summary = computation.attendance

        values: dict[str, Any] = {
            **asdict(computation.earnings),
            **asdict(computation.deductions),
            "gross_pay": computation.gross_pay,
            "total_deductions": computation.total_deductions,
            "net_pay": computation.net_pay,
            "adjustment_deductions": adjustment,
            "scheduled_days": summary.scheduled_days,
            "present_days": summary.present_days,
            "absent_days": summary.absent_days,
            "leave_days": summary.leave_days,
            "late_hours": to_money(summary.late_hours),
            "undertime_hours": to_money(summary.undertime_hours),
            "overtime_hours": to_money(summary.overtime_hours),
            "night_hours": to_money(summary.night_hours),
            "holiday_hours": to_money(sum(summary.holiday_hours.values(), ZERO)),
            "daily_rate": computation.rates.daily_rate,
            "hourly_rate": computation.rates.hourly_rate,
            "calculation_id": computation.calculation_id,
            "inputs_fingerprint": computation.inputs_fingerprint,
            "error_message": None,
            "status": RecordStatus.COMPUTED.value,
            "computed_at": utcnow(),
            "version": record.version + 1,
        }
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id == record.payroll_record_id,
                PayrollRecord.version == record.version,
                PayrollRecord.status.in_([s.value for s in RecordStateMachine.COMPUTABLE]),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = await self.get_record(record.payroll_record_id, fresh=True)
            raise RecordNotComputable(record.payroll_record_id, current.status)

    async def _build_inputs(
        self,
        employee: Employee,
        window: PeriodWindow,
        tax_settings: TaxSettingsSnapshot,
        adjustment: Decimal,
    ) -> ComputationInputs:
        attendance = await self.session.execute(
            select(AttendanceDay)
            .where(
                AttendanceDay.employee_id == employee.employee_id,
                AttendanceDay.work_date.between(window.cutoff_start, window.cutoff_end),
            )
            .order_by(AttendanceDay.work_date)
        )
        leaves = await self._approved_leaves(employee.employee_id, window)
        return ComputationInputs(
            profile=employee.pay_profile(),
            window=window,
            attendance=tuple(day.to_entry() for day in attendance.scalars().all()),
            tax_settings=tax_settings,
            leaves=tuple(leaves),
            extra_deductions=adjustment,
        )

    async def _approved_leaves(self, employee_id: UUID, window: PeriodWindow) -> list[LeaveSpan]:
        result = await self.session.execute(
            select(ApprovalRequest).where(
                ApprovalRequest.requester_id == employee_id,
                ApprovalRequest.kind == "leave",
                ApprovalRequest.status == ApprovalStatus.APPROVED.value,
            )
        )
        spans = []
        for request in result.scalars().all():
            span = LeaveSpan(
                start_date=date.fromisoformat(request.payload["start_date"]),
                end_date=date.fromisoformat(request.payload["end_date"]),
            )
            if span.start_date <= window.cutoff_end and window.cutoff_start <= span.end_date:
                spans.append(span)
        return spans

    async def _get_engine(self) -> PayrollComputationEngine:
        if self._engine is None:
            self._engine = PayrollComputationEngine.from_settings(
                self.settings,
                contributions=await self.reference_data.load_contribution_table(),
                tax_calculator=await self.reference_data.load_tax_calculator(),
            )
        return self._engine

    @staticmethod
    def _window(period: PayrollPeriod) -> PeriodWindow:
        return PeriodWindow(
            period_id=period.payroll_period_id,
            cycle=PayrollCycle(period.cycle),
            start_date=period.start_date,
            end_date=period.end_date,
            cutoff_start=period.attendance_cutoff_start,
            cutoff_end=period.attendance_cutoff_end,
            holidays={h.holiday_date: HolidayType(h.holiday_type) for h in period.holidays},
        )

    async def _refresh_totals(self, period: PayrollPeriod) -> None:
        row = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(PayrollRecord.gross_pay), 0),
                    func.coalesce(func.sum(PayrollRecord.total_deductions), 0),
                    func.coalesce(func.sum(PayrollRecord.net_pay), 0),
                ).where(PayrollRecord.payroll_period_id == period.payroll_period_id)
            )
        ).one()
        period.total_gross = to_money(Decimal(str(row[0])))
        period.total_deductions = to_money(Decimal(str(row[1])))
        period.total_net = to_money(Decimal(str(row[2])))
        await self.session.flush()

    async def _maybe_complete(self, period: PayrollPeriod) -> None:
        """Advance to computation_completed once every record is computed."""
        if period.status != PeriodStatus.PENDING_COMPUTATION:
            return
        counts = await self.locking_service.count_by_status(period.payroll_period_id)
        if not counts:
            return
        if any(status not in RecordStateMachine.COMPUTATION_DONE for status in counts):
            return

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period.payroll_period_id,
                PayrollPeriod.status == PeriodStatus.PENDING_COMPUTATION.value,
            )
            .values(
                status=PeriodStatus.COMPUTATION_COMPLETED.value,
                computed_at=utcnow(),
                version=PayrollPeriod.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            logger.info("Period %s computation completed", period.period_name)

    # ===== Review =====

    def _require_approver(self, role: str | None, action: str) -> None:
        if role not in self.settings.payroll_approver_roles:
            raise NotAuthorized(role, action, self.settings.payroll_approver_roles)

    async def approve_record(
        self,
        record_id: UUID,
        approver_role: str,
        approver_id: str | None = None,
    ) -> PayrollRecord:
        """Approve a computed record. The period must have finished computing."""
        self._require_approver(approver_role, "approve payroll records")
        record = await self.get_record(record_id)
        period_id = record.payroll_period_id

        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)
            self.locking_service.ensure_mutable(period)
            if period.status != PeriodStatus.COMPUTATION_COMPLETED:
                raise InvalidTransition(
                    period.status,
                    PeriodStatus.COMPUTATION_COMPLETED.value,
                    "Records can only be approved after the period finishes computing",
                )

            async with advisory_lock(self.session, record_lock_key(record_id)):
                record = await self.get_record(record_id, fresh=True)
                RecordStateMachine.validate_transition(
                    record.status, RecordStatus.APPROVED, "Only computed records can be approved"
                )
                await self._cas_record(
                    record,
                    RecordStatus.APPROVED,
                    approved_at=utcnow(),
                    approved_by=approver_id or approver_role,
                )

        logger.info("Record %s approved by %s", record_id, approver_id or approver_role)
        return record

    async def return_record(
        self,
        record_id: UUID,
        reviewer_role: str,
        reason: str,
        reviewer_id: str | None = None,
    ) -> PayrollRecord:
        """Send a computed record back to draft for correction."""
        self._require_approver(reviewer_role, "return payroll records")
        if not reason or not reason.strip():
            raise MissingReason("reason")
        record = await self.get_record(record_id)
        period_id = record.payroll_period_id

        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)
            self.locking_service.ensure_mutable(period)

            async with advisory_lock(self.session, record_lock_key(record_id)):
                record = await self.get_record(record_id, fresh=True)
                RecordStateMachine.validate_transition(
                    record.status, RecordStatus.DRAFT, "Only computed records can be returned"
                )
                await self._cas_record(record, RecordStatus.DRAFT, return_reason=reason.strip())

        logger.info("Record %s returned by %s: %s", record_id, reviewer_id or reviewer_role, reason)
        return record

    async def _cas_record(self, record: PayrollRecord, to_status: RecordStatus, **values: Any) -> None:
        from_status = record.status
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id == record.payroll_record_id,
                PayrollRecord.status == from_status,
                PayrollRecord.version == record.version,
            )
            .values(status=to_status.value, version=record.version + 1, **values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = await self.get_record(record.payroll_record_id, fresh=True)
            raise InvalidTransition(current.status, to_status.value, "Record changed concurrently")

    # ===== Lock and run =====

    async def lock(
        self,
        period_id: UUID,
        actor_role: str,
        actor_id: str | None = None,
    ) -> PayrollPeriod:
        """Lock the period and freeze every record.

        All-or-nothing: if any record is not approved, nothing changes and
        IncompleteApprovals lists the offending statuses, whatever the period
        status. A period with no records, or one already locked, fails the
        transition check instead.
        """
        self._require_approver(actor_role, "lock payroll periods")

        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)

            counts = await self.locking_service.count_by_status(period_id)
            pending = {
                status: count
                for status, count in counts.items()
                if not RecordStateMachine.is_lock_ready(status)
            }
            if pending:
                raise IncompleteApprovals(period_id, pending, period.status)

            PeriodStateMachine.validate_transition(
                period.status,
                PeriodStatus.LOCKED,
                "Period must finish computing before it can be locked",
            )

            result = await self.session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.payroll_period_id == period_id,
                    PayrollPeriod.status == PeriodStatus.COMPUTATION_COMPLETED.value,
                    PayrollPeriod.version == period.version,
                )
                .values(
                    status=PeriodStatus.LOCKED.value,
                    locked_at=utcnow(),
                    locked_by=actor_id or actor_role,
                    version=period.version + 1,
                )
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount == 0:
                current = await self.get_period(period_id, fresh=True)
                raise InvalidTransition(current.status, PeriodStatus.LOCKED.value, "Period changed concurrently")

            frozen = await self.locking_service.freeze_records(period_id)

        logger.info("Period %s locked by %s (%d records frozen)", period.period_name, actor_id or actor_role, frozen)
        return period

    async def generate_payslips(
        self,
        period_id: UUID,
        actor_role: str,
        actor_id: str | None = None,
    ) -> PayslipRunResult:
        """Create one payslip per record and mark the period as run.

        Idempotent: a period already run returns its existing payslips.
        """
        self._require_approver(actor_role, "run payroll")

        async with advisory_lock(self.session, period_lock_key(period_id)):
            period = await self.get_period(period_id, fresh=True)
            if period.status == PeriodStatus.PAYROLL_RUN:
                return PayslipRunResult(period, await self.list_payslips(period_id), created=0)
            PeriodStateMachine.validate_transition(
                period.status,
                PeriodStatus.PAYROLL_RUN,
                "Period must be locked before payslips are generated",
            )

            existing = {
                row
                for row in (
                    await self.session.execute(
                        select(Payslip.payroll_record_id).where(Payslip.payroll_period_id == period_id)
                    )
                ).scalars()
            }
            created = 0
            for record in await self.list_records(period_id):
                if record.payroll_record_id in existing:
                    continue
                self.session.add(self._payslip_for(period, record))
                created += 1
            await self.session.flush()

            await self.locking_service.mark_records_paid(period_id)
            result = await self.session.execute(
                update(PayrollPeriod)
                .where(
                    PayrollPeriod.payroll_period_id == period_id,
                    PayrollPeriod.status == PeriodStatus.LOCKED.value,
                    PayrollPeriod.version == period.version,
                )
                .values(
                    status=PeriodStatus.PAYROLL_RUN.value,
                    payroll_run_at=utcnow(),
                    payroll_run_by=actor_id or actor_role,
                    version=period.version + 1,
                )
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount == 0:
                current = await self.get_period(period_id, fresh=True)
                raise InvalidTransition(
                    current.status, PeriodStatus.PAYROLL_RUN.value, "Period changed concurrently"
                )

        logger.info("Generated %d payslip(s) for period %s", created, period.period_name)
        return PayslipRunResult(period, await self.list_payslips(period_id), created=created)

    @staticmethod
    def _payslip_for(period: PayrollPeriod, record: PayrollRecord) -> Payslip:
        return Payslip(
            payroll_record_id=record.payroll_record_id,
            payroll_period_id=period.payroll_period_id,
            employee_id=record.employee_id,
            employee_name=record.employee.full_name,
            period_name=period.period_name,
            period_start=period.start_date,
            period_end=period.end_date,
            earnings=record.earnings_snapshot(),
            deductions=record.deductions_snapshot(),
            gross_pay=record.gross_pay,
            total_deductions=record.total_deductions,
            net_pay=record.net_pay,
            calculation_id=record.calculation_id,
        )

    async def summary(self, period_id: UUID) -> PeriodSummary:
        period = await self.get_period(period_id)
        records = await self.list_records(period_id)
        by_status: dict[str, int] = {}
        for record in records:
            by_status[record.status] = by_status.get(record.status, 0) + 1
        return PeriodSummary(
            period=period,
            records_by_status=by_status,
            total_gross=sum((r.gross_pay for r in records), ZERO),
            total_deductions=sum((r.total_deductions for r in records), ZERO),
            total_net=sum((r.net_pay for r in records), ZERO),
            records_with_deficit=sum(1 for r in records if r.net_pay < 0),
            total_sss=sum((r.sss_contribution for r in records), ZERO),
            total_philhealth=sum((r.philhealth_contribution for r in records), ZERO),
            total_pagibig=sum((r.pagibig_contribution for r in records), ZERO),
            total_withholding_tax=sum((r.withholding_tax for r in records), ZERO),
        )
