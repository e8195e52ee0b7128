"""Tests for the payroll period lifecycle service."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from conftest import add_full_attendance
from payroll_workflow.calculators.types import HolidayType
from payroll_workflow.errors import (
    EntityNotFound,
    IncompleteApprovals,
    InvalidDateRange,
    InvalidSetting,
    InvalidTransition,
    MissingReason,
    NotAuthorized,
    OverlappingPeriod,
    PeriodLocked,
    RecordNotComputable,
)
from payroll_workflow.models import ApprovalRequest, PayrollRecord, Payslip
from payroll_workflow.services.payroll_period_service import HolidaySpec, PayrollPeriodService

pytestmark = pytest.mark.asyncio

START = date(2024, 1, 1)
END = date(2024, 1, 30)
HR_HEAD = "hr_head"


async def computed_period(session, make_employee, settings, count: int = 2):
    """Period with ``count`` fully-attending employees, computed."""
    employees = []
    for _ in range(count):
        employee = await make_employee()
        await add_full_attendance(session, employee, START, END)
        employees.append(employee)

    service = PayrollPeriodService(session, settings)
    created = await service.initialize("January 2024", "monthly", START, END)
    result = await service.compute_all(created.period.payroll_period_id)
    return service, result.period, await service.list_records(result.period.payroll_period_id)


class TestInitialize:
    """Period creation."""

    async def test_creates_draft_record_per_eligible_employee(self, session, make_employee, settings):
        await make_employee()
        await make_employee()
        await make_employee(status="inactive")
        await make_employee(hire_date=date(2024, 2, 1))
        await make_employee(hire_date=None)

        service = PayrollPeriodService(session, settings)
        result = await service.initialize("January 2024", "monthly", START, END)

        assert result.records_created == 3
        assert result.period.status == "pending_computation"
        assert result.period.employee_count == 3
        assert result.period.attendance_cutoff_start == START
        records = await service.list_records(result.period.payroll_period_id)
        assert {r.status for r in records} == {"draft"}

    async def test_warns_on_empty_attendance_window(self, session, make_employee, settings):
        await make_employee()
        result = await PayrollPeriodService(session, settings).initialize(
            "January 2024", "monthly", START, END
        )
        assert [w.code for w in result.warnings] == ["NO_ATTENDANCE_IN_WINDOW"]

    async def test_warns_on_no_eligible_employees(self, session, settings):
        result = await PayrollPeriodService(session, settings).initialize(
            "January 2024", "monthly", START, END
        )
        assert result.records_created == 0
        assert "NO_ELIGIBLE_EMPLOYEES" in [w.code for w in result.warnings]

    async def test_rejects_overlapping_period(self, session, settings):
        service = PayrollPeriodService(session, settings)
        await service.initialize("January 2024", "monthly", START, END)

        with pytest.raises(OverlappingPeriod):
            await service.initialize("Late January", "semi_monthly", date(2024, 1, 16), date(2024, 1, 31))

    async def test_rejects_inverted_dates(self, session, settings):
        with pytest.raises(InvalidDateRange):
            await PayrollPeriodService(session, settings).initialize("Bad", "monthly", END, START)

    async def test_rejects_unknown_cycle(self, session, settings):
        with pytest.raises(InvalidSetting):
            await PayrollPeriodService(session, settings).initialize("Bad", "weekly", START, END)

    async def test_stores_holidays(self, session, settings):
        result = await PayrollPeriodService(session, settings).initialize(
            "January 2024",
            "monthly",
            START,
            END,
            holidays=[HolidaySpec(START, HolidayType.REGULAR, "New Year's Day")],
        )
        assert [h.holiday_date for h in result.period.holidays] == [START]


class TestCompute:
    """Batch and single-record computation."""

    async def test_compute_all_completes_period(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings)

        assert period.status == "computation_completed"
        assert {r.status for r in records} == {"computed"}
        for record in records:
            assert record.gross_pay == Decimal("22000.00")
            assert record.net_pay == record.gross_pay - record.total_deductions
            assert record.calculation_id is not None
        assert period.total_gross == Decimal("44000.00")

    async def test_failure_is_isolated_per_record(self, session, make_employee, settings):
        good = await make_employee()
        await make_employee(monthly_rate=None)
        await add_full_attendance(session, good, START, END)

        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)
        result = await service.compute_all(created.period.payroll_period_id)

        assert result.computed_count == 1
        assert result.error_count == 1
        failed = next(o for o in result.outcomes if not o.ok)
        assert failed.error["code"] == "RATE_NOT_FOUND"
        assert result.period.status == "pending_computation"

        records = {r.employee_id: r for r in await service.list_records(created.period.payroll_period_id)}
        assert records[good.employee_id].status == "computed"
        assert records[failed.employee_id].status == "draft"
        assert records[failed.employee_id].error_message

    async def test_recompute_bumps_version(self, session, make_employee, settings):
        service, _, records = await computed_period(session, make_employee, settings, count=1)
        record = records[0]
        version = record.version

        await service.compute_record(record.payroll_record_id, Decimal("100"))

        assert record.version == version + 1
        assert record.other_deductions == Decimal("100.00")

    async def test_adhoc_deduction_survives_batch_recompute(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=1)
        record = records[0]

        await service.compute_record(record.payroll_record_id, Decimal("500"))
        net_after_adjustment = record.net_pay
        await service.compute_all(period.payroll_period_id)

        assert record.adjustment_deductions == Decimal("500.00")
        assert record.other_deductions == Decimal("500.00")
        assert record.net_pay == net_after_adjustment

        await service.compute_record(record.payroll_record_id)
        assert record.other_deductions == Decimal("500.00")

        await service.compute_record(record.payroll_record_id, Decimal("0"))
        assert record.adjustment_deductions == Decimal("0.00")
        assert record.other_deductions == Decimal("0.00")

    async def test_approved_record_not_computable(self, session, make_employee, settings):
        service, _, records = await computed_period(session, make_employee, settings, count=1)
        await service.approve_record(records[0].payroll_record_id, HR_HEAD)

        with pytest.raises(RecordNotComputable) as exc_info:
            await service.compute_record(records[0].payroll_record_id)
        assert exc_info.value.current_state == "approved"

    async def test_approved_leave_is_paid(self, session, make_employee, settings):
        employee = await make_employee()
        leave_days = {date(2024, 1, 2), date(2024, 1, 3)}
        await add_full_attendance(session, employee, START, END, skip=frozenset(leave_days))
        session.add(
            ApprovalRequest(
                requester_id=employee.employee_id,
                requester_role="employee",
                kind="leave",
                reason="Family trip",
                payload={"start_date": "2024-01-02", "end_date": "2024-01-03", "days": 2},
                status="approved",
                approval_chain=["supervisor"],
                current_approval_level=1,
                total_approvals_required=1,
                steps=[],
            )
        )
        await session.flush()

        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)
        await service.compute_all(created.period.payroll_period_id)
        [record] = await service.list_records(created.period.payroll_period_id)

        assert record.leave_days == 2
        assert record.absent_days == 0
        assert record.paid_leave_pay == Decimal("2000.00")


class TestReview:
    """Record approval and return."""

    async def test_requires_approver_role(self, session, make_employee, settings):
        service, _, records = await computed_period(session, make_employee, settings, count=1)
        with pytest.raises(NotAuthorized):
            await service.approve_record(records[0].payroll_record_id, "supervisor")

    async def test_approve_before_period_completes(self, session, make_employee, settings):
        await make_employee()
        await make_employee(monthly_rate=None)
        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)
        await service.compute_all(created.period.payroll_period_id)
        computed = await service.list_records(created.period.payroll_period_id, status="computed")

        with pytest.raises(InvalidTransition):
            await service.approve_record(computed[0].payroll_record_id, HR_HEAD)

    async def test_return_requires_reason(self, session, make_employee, settings):
        service, _, records = await computed_period(session, make_employee, settings, count=1)
        with pytest.raises(MissingReason):
            await service.return_record(records[0].payroll_record_id, HR_HEAD, "  ")

    async def test_returned_record_can_be_recomputed(self, session, make_employee, settings):
        service, _, records = await computed_period(session, make_employee, settings, count=1)
        record = records[0]

        await service.return_record(record.payroll_record_id, HR_HEAD, "Missing overtime")
        assert record.status == "draft"
        assert record.return_reason == "Missing overtime"

        await service.compute_record(record.payroll_record_id)
        assert record.status == "computed"


class TestLockAndRun:
    """Lock precondition, freezing and payslips."""

    async def test_lock_blocked_by_unapproved_record(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=5)
        for record in records[:4]:
            await service.approve_record(record.payroll_record_id, HR_HEAD)

        with pytest.raises(IncompleteApprovals) as exc_info:
            await service.lock(period.payroll_period_id, HR_HEAD)

        assert exc_info.value.pending == {"computed": 1}
        assert exc_info.value.current_state == "computation_completed"
        statuses = sorted(r.status for r in await service.list_records(period.payroll_period_id))
        assert statuses == ["approved"] * 4 + ["computed"]
        assert (await service.get_period(period.payroll_period_id, fresh=True)).status == (
            "computation_completed"
        )

    async def test_lock_before_computation(self, session, make_employee, settings):
        await make_employee()
        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)

        with pytest.raises(IncompleteApprovals) as exc_info:
            await service.lock(created.period.payroll_period_id, HR_HEAD)
        assert exc_info.value.pending == {"draft": 1}
        assert exc_info.value.current_state == "pending_computation"

    async def test_lock_with_failed_record_reports_incomplete(self, session, make_employee, settings):
        good = await make_employee()
        await make_employee(monthly_rate=None)
        await add_full_attendance(session, good, START, END)
        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)
        period_id = created.period.payroll_period_id
        await service.compute_all(period_id)

        with pytest.raises(IncompleteApprovals) as exc_info:
            await service.lock(period_id, HR_HEAD)

        assert exc_info.value.pending == {"computed": 1, "draft": 1}
        period = await service.get_period(period_id, fresh=True)
        assert period.status == "pending_computation"
        assert period.locked_at is None

    async def test_lock_empty_period_is_invalid_transition(self, session, settings):
        service = PayrollPeriodService(session, settings)
        created = await service.initialize("January 2024", "monthly", START, END)

        with pytest.raises(InvalidTransition):
            await service.lock(created.period.payroll_period_id, HR_HEAD)

    async def test_lock_twice_is_invalid_transition(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=1)
        await service.approve_record(records[0].payroll_record_id, HR_HEAD)
        await service.lock(period.payroll_period_id, HR_HEAD)

        with pytest.raises(InvalidTransition) as exc_info:
            await service.lock(period.payroll_period_id, HR_HEAD)
        assert exc_info.value.current_state == "locked"

    async def test_full_lifecycle(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=3)
        period_id = period.payroll_period_id
        for record in records:
            await service.approve_record(record.payroll_record_id, HR_HEAD, "hr-1")

        locked = await service.lock(period_id, HR_HEAD, "hr-1")
        assert locked.status == "locked"
        assert locked.locked_by == "hr-1"
        assert {r.status for r in await service.list_records(period_id)} == {"locked"}

        with pytest.raises(PeriodLocked):
            await service.compute_record(records[0].payroll_record_id)
        with pytest.raises(PeriodLocked):
            await service.compute_all(period_id)

        run = await service.generate_payslips(period_id, HR_HEAD)
        assert run.created == 3
        assert run.period.status == "payroll_run"
        assert {r.status for r in await service.list_records(period_id)} == {"paid"}
        slip = run.payslips[0]
        assert slip.net_pay == slip.gross_pay - slip.total_deductions
        assert slip.earnings["basic_salary"] == "22000.00"

    async def test_payslips_idempotent(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=2)
        for record in records:
            await service.approve_record(record.payroll_record_id, HR_HEAD)
        await service.lock(period.payroll_period_id, HR_HEAD)

        first = await service.generate_payslips(period.payroll_period_id, HR_HEAD)
        second = await service.generate_payslips(period.payroll_period_id, HR_HEAD)

        assert first.created == 2
        assert second.created == 0
        assert len(second.payslips) == 2
        count = len((await session.execute(select(Payslip))).scalars().all())
        assert count == 2

    async def test_payslips_require_lock(self, session, make_employee, settings):
        service, period, _ = await computed_period(session, make_employee, settings, count=1)
        with pytest.raises(InvalidTransition):
            await service.generate_payslips(period.payroll_period_id, HR_HEAD)

    async def test_summary(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=2)
        await service.approve_record(records[0].payroll_record_id, HR_HEAD)

        summary = await service.summary(period.payroll_period_id)
        assert summary.records_by_status == {"approved": 1, "computed": 1}
        assert summary.total_gross == Decimal("44000.00")
        assert summary.records_with_deficit == 0
        assert summary.total_sss == Decimal("1980.00")
        assert summary.total_withholding_tax == Decimal("350.00")

    async def test_locked_record_values_unchanged(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=1)
        await service.approve_record(records[0].payroll_record_id, HR_HEAD)
        await service.lock(period.payroll_period_id, HR_HEAD)
        before = (records[0].gross_pay, records[0].net_pay)

        with pytest.raises(PeriodLocked):
            await service.return_record(records[0].payroll_record_id, HR_HEAD, "late change")

        record = (
            await session.execute(
                select(PayrollRecord)
                .where(PayrollRecord.payroll_record_id == records[0].payroll_record_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert (record.gross_pay, record.net_pay, record.status) == (*before, "locked")


class TestPayslipAccess:
    """Employees read their own payslips; HR reads anyone's."""

    async def run_payroll(self, session, make_employee, settings):
        service, period, records = await computed_period(session, make_employee, settings, count=2)
        for record in records:
            await service.approve_record(record.payroll_record_id, HR_HEAD)
        await service.lock(period.payroll_period_id, HR_HEAD)
        run = await service.generate_payslips(period.payroll_period_id, HR_HEAD)
        return service, run.payslips

    async def test_employee_lists_own_payslips(self, session, make_employee, settings):
        service, payslips = await self.run_payroll(session, make_employee, settings)
        owner = payslips[0].employee_id

        mine = await service.list_employee_payslips(owner)
        assert [p.payslip_id for p in mine] == [payslips[0].payslip_id]
        assert await service.list_employee_payslips(uuid4()) == []

    async def test_owner_and_hr_can_read(self, session, make_employee, settings):
        service, payslips = await self.run_payroll(session, make_employee, settings)
        slip = payslips[0]

        own = await service.get_payslip(slip.payslip_id, "employee", str(slip.employee_id))
        assert own.payslip_id == slip.payslip_id
        by_hr = await service.get_payslip(slip.payslip_id, "hr_staff", None)
        assert by_hr.net_pay == slip.net_pay

    async def test_other_employee_is_refused(self, session, make_employee, settings):
        service, payslips = await self.run_payroll(session, make_employee, settings)

        with pytest.raises(NotAuthorized):
            await service.get_payslip(payslips[0].payslip_id, "employee", str(payslips[1].employee_id))
        with pytest.raises(NotAuthorized):
            await service.get_payslip(payslips[0].payslip_id, None, None)

    async def test_unknown_payslip(self, session, settings):
        with pytest.raises(EntityNotFound):
            await PayrollPeriodService(session, settings).get_payslip(uuid4(), "hr_head", None)
