"""Tests for check-in / check-out recording."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_workflow.errors import (
    DuplicateCheckIn,
    DuplicateCheckOut,
    EntityNotFound,
    InvalidDateRange,
    NoActiveCheckIn,
)
from payroll_workflow.services.attendance_service import AttendanceService

pytestmark = pytest.mark.asyncio

MONDAY = date(2024, 3, 4)


@pytest.fixture
def attendance(session, settings) -> AttendanceService:
    return AttendanceService(session, settings)


def at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


class TestCheckIn:
    async def test_on_time(self, attendance, make_employee):
        employee = await make_employee()
        day = await attendance.check_in(employee.employee_id, at(8, 55))

        assert day.status == "present"
        assert day.arrival_status == "present"
        assert day.late_minutes == 0

    async def test_late(self, attendance, make_employee):
        employee = await make_employee()
        day = await attendance.check_in(employee.employee_id, at(9, 45))

        assert day.status == "late"
        assert day.late_minutes == 45

    async def test_after_absence_cutoff(self, attendance, make_employee):
        employee = await make_employee()
        day = await attendance.check_in(employee.employee_id, at(14, 0))
        assert day.status == "absent"

    async def test_duplicate(self, attendance, make_employee):
        employee = await make_employee()
        await attendance.check_in(employee.employee_id, at(8, 0))

        with pytest.raises(DuplicateCheckIn) as exc_info:
            await attendance.check_in(employee.employee_id, at(8, 5))
        assert exc_info.value.current_state == "present"

    async def test_unknown_employee(self, attendance):
        with pytest.raises(EntityNotFound):
            await attendance.check_in(uuid4(), at(8, 0))


class TestCheckOut:
    async def test_records_hours(self, attendance, make_employee):
        employee = await make_employee()
        await attendance.check_in(employee.employee_id, at(8, 0))
        day = await attendance.check_out(employee.employee_id, at(17, 30))

        assert day.status == "checked-out"
        assert day.arrival_status == "present"
        assert day.total_hours == Decimal("9.50")

    async def test_without_check_in(self, attendance, make_employee):
        employee = await make_employee()
        with pytest.raises(NoActiveCheckIn):
            await attendance.check_out(employee.employee_id, at(17, 0))

    async def test_twice(self, attendance, make_employee):
        employee = await make_employee()
        await attendance.check_in(employee.employee_id, at(8, 0))
        await attendance.check_out(employee.employee_id, at(17, 0))

        with pytest.raises(DuplicateCheckOut):
            await attendance.check_out(employee.employee_id, at(18, 0))

    async def test_overnight_shift(self, attendance, make_employee):
        employee = await make_employee()
        await attendance.check_in(employee.employee_id, at(8, 0))
        day = await attendance.check_out(
            employee.employee_id, at(1, 0, day=date(2024, 3, 5)), work_date=MONDAY
        )
        assert day.total_hours == Decimal("17.00")


class TestMarkAbsences:
    async def test_before_cutoff_marks_nothing(self, attendance, make_employee):
        await make_employee()
        assert await attendance.mark_absences(MONDAY, now=at(12, 0)) == 0

    async def test_marks_only_missing_active_employees(self, attendance, make_employee):
        present = await make_employee()
        missing = await make_employee()
        await make_employee(status="inactive")
        await attendance.check_in(present.employee_id, at(8, 0))

        assert await attendance.mark_absences(MONDAY, now=at(14, 0)) == 1
        [day] = await attendance.list_for_employee(missing.employee_id)
        assert day.status == "absent"

        # Second run finds nothing left to mark
        assert await attendance.mark_absences(MONDAY, now=at(15, 0)) == 0

    async def test_rest_day_skipped(self, attendance, make_employee):
        await make_employee()
        saturday = date(2024, 3, 9)
        assert await attendance.mark_absences(saturday, now=at(23, 0, day=saturday)) == 0


class TestListing:
    async def test_range(self, attendance, make_employee):
        employee = await make_employee()
        for offset in range(3):
            day = date(2024, 3, 4 + offset)
            await attendance.check_in(employee.employee_id, at(8, 0, day=day))

        days = await attendance.list_for_employee(employee.employee_id, date(2024, 3, 5), date(2024, 3, 6))
        assert [d.work_date for d in days] == [date(2024, 3, 5), date(2024, 3, 6)]

    async def test_inverted_range(self, attendance, make_employee):
        employee = await make_employee()
        with pytest.raises(InvalidDateRange):
            await attendance.list_for_employee(employee.employee_id, date(2024, 3, 6), date(2024, 3, 5))
