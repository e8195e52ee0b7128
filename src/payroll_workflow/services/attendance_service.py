"""Daily check-in / check-out recording."""

from __future__ import annotations

import logging
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.calculators.attendance_classifier import AttendanceClassifier
from payroll_workflow.calculators.calendar import WorkCalendar
from payroll_workflow.calculators.types import AttendanceStatus
from payroll_workflow.config import Settings, get_settings
from payroll_workflow.database import advisory_lock
from payroll_workflow.errors import EntityNotFound, InvalidDateRange
from payroll_workflow.models import AttendanceDay, Employee

logger = logging.getLogger(__name__)


def attendance_lock_key(employee_id: object, work_date: date) -> str:
    return f"attendance:{employee_id}:{work_date.isoformat()}"


class AttendanceService:
    """Records attendance days and classifies them as they happen.

    Times are local wall-clock (naive) datetimes.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        classifier: AttendanceClassifier | None = None,
        calendar: WorkCalendar | None = None,
    ):
        settings = settings or get_settings()
        self.session = session
        self.classifier = classifier or AttendanceClassifier(settings.attendance_policy())
        self.calendar = calendar or settings.payroll_calendar()

    async def check_in(self, employee_id: UUID, at: datetime | None = None) -> AttendanceDay:
        at = at or datetime.now()
        work_date = at.date()
        await self._get_employee(employee_id)

        async with advisory_lock(self.session, attendance_lock_key(employee_id, work_date)):
            day = await self._get_day(employee_id, work_date)
            arrival = self.classifier.check_in(
                work_date,
                day.check_in_at if day else None,
                day.status if day else None,
                at,
            )
            if day is None:
                day = AttendanceDay(employee_id=employee_id, work_date=work_date)
                self.session.add(day)

            day.check_in_at = at
            day.status = arrival.status.value
            day.arrival_status = arrival.status.value
            day.late_minutes = arrival.late_minutes
            await self.session.flush()

        logger.info("Employee %s checked in on %s (%s)", employee_id, work_date, arrival.status.value)
        return day

    async def check_out(
        self,
        employee_id: UUID,
        at: datetime | None = None,
        work_date: date | None = None,
    ) -> AttendanceDay:
        """Close the day's attendance. ``work_date`` defaults to the date of ``at``."""
        at = at or datetime.now()
        work_date = work_date or at.date()
        await self._get_employee(employee_id)

        async with advisory_lock(self.session, attendance_lock_key(employee_id, work_date)):
            day = await self._get_day(employee_id, work_date)
            hours = self.classifier.check_out(
                work_date,
                day.check_in_at if day else None,
                day.check_out_at if day else None,
                day.status if day else None,
                at,
            )
            day.check_out_at = at
            day.status = AttendanceStatus.CHECKED_OUT.value
            day.total_hours = hours
            await self.session.flush()

        logger.info("Employee %s checked out on %s after %s hours", employee_id, work_date, hours)
        return day

    async def mark_absences(self, work_date: date, now: datetime | None = None) -> int:
        """Mark active employees with no check-in as absent once the cutoff passed.

        Returns number of days marked. Rest days are skipped.
        """
        now = now or datetime.now()
        if not self.calendar.is_working_day(work_date):
            return 0
        if self.classifier.classify_missing(work_date, now) is None:
            return 0

        recorded = select(AttendanceDay.employee_id).where(AttendanceDay.work_date == work_date)
        result = await self.session.execute(
            select(Employee.employee_id).where(
                Employee.status == "active",
                Employee.employee_id.not_in(recorded),
            )
        )
        marked = 0
        for employee_id in result.scalars().all():
            self.session.add(
                AttendanceDay(
                    employee_id=employee_id,
                    work_date=work_date,
                    status=AttendanceStatus.ABSENT.value,
                    arrival_status=AttendanceStatus.ABSENT.value,
                )
            )
            marked += 1
        await self.session.flush()

        if marked:
            logger.info("Marked %d employee(s) absent on %s", marked, work_date)
        return marked

    async def list_for_employee(
        self,
        employee_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[AttendanceDay]:
        if start is not None and end is not None and end < start:
            raise InvalidDateRange(start, end)
        stmt = select(AttendanceDay).where(AttendanceDay.employee_id == employee_id)
        if start is not None:
            stmt = stmt.where(AttendanceDay.work_date >= start)
        if end is not None:
            stmt = stmt.where(AttendanceDay.work_date <= end)
        result = await self.session.execute(stmt.order_by(AttendanceDay.work_date))
        return list(result.scalars().all())

    async def _get_day(self, employee_id: UUID, work_date: date) -> AttendanceDay | None:
        result = await self.session.execute(
            select(AttendanceDay)
            .where(
                AttendanceDay.employee_id == employee_id,
                AttendanceDay.work_date == work_date,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise EntityNotFound("Employee", employee_id)
        return employee
