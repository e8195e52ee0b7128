"""Pytest fixtures for payroll workflow tests."""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payroll_workflow.calculators.calendar import WorkCalendar
from payroll_workflow.config import Settings
from payroll_workflow.database import create_schema, get_engine, make_session_factory
from payroll_workflow.models import AttendanceDay, Employee

# A fresh SQLite file per test; sessions opened on it see each other's commits.
# For Postgres advisory locks, point DATABASE_URL at a test database instead.


def build_settings(**overrides: Any) -> Settings:
    base = Settings(
        database_url="sqlite+aiosqlite://",
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        working_days_per_month=22,
        default_work_hours_per_day=Decimal("8"),
        overtime_multiplier=Decimal("1.25"),
        night_differential_multiplier=Decimal("1.10"),
        special_holiday_multiplier=Decimal("1.30"),
        regular_holiday_multiplier=Decimal("2.00"),
        on_time_cutoff=time(9, 0),
        absence_cutoff=time(13, 30),
        night_start=time(22, 0),
        night_end=time(6, 0),
        payroll_rest_days=(5, 6),
        leave_rest_days=(6,),
        payroll_approver_roles=("hr_head",),
    )
    return dataclasses.replace(base, **overrides)


@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with the schema in place."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


EmployeeFactory = Callable[..., Awaitable[Employee]]


@pytest.fixture
def make_employee(session: AsyncSession) -> EmployeeFactory:
    """Create an active monthly-rated employee; keyword arguments override fields."""
    counter = {"n": 0}

    async def _make(**fields: Any) -> Employee:
        counter["n"] += 1
        values: dict[str, Any] = {
            "employee_id": uuid4(),
            "employee_number": f"EMP{counter['n']:03d}",
            "first_name": f"Worker{counter['n']}",
            "last_name": "Test",
            "role": "employee",
            "status": "active",
            "hire_date": date(2023, 1, 1),
            "pay_basis": "monthly",
            "monthly_rate": Decimal("22000.00"),
            "leave_balance": Decimal("5"),
        }
        values.update(fields)
        employee = Employee(**values)
        session.add(employee)
        await session.flush()
        return employee

    return _make


async def add_full_attendance(
    session: AsyncSession,
    employee: Employee,
    start: date,
    end: date,
    calendar: WorkCalendar | None = None,
    skip: frozenset[date] = frozenset(),
) -> list[AttendanceDay]:
    """Record an on-time 08:00-16:00 day for every working day in the range."""
    calendar = calendar or WorkCalendar()
    days = []
    for work_date in calendar.working_days(start, end):
        if work_date in skip:
            continue
        day = AttendanceDay(
            employee_id=employee.employee_id,
            work_date=work_date,
            check_in_at=datetime.combine(work_date, time(8, 0)),
            check_out_at=datetime.combine(work_date, time(16, 0)),
            status="checked-out",
            arrival_status="present",
            late_minutes=0,
            total_hours=Decimal("8.00"),
        )
        session.add(day)
        days.append(day)
    await session.flush()
    return days


def weekday_on_or_after(day: date, weekday: int) -> date:
    return day + timedelta(days=(weekday - day.weekday()) % 7)
