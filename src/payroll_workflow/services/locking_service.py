"""Record freezing for period lock and payroll run."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.errors import PeriodLocked
from payroll_workflow.models import PayrollRecord
from payroll_workflow.models.base import utcnow
from payroll_workflow.services.state_machine import PeriodStateMachine, RecordStatus

if TYPE_CHECKING:
    from payroll_workflow.models import PayrollPeriod


class LockingService:
    """Freezes a period's records.

    When a period is locked:
    1. Every approved record is moved to locked in one statement
    2. Record writes are refused from then on (``ensure_mutable``)

    When payslips are generated, locked records move to paid.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def ensure_mutable(period: PayrollPeriod) -> None:
        """Reject record writes once the period is locked."""
        if PeriodStateMachine.is_frozen(period.status):
            raise PeriodLocked(period.payroll_period_id, period.status)

    async def count_by_status(self, period_id: UUID) -> dict[str, int]:
        result = await self.session.execute(
            select(PayrollRecord.status, func.count())
            .where(PayrollRecord.payroll_period_id == period_id)
            .group_by(PayrollRecord.status)
        )
        return {status: count for status, count in result.all()}

    async def freeze_records(self, period_id: UUID) -> int:
        """Move approved records to locked.

        Returns count of frozen records.
        """
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_period_id == period_id,
                PayrollRecord.status == RecordStatus.APPROVED.value,
            )
            .values(
                status=RecordStatus.LOCKED.value,
                locked_at=utcnow(),
                version=PayrollRecord.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def mark_records_paid(self, period_id: UUID) -> int:
        """Move locked records to paid once their payslips exist."""
        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_period_id == period_id,
                PayrollRecord.status == RecordStatus.LOCKED.value,
            )
            .values(
                status=RecordStatus.PAID.value,
                version=PayrollRecord.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0
