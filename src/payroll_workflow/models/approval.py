"""Approval request and trail models."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_workflow.models.base import Base, TimestampMixin, utcnow


class ApprovalRequest(Base, TimestampMixin):
    """Leave or time-correction request moving through its approval chain."""

    __tablename__ = "approval_request"

    approval_request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    requester_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    requester_role: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    approval_chain: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    current_approval_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_approvals_required: Mapped[int] = mapped_column(Integer, nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('leave', 'time_correction')",
            name="approval_request_kind_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'in_review', 'approved', 'rejected')",
            name="approval_request_status_check",
        ),
        CheckConstraint(
            "current_approval_level >= 0 AND current_approval_level <= total_approvals_required",
            name="approval_request_level_check",
        ),
    )

    # Relationships
    steps: Mapped[list[ApprovalStep]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ApprovalStep.level",
    )

    @property
    def is_closed(self) -> bool:
        return self.status in ("approved", "rejected")

    @property
    def expected_role(self) -> str | None:
        """Role that must act next, or None once closed."""
        if self.is_closed or self.current_approval_level >= len(self.approval_chain):
            return None
        return self.approval_chain[self.current_approval_level]

    @property
    def display_status(self) -> str:
        """Human-facing status, e.g. ``approved_by_supervisor``."""
        if self.is_closed or self.current_approval_level == 0:
            return self.status
        return f"approved_by_{self.approval_chain[self.current_approval_level - 1]}"


class ApprovalStep(Base):
    """One decision in a request's approval trail."""

    __tablename__ = "approval_step"

    approval_step_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    approval_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("approval_request.approval_request_id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str] = mapped_column(String, nullable=False)
    approver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    decision: Mapped[str] = mapped_column(String, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("decision IN ('approved', 'rejected')", name="approval_step_decision_check"),
    )

    request: Mapped[ApprovalRequest] = relationship(back_populates="steps")
