"""Status enums and transition tables for periods, records and requests."""

from __future__ import annotations

from enum import Enum

from payroll_workflow.errors import InvalidTransition


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    PENDING_COMPUTATION = "pending_computation"
    COMPUTATION_COMPLETED = "computation_completed"
    LOCKED = "locked"
    PAYROLL_RUN = "payroll_run"


class RecordStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "draft"
    COMPUTED = "computed"
    APPROVED = "approved"
    LOCKED = "locked"
    PAID = "paid"


class ApprovalStatus(str, Enum):
    """Approval request status values.

    ``in_review`` covers every intermediate level; which role approved last
    is derived from the level, e.g. ``approved_by_supervisor``.
    """

    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class _TransitionTable:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransition if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransition(from_status, to_status, reason)


class PeriodStateMachine(_TransitionTable):
    """Payroll period transitions, strictly forward:

    pending_computation → computation_completed → locked → payroll_run
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.PENDING_COMPUTATION: [PeriodStatus.COMPUTATION_COMPLETED],
        PeriodStatus.COMPUTATION_COMPLETED: [PeriodStatus.LOCKED],
        PeriodStatus.LOCKED: [PeriodStatus.PAYROLL_RUN],
        PeriodStatus.PAYROLL_RUN: [],  # Terminal state
    }

    # Statuses where record figures are frozen
    RECORDS_FROZEN = {
        PeriodStatus.LOCKED,
        PeriodStatus.PAYROLL_RUN,
    }

    @classmethod
    def is_frozen(cls, status: str) -> bool:
        return status in cls.RECORDS_FROZEN


class RecordStateMachine(_TransitionTable):
    """Payroll record transitions.

    - draft → computed
    - computed → computed (recompute)
    - computed → draft (returned for correction)
    - computed → approved
    - approved → locked
    - locked → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RecordStatus.DRAFT: [RecordStatus.COMPUTED],
        RecordStatus.COMPUTED: [RecordStatus.COMPUTED, RecordStatus.DRAFT, RecordStatus.APPROVED],
        RecordStatus.APPROVED: [RecordStatus.LOCKED],
        RecordStatus.LOCKED: [RecordStatus.PAID],
        RecordStatus.PAID: [],  # Terminal state
    }

    COMPUTABLE = {RecordStatus.DRAFT, RecordStatus.COMPUTED}

    # Statuses that satisfy the lock precondition
    LOCK_READY = {RecordStatus.APPROVED, RecordStatus.LOCKED, RecordStatus.PAID}

    # Statuses that count toward computation_completed
    COMPUTATION_DONE = {RecordStatus.COMPUTED, RecordStatus.APPROVED}

    @classmethod
    def can_compute(cls, status: str) -> bool:
        return status in cls.COMPUTABLE

    @classmethod
    def is_lock_ready(cls, status: str) -> bool:
        return status in cls.LOCK_READY


class ApprovalStateMachine(_TransitionTable):
    """Approval request transitions.

    - pending → in_review | approved | rejected
    - in_review → in_review | approved | rejected
    - approved, rejected: terminal
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ApprovalStatus.PENDING: [
            ApprovalStatus.IN_REVIEW,
            ApprovalStatus.APPROVED,
            ApprovalStatus.REJECTED,
        ],
        ApprovalStatus.IN_REVIEW: [
            ApprovalStatus.IN_REVIEW,
            ApprovalStatus.APPROVED,
            ApprovalStatus.REJECTED,
        ],
        ApprovalStatus.APPROVED: [],
        ApprovalStatus.REJECTED: [],
    }

    TERMINAL = {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def status_after_approval(cls, next_level: int, total_levels: int) -> ApprovalStatus:
        if next_level >= total_levels:
            return ApprovalStatus.APPROVED
        return ApprovalStatus.IN_REVIEW
