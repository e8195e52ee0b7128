"""Structured error types reported by the engine.

Every expected business condition is raised as an ``EngineError`` subclass
carrying a stable ``code``, its ``kind`` and the current state of the entity
it was raised against, so callers can re-sync. ``InvariantViolation`` is the
only fatal condition and is never recovered from.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error classification."""

    VALIDATION = "validation"
    SEQUENCING = "sequencing"
    AGGREGATE = "aggregate"


class EngineError(Exception):
    """Base class for reported engine outcomes."""

    code: str = "ENGINE_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        **context: Any,
    ):
        self.message = message
        self.current_state = current_state
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "code": self.code,
            "kind": self.kind.value,
            "detail": self.message,
            "current_state": self.current_state,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Decimal, date)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


# ===== Validation =====


class ValidationError(EngineError):
    """Rejected before any state change."""

    code = "VALIDATION_ERROR"
    kind = ErrorKind.VALIDATION


class MissingReason(ValidationError):
    code = "MISSING_REASON"

    def __init__(self, field: str = "reason", current_state: str | None = None):
        super().__init__(f"A non-empty {field} is required", current_state, field=field)


class InvalidDateRange(ValidationError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, start: Any, end: Any, message: str | None = None):
        super().__init__(
            message or f"End ({end}) must not be before start ({start})",
            start=start,
            end=end,
        )


class InsufficientBalance(ValidationError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Leave balance {available} does not cover {requested} day(s)",
            requested=requested,
            available=available,
        )


class OverlappingPeriod(ValidationError):
    code = "OVERLAPPING_PERIOD"

    def __init__(self, existing_period_name: str, start: date, end: date):
        super().__init__(
            f"Period overlaps existing period '{existing_period_name}' ({start} to {end})",
            existing_period=existing_period_name,
            start=start,
            end=end,
        )


class NoApprovalChain(ValidationError):
    code = "NO_APPROVAL_CHAIN"

    def __init__(self, requester_role: str, kind: str):
        super().__init__(
            f"No approval chain configured for role '{requester_role}' ({kind})",
            requester_role=requester_role,
            request_kind=kind,
        )


class NotAuthorized(ValidationError):
    code = "NOT_AUTHORIZED"

    def __init__(self, role: str | None, action: str, allowed: tuple[str, ...] = ()):
        super().__init__(
            f"Role '{role}' may not {action}",
            role=role,
            action=action,
            allowed_roles=allowed,
        )


class EntityNotFound(ValidationError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


class InvalidSetting(ValidationError):
    code = "INVALID_SETTING"

    def __init__(self, name: str, value: Any, message: str | None = None):
        super().__init__(message or f"Invalid value for {name}: {value}", name=name, value=value)


# ===== Sequencing =====


class SequencingError(EngineError):
    """Precondition on the current state was not met."""

    code = "SEQUENCING_ERROR"
    kind = ErrorKind.SEQUENCING


class NotYourTurn(SequencingError):
    code = "NOT_YOUR_TURN"

    def __init__(self, role: str, expected_role: str, level: int, current_state: str):
        super().__init__(
            f"Role '{role}' cannot act at level {level}; waiting on '{expected_role}'",
            current_state,
            role=role,
            expected_role=expected_role,
            current_approval_level=level,
        )


class RequestClosed(SequencingError):
    code = "REQUEST_CLOSED"

    def __init__(self, request_id: Any, current_state: str):
        super().__init__(
            f"Request {request_id} is already {current_state}",
            current_state,
            request_id=request_id,
        )


class RecordNotComputable(SequencingError):
    code = "RECORD_NOT_COMPUTABLE"

    def __init__(self, record_id: Any, current_state: str):
        super().__init__(
            f"Payroll record {record_id} cannot be computed in status '{current_state}'",
            current_state,
            record_id=record_id,
        )


class PeriodLocked(SequencingError):
    code = "PERIOD_LOCKED"

    def __init__(self, period_id: Any, current_state: str):
        super().__init__(
            f"Payroll period {period_id} is {current_state}; records are frozen",
            current_state,
            period_id=period_id,
        )


class DuplicateCheckIn(SequencingError):
    code = "DUPLICATE_CHECK_IN"

    def __init__(self, work_date: date, current_state: str):
        super().__init__(f"Already checked in on {work_date}", current_state, work_date=work_date)


class DuplicateCheckOut(SequencingError):
    code = "DUPLICATE_CHECK_OUT"

    def __init__(self, work_date: date, current_state: str):
        super().__init__(f"Already checked out on {work_date}", current_state, work_date=work_date)


class NoActiveCheckIn(SequencingError):
    code = "NO_ACTIVE_CHECK_IN"

    def __init__(self, work_date: date, current_state: str | None = None):
        super().__init__(f"No check-in recorded on {work_date}", current_state, work_date=work_date)


class InvalidTransition(SequencingError):
    """Raised when a status change is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status, to_status=to_status)


# ===== Aggregate =====


class AggregateError(EngineError):
    """Period-level outcome spanning many records."""

    code = "AGGREGATE_ERROR"
    kind = ErrorKind.AGGREGATE


class IncompleteApprovals(AggregateError):
    code = "INCOMPLETE_APPROVALS"

    def __init__(self, period_id: Any, pending: dict[str, int], current_state: str):
        self.pending = pending
        count = sum(pending.values())
        super().__init__(
            f"{count} record(s) in period {period_id} are not approved",
            current_state,
            period_id=period_id,
            pending_by_status=", ".join(f"{k}={v}" for k, v in sorted(pending.items())),
        )


class NoEligibleEmployees(AggregateError):
    """Warning: period created without any records."""

    code = "NO_ELIGIBLE_EMPLOYEES"

    def __init__(self, end_date: date):
        super().__init__(
            f"No active employees hired on or before {end_date}",
            end_date=end_date,
        )


class NoAttendanceInWindow(AggregateError):
    """Warning: the attendance cutoff window holds no attendance rows."""

    code = "NO_ATTENDANCE_IN_WINDOW"

    def __init__(self, start: date, end: date):
        super().__init__(
            f"No attendance recorded between {start} and {end}",
            start=start,
            end=end,
        )


class UnexpectedError(EngineError):
    """An unforeseen failure while processing one item of a batch."""

    code = "UNEXPECTED_ERROR"


class InvariantViolation(RuntimeError):
    """Corrupted totals; never recovered from."""
