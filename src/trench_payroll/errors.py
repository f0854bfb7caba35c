"""Typed error taxonomy for the payroll core.

Every error carries a stable ``code`` so callers can map it to their own
responses without parsing messages:

    PayrollError
    +-- ValidationError
    |   +-- InvalidInputError
    +-- AuthorizationError
    +-- StateError
    |   +-- InvalidTransitionError
    |   +-- PeriodLockedError
    |   +-- AlreadyReviewedError
    |   +-- HistoricalEditDeniedError
    +-- NotFoundError
    |   +-- RateNotFoundError
    |   +-- EntityNotFoundError
    +-- ConcurrentModificationError

A rejected operation never leaves a partial write behind.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll core errors."""

    code: str = "PAYROLL_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form for API responses and audit payloads."""
        return {
            "code": self.code,
            "detail": self.message,
            **{k: str(v) if v is not None else None for k, v in self.details.items()},
        }


# ===== Validation =====


class ValidationError(PayrollError):
    """Malformed input; rejected before any side effect."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any):
        self.field = field
        super().__init__(message, field=field, **details)


class InvalidInputError(ValidationError):
    """A calculator received inputs it must never see (e.g. negative meters)."""

    code = "INVALID_INPUT"


# ===== Authorization =====


class AuthorizationError(PayrollError):
    """The actor's role lacks the capability for the action."""

    code = "FORBIDDEN"

    def __init__(self, role: str, action: str, resource: str, reason: str | None = None):
        self.role = role
        self.action = action
        self.resource = resource
        msg = f"Role '{role}' may not '{action}' on '{resource}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, role=role, action=action, resource=resource)


# ===== State =====


class StateError(PayrollError):
    """Operation not allowed in the entity's current state."""

    code = "STATE_ERROR"


class InvalidTransitionError(StateError):
    """Raised when an action is attempted from a state that does not allow it."""

    code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, action: str, reason: str | None = None):
        self.current_status = current_status
        self.action = action
        self.reason = reason
        msg = f"Cannot '{action}' a payment period in status '{current_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, current_status=current_status, action=action)


class PeriodLockedError(StateError):
    """The payment period has left draft state; its figures are frozen."""

    code = "PERIOD_LOCKED"

    def __init__(self, period_id: UUID, current_status: str):
        self.period_id = period_id
        self.current_status = current_status
        super().__init__(
            f"Payment period {period_id} is locked (status '{current_status}')",
            period_id=period_id,
            current_status=current_status,
        )


class AlreadyReviewedError(StateError):
    """A decision was submitted for a correction request that is not pending."""

    code = "ALREADY_REVIEWED"

    def __init__(self, request_id: UUID, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(
            f"Correction request {request_id} was already {current_status}",
            request_id=request_id,
            current_status=current_status,
        )


class HistoricalEditDeniedError(StateError):
    """A historical record may only change through a correction request."""

    code = "HISTORICAL_EDIT_DENIED"

    def __init__(self, message: str, work_date: date | None = None, role: str | None = None):
        self.work_date = work_date
        self.role = role
        super().__init__(message, work_date=work_date, role=role)


# ===== Not found =====


class NotFoundError(PayrollError):
    """A referenced entity or rate does not exist."""

    code = "NOT_FOUND"


class RateNotFoundError(NotFoundError):
    """Raised when no matching rate is found."""

    code = "RATE_NOT_FOUND"

    def __init__(
        self,
        project_id: UUID,
        employee_type_id: UUID,
        category: str,
        as_of_date: date,
    ):
        self.project_id = project_id
        self.employee_type_id = employee_type_id
        self.category = category
        self.as_of_date = as_of_date
        super().__init__(
            f"No '{category}' pay rate for employee type {employee_type_id} "
            f"on project {project_id} effective {as_of_date}",
            project_id=project_id,
            employee_type_id=employee_type_id,
            category=category,
            as_of_date=as_of_date,
        )


class EntityNotFoundError(NotFoundError):
    """Unknown entity id."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            entity_type=entity_type,
            entity_id=entity_id,
        )


# ===== Concurrency =====


class ConcurrentModificationError(PayrollError):
    """The entity changed between read and write; re-read and retry."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently",
            entity_type=entity_type,
            entity_id=entity_id,
        )
