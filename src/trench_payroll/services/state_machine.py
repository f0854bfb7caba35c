"""Payment period state machine with transition validation."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from trench_payroll.errors import InvalidTransitionError
from trench_payroll.services.authorization import Action

if TYPE_CHECKING:
    from trench_payroll.models import PaymentPeriod


class PaymentPeriodStatus(str, Enum):
    """Payment period status values."""

    OPEN = "open"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class PaymentPeriodStateMachine:
    """State machine for payment period status transitions.

    Allowed transitions:
    - open → submitted (submit)
    - submitted → approved (approve)
    - submitted → rejected (reject)
    - approved → paid (mark_paid)
    - rejected → open (reopen)

    Rejection is a terminal review outcome until someone explicitly reopens
    the period. Paid is terminal.
    """

    # {(from_status, action): to_status}
    TRANSITIONS: dict[tuple[PaymentPeriodStatus, Action], PaymentPeriodStatus] = {
        (PaymentPeriodStatus.OPEN, Action.SUBMIT): PaymentPeriodStatus.SUBMITTED,
        (PaymentPeriodStatus.SUBMITTED, Action.APPROVE): PaymentPeriodStatus.APPROVED,
        (PaymentPeriodStatus.SUBMITTED, Action.REJECT): PaymentPeriodStatus.REJECTED,
        (PaymentPeriodStatus.APPROVED, Action.MARK_PAID): PaymentPeriodStatus.PAID,
        (PaymentPeriodStatus.REJECTED, Action.REOPEN): PaymentPeriodStatus.OPEN,
    }

    # Statuses where entries may be re-derived from work logs
    AGGREGATION_ALLOWED = {PaymentPeriodStatus.OPEN}

    TERMINAL = {PaymentPeriodStatus.PAID}

    @classmethod
    def can_apply(cls, status: str, action: Action) -> bool:
        """Check if an action is valid from a status."""
        try:
            return (PaymentPeriodStatus(status), action) in cls.TRANSITIONS
        except ValueError:
            return False

    @classmethod
    def next_status(cls, status: str, action: Action) -> PaymentPeriodStatus:
        """Target status of an action, raising InvalidTransitionError if invalid."""
        if not cls.can_apply(status, action):
            raise InvalidTransitionError(str(status), action.value)
        return cls.TRANSITIONS[(PaymentPeriodStatus(status), action)]

    @classmethod
    def get_available_actions(cls, status: str) -> list[Action]:
        """Actions that are valid from the current status."""
        return [action for (src, action) in cls.TRANSITIONS if src.value == status]

    @classmethod
    def can_aggregate(cls, status: str) -> bool:
        """Check if entries may be (re)aggregated in this status."""
        return status in cls.AGGREGATION_ALLOWED

    @classmethod
    def are_figures_frozen(cls, status: str) -> bool:
        """Figures are frozen once the period leaves draft state."""
        return not cls.can_aggregate(status)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def validate_period_for_action(
        cls, period: PaymentPeriod, action: Action, reason: str | None = None
    ) -> list[str]:
        """Validate the guards of an action, returning any errors.

        Source-state mismatches are not reported here; ``next_status`` raises
        for those. Returns list of error messages (empty if valid).
        """
        errors: list[str] = []

        if action == Action.SUBMIT:
            if (period.total_amount or Decimal("0")) <= 0:
                errors.append("Cannot submit a payment period with a zero total")

        elif action == Action.REJECT:
            if not reason or not reason.strip():
                errors.append("Rejecting a payment period requires a reason")

        return errors
