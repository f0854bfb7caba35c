"""Payment period service - lifecycle of payroll batches."""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from trench_payroll.errors import (
    AuthorizationError,
    ConcurrentModificationError,
    EntityNotFoundError,
    ValidationError,
)
from trench_payroll.models import PaymentPeriod, PaymentPeriodEntry, Project
from trench_payroll.models.base import utcnow
from trench_payroll.services.aggregator import PaymentPeriodAggregator
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import (
    ADMINS,
    Action,
    Actor,
    ResourceKind,
    authorize,
)
from trench_payroll.services.state_machine import (
    PaymentPeriodStateMachine,
    PaymentPeriodStatus,
)

logger = logging.getLogger(__name__)

FORTNIGHT = timedelta(days=13)

_AUDIT_ACTIONS = {
    Action.SUBMIT: AuditAction.SUBMIT,
    Action.APPROVE: AuditAction.APPROVE,
    Action.REJECT: AuditAction.REJECT,
    Action.REOPEN: AuditAction.REOPEN,
    Action.MARK_PAID: AuditAction.PAY,
}


def default_period_end(start_date: date, frequency: str) -> date:
    """End date implied by a project's payment frequency.

    fortnightly: 14 days inclusive; monthly: last day of the start month.
    """
    if frequency == "fortnightly":
        return start_date + FORTNIGHT
    if frequency == "monthly":
        last_day = calendar.monthrange(start_date.year, start_date.month)[1]
        return start_date.replace(day=last_day)
    raise ValidationError(f"Unknown payment frequency '{frequency}'", field="payment_frequency")


class PaymentPeriodService:
    """Service for managing payment period lifecycle.

    Operations:
    - create_payment_period: open a new batch for a project
    - aggregate: re-derive entries from work logs (open only)
    - submit / approve / reject / reopen / mark_paid: role-gated transitions

    Every transition is read-validate-write on a versioned row; a writer
    that lost a race gets ConcurrentModificationError and nothing changes.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.aggregator = PaymentPeriodAggregator(session)
        self.audit = AuditService(session)

    async def create_payment_period(
        self,
        actor: Actor,
        project_id: UUID,
        start_date: date,
        end_date: date | None = None,
    ) -> PaymentPeriod:
        """Create a period in ``open`` state.

        Raises ValidationError if the dates are inverted or overlap another
        period of the same project.
        """
        authorize(actor, Action.CREATE, ResourceKind.PAYMENT_PERIOD)

        project = await self.session.get(Project, project_id)
        if project is None:
            raise EntityNotFoundError("project", project_id)

        if end_date is None:
            end_date = default_period_end(start_date, project.payment_frequency)
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        overlapping = await self._find_overlapping(project_id, start_date, end_date)
        if overlapping is not None:
            raise ValidationError(
                f"Period {start_date}..{end_date} overlaps payment period "
                f"{overlapping.payment_period_id} "
                f"({overlapping.start_date}..{overlapping.end_date})",
                field="start_date",
            )

        period = PaymentPeriod(
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            status=PaymentPeriodStatus.OPEN.value,
        )
        self.session.add(period)
        await self.session.flush()

        self.audit.record(
            actor,
            "payment_period",
            period.payment_period_id,
            AuditAction.CREATE,
            after={"project_id": project_id, "start_date": start_date, "end_date": end_date},
        )
        logger.info(
            "Created payment period %s for project %s (%s..%s)",
            period.payment_period_id,
            project_id,
            start_date,
            end_date,
        )
        return period

    async def get_payment_period(self, period_id: UUID, actor: Actor | None = None) -> PaymentPeriod:
        """Fetch a period; role-checked when an actor is given."""
        if actor is not None:
            authorize(actor, Action.READ, ResourceKind.PAYMENT_PERIOD)
        period = await self.session.get(PaymentPeriod, period_id)
        if period is None:
            raise EntityNotFoundError("payment_period", period_id)
        return period

    async def list_payment_periods(self, actor: Actor, project_id: UUID) -> list[PaymentPeriod]:
        """Periods of a project, most recent first."""
        authorize(actor, Action.READ, ResourceKind.PAYMENT_PERIOD)
        result = await self.session.execute(
            select(PaymentPeriod)
            .where(PaymentPeriod.project_id == project_id)
            .order_by(PaymentPeriod.start_date.desc())
        )
        return list(result.scalars().all())

    async def get_period_entries(self, actor: Actor, period_id: UUID) -> list[PaymentPeriodEntry]:
        """Aggregated entries of a period."""
        authorize(actor, Action.READ, ResourceKind.PAYMENT_PERIOD)
        await self.get_payment_period(period_id)
        return await self.aggregator.get_entries(period_id)

    async def aggregate(self, actor: Actor, period_id: UUID) -> list[PaymentPeriodEntry]:
        """Re-derive the period's entries from work logs."""
        return await self.aggregator.aggregate(actor, period_id)

    async def submit(self, actor: Actor, period_id: UUID) -> PaymentPeriod:
        """open → submitted. Requires a positive total."""
        return await self.transition(actor, period_id, Action.SUBMIT)

    async def approve(self, actor: Actor, period_id: UUID) -> PaymentPeriod:
        """submitted → approved."""
        return await self.transition(actor, period_id, Action.APPROVE)

    async def reject(self, actor: Actor, period_id: UUID, reason: str) -> PaymentPeriod:
        """submitted → rejected. Stays rejected until explicitly reopened."""
        return await self.transition(actor, period_id, Action.REJECT, reason=reason)

    async def reopen(self, actor: Actor, period_id: UUID, reason: str | None = None) -> PaymentPeriod:
        """rejected → open, so the period can be corrected and re-aggregated."""
        return await self.transition(actor, period_id, Action.REOPEN, reason=reason)

    async def mark_paid(self, actor: Actor, period_id: UUID) -> PaymentPeriod:
        """approved → paid. Terminal."""
        return await self.transition(actor, period_id, Action.MARK_PAID)

    async def transition(
        self,
        actor: Actor,
        period_id: UUID,
        action: Action,
        reason: str | None = None,
    ) -> PaymentPeriod:
        """Apply an action to a period.

        Raises:
            AuthorizationError: If the actor's role may not perform the action
            InvalidTransitionError: If the current status does not allow it
            ValidationError: If a guard fails (zero total, missing reason)
            ConcurrentModificationError: If the period changed since it was read
        """
        authorize(actor, action, ResourceKind.PAYMENT_PERIOD)

        period = await self.get_payment_period(period_id)
        from_status = period.status
        to_status = PaymentPeriodStateMachine.next_status(from_status, action)

        errors = PaymentPeriodStateMachine.validate_period_for_action(period, action, reason)
        if errors:
            raise ValidationError("; ".join(errors), field="status", status=from_status)

        if action == Action.REOPEN:
            self._check_reopen_ownership(actor, period)

        now = utcnow()
        if action == Action.SUBMIT:
            period.submitted_by = actor.user_id
            period.submitted_at = now
        elif action == Action.APPROVE:
            period.approved_by = actor.user_id
            period.approved_at = now
        elif action == Action.REJECT:
            period.rejected_by = actor.user_id
            period.rejected_at = now
            period.rejection_reason = reason
        elif action == Action.MARK_PAID:
            period.paid_by = actor.user_id
            period.paid_at = now
        elif action == Action.REOPEN:
            period.submitted_by = None
            period.submitted_at = None
            period.approved_by = None
            period.approved_at = None
            period.rejected_by = None
            period.rejected_at = None
            period.rejection_reason = None
            period.reopen_count += 1

        period.status = to_status.value
        try:
            await self.session.flush()
        except StaleDataError:
            logger.warning(
                "Concurrent modification of payment period %s during %s",
                period_id,
                action.value,
            )
            raise ConcurrentModificationError("payment_period", period_id)

        self.audit.record(
            actor,
            "payment_period",
            period_id,
            _AUDIT_ACTIONS[action],
            before={"status": from_status},
            after={"status": to_status.value, "reason": reason} if reason else {"status": to_status.value},
        )
        logger.info(
            "Payment period %s: %s → %s by %s",
            period_id,
            from_status,
            to_status.value,
            actor.user_id,
        )
        return period

    def _check_reopen_ownership(self, actor: Actor, period: PaymentPeriod) -> None:
        # Project managers may only reopen periods they submitted themselves
        if actor.role in ADMINS:
            return
        if period.submitted_by != actor.user_id:
            raise AuthorizationError(
                actor.role.value,
                Action.REOPEN.value,
                ResourceKind.PAYMENT_PERIOD.value,
                "only the submitter or an administrator may reopen this period",
            )

    async def _find_overlapping(
        self, project_id: UUID, start_date: date, end_date: date
    ) -> PaymentPeriod | None:
        result = await self.session.execute(
            select(PaymentPeriod)
            .where(
                PaymentPeriod.project_id == project_id,
                PaymentPeriod.start_date <= end_date,
                PaymentPeriod.end_date >= start_date,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


__all__ = ["PaymentPeriodService", "default_period_end"]
