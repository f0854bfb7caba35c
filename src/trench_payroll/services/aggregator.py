"""Payment period aggregation: work logs → per-labourer period entries."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid5

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from trench_payroll.errors import (
    ConcurrentModificationError,
    EntityNotFoundError,
    PeriodLockedError,
)
from trench_payroll.models import PaymentPeriod, PaymentPeriodEntry, WorkLog
from trench_payroll.models.base import utcnow
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import Action, Actor, ResourceKind, authorize
from trench_payroll.services.state_machine import PaymentPeriodStateMachine

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class LabourerTotals:
    """Aggregated output and earnings of one labourer over a date range."""

    labourer_id: UUID
    days_worked: int
    open_meters: Decimal
    close_meters: Decimal
    total_earnings: Decimal

    @property
    def total_meters(self) -> Decimal:
        return self.open_meters + self.close_meters


def summarize_work_logs(work_logs: Iterable[WorkLog]) -> list[LabourerTotals]:
    """Group work logs by labourer and total them.

    - days_worked counts distinct dates with any open or close meters
    - earnings are the stored per-log totals, never recomputed
    - output is ordered by labourer id so repeated runs compare equal
    """
    days: dict[UUID, set[date]] = defaultdict(set)
    open_meters: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    close_meters: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    earnings: dict[UUID, Decimal] = defaultdict(lambda: ZERO)

    for log in work_logs:
        labourer_id = log.labourer_id
        if log.has_output:
            days[labourer_id].add(log.work_date)
        open_meters[labourer_id] += log.open_meters
        close_meters[labourer_id] += log.close_meters
        earnings[labourer_id] += log.total_earnings

    return [
        LabourerTotals(
            labourer_id=labourer_id,
            days_worked=len(days[labourer_id]),
            open_meters=open_meters[labourer_id],
            close_meters=close_meters[labourer_id],
            total_earnings=earnings[labourer_id],
        )
        for labourer_id in sorted(earnings, key=str)
    ]


def entry_id_for(period_id: UUID, labourer_id: UUID) -> UUID:
    """Deterministic entry id, so re-aggregation reproduces identical rows."""
    return uuid5(period_id, str(labourer_id))


class PaymentPeriodAggregator:
    """Derives payment period entries from stored work logs.

    Aggregation is a snapshot-and-swap: the full entry set is computed in
    memory first, then the period row is claimed with a version check and
    the old entries are replaced in the same transaction. A period that has
    left ``open`` is locked and cannot be re-aggregated.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    async def aggregate(self, actor: Actor, period_id: UUID) -> list[PaymentPeriodEntry]:
        """Replace the period's entries with totals derived from its work logs.

        Raises:
            AuthorizationError: If the actor may not aggregate periods
            EntityNotFoundError: If the period does not exist
            PeriodLockedError: If the period is not open
            ConcurrentModificationError: If the period changed mid-operation
        """
        authorize(actor, Action.AGGREGATE, ResourceKind.PAYMENT_PERIOD)

        period = await self.session.get(PaymentPeriod, period_id)
        if period is None:
            raise EntityNotFoundError("payment_period", period_id)
        if not PaymentPeriodStateMachine.can_aggregate(period.status):
            raise PeriodLockedError(period_id, period.status)

        work_logs = await self._load_work_logs(period)
        totals = summarize_work_logs(work_logs)
        new_total = sum((t.total_earnings for t in totals), ZERO)
        previous_total = period.total_amount

        # Claim the period first; a concurrent submit or aggregation bumps
        # the version and this flush fails before any entry is touched.
        period.total_amount = new_total
        period.aggregated_at = utcnow()
        try:
            await self.session.flush()
        except StaleDataError:
            logger.warning("Aggregation of payment period %s lost a race", period_id)
            raise ConcurrentModificationError("payment_period", period_id)

        await self._replace_entries(period_id, totals)

        self.audit.record(
            actor,
            "payment_period",
            period_id,
            AuditAction.AGGREGATE,
            before={"total_amount": previous_total},
            after={"total_amount": new_total, "entries": len(totals)},
        )
        logger.info(
            "Aggregated payment period %s: %d labourers, total %s",
            period_id,
            len(totals),
            new_total,
        )
        return await self.get_entries(period_id)

    async def get_entries(self, period_id: UUID) -> list[PaymentPeriodEntry]:
        """Entries of a period ordered by labourer."""
        result = await self.session.execute(
            select(PaymentPeriodEntry)
            .where(PaymentPeriodEntry.payment_period_id == period_id)
            .order_by(PaymentPeriodEntry.labourer_id)
        )
        return list(result.scalars().all())

    async def _load_work_logs(self, period: PaymentPeriod) -> list[WorkLog]:
        result = await self.session.execute(
            select(WorkLog).where(
                WorkLog.project_id == period.project_id,
                WorkLog.work_date >= period.start_date,
                WorkLog.work_date <= period.end_date,
            )
        )
        return list(result.scalars().all())

    async def _replace_entries(self, period_id: UUID, totals: list[LabourerTotals]) -> None:
        for existing in await self.get_entries(period_id):
            await self.session.delete(existing)
        await self.session.flush()

        self.session.add_all(
            PaymentPeriodEntry(
                entry_id=entry_id_for(period_id, t.labourer_id),
                payment_period_id=period_id,
                labourer_id=t.labourer_id,
                days_worked=t.days_worked,
                open_meters=t.open_meters,
                close_meters=t.close_meters,
                total_meters=t.total_meters,
                total_earnings=t.total_earnings,
            )
            for t in totals
        )
        await self.session.flush()
