"""Work-log store: daily trenching output and the earnings captured with it."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.calculators.earnings import (
    compute_earnings,
    normalize_quantity,
    parse_additional_items,
)
from trench_payroll.calculators.rate_resolver import RateResolver
from trench_payroll.calculators.types import AdditionalItem, ResolvedRates
from trench_payroll.errors import (
    AuthorizationError,
    EntityNotFoundError,
    HistoricalEditDeniedError,
    PeriodLockedError,
    ValidationError,
)
from trench_payroll.models import Labourer, PaymentPeriod, Project, WorkLog
from trench_payroll.models.base import utcnow
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import (
    Action,
    Actor,
    ResourceKind,
    Role,
    authorize,
    is_allowed,
)
from trench_payroll.services.state_machine import PaymentPeriodStatus

logger = logging.getLogger(__name__)


@dataclass
class WorkLogRecording:
    """Outcome of a work-log write."""

    work_log: WorkLog
    created: bool
    warnings: list[str] = field(default_factory=list)


class WorkLogService:
    """Owns daily work-log records.

    Rules:
    - field roles (supervisor, project_admin) may only write today's date
    - managers may also write past dates, but only over entries they
      recorded themselves; anything else goes through a correction request
    - one entry per labourer per day; a second write overwrites it
      on the same project and is refused across projects
    - dates inside a submitted/approved/paid period are frozen
    - earnings are computed and stored at write time from the rates
      effective on the work date
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)
        self.audit = AuditService(session)

    async def record_work_log(
        self,
        actor: Actor,
        project_id: UUID,
        labourer_id: UUID,
        work_date: date,
        open_meters: Any = Decimal("0"),
        close_meters: Any = Decimal("0"),
        additional_items: Sequence[Any] | None = None,
        today: date | None = None,
    ) -> WorkLogRecording:
        """Record (or overwrite) a labourer's output for a day.

        Raises:
            AuthorizationError: If the actor may not record work logs
            ValidationError: On negative/over-precise meters or bad items
            HistoricalEditDeniedError: If the date is not today and the
                actor lacks elevated privilege, or the entry belongs to
                another recorder
            PeriodLockedError: If a non-open period covers the date
            EntityNotFoundError: If the project or labourer is unknown
        """
        authorize(actor, Action.CREATE, ResourceKind.WORK_LOG)
        today = today or date.today()

        open_m = normalize_quantity(open_meters, "open_meters")
        close_m = normalize_quantity(close_meters, "close_meters")
        items = parse_additional_items(additional_items)

        if work_date != today:
            if not is_allowed(actor.role, Action.EDIT_HISTORICAL, ResourceKind.WORK_LOG):
                raise HistoricalEditDeniedError(
                    f"Role '{actor.role.value}' may only record work for today ({today}); "
                    "submit a correction request to change other dates",
                    work_date=work_date,
                    role=actor.role.value,
                )
            if work_date > today:
                raise ValidationError(
                    f"Cannot record work for a future date ({work_date})", field="work_date"
                )

        project = await self.session.get(Project, project_id)
        if project is None:
            raise EntityNotFoundError("project", project_id)
        if project.is_closed:
            raise HistoricalEditDeniedError(
                f"Project {project_id} is closed; submit a correction request",
                work_date=work_date,
                role=actor.role.value,
            )

        labourer = await self.session.get(Labourer, labourer_id)
        if labourer is None:
            raise EntityNotFoundError("labourer", labourer_id)
        if labourer.project_id != project_id:
            raise ValidationError(
                f"Labourer {labourer_id} is not assigned to project {project_id}",
                field="labourer_id",
            )

        existing = await self.find_work_log(labourer_id, work_date)
        if existing is not None:
            await self.ensure_date_unlocked(existing.project_id, work_date)
        if existing is not None and existing.project_id != project_id:
            raise HistoricalEditDeniedError(
                f"Labourer {labourer_id} already has a work log for {work_date} on "
                f"project {existing.project_id}; a day cannot move between projects",
                work_date=work_date,
                role=actor.role.value,
            )
        if (
            existing is not None
            and work_date != today
            and existing.recorded_by != actor.user_id
        ):
            raise HistoricalEditDeniedError(
                f"Work log for {work_date} was recorded by another user; "
                "submit a correction request",
                work_date=work_date,
                role=actor.role.value,
            )

        await self.ensure_date_unlocked(project_id, work_date)

        total, rates = await self.calculate(
            project_id, labourer.employee_type_id, work_date, open_m, close_m, items
        )
        stored_items = [item.to_dict() for item in items] or None

        if existing is None:
            work_log = WorkLog(
                project_id=project_id,
                labourer_id=labourer_id,
                employee_type_id=labourer.employee_type_id,
                work_date=work_date,
                open_meters=open_m,
                close_meters=close_m,
                additional_items=stored_items,
                total_earnings=total,
                recorded_by=actor.user_id,
                recorded_at=utcnow(),
            )
            self.session.add(work_log)
            await self.session.flush()
            self.audit.record(
                actor, "work_log", work_log.work_log_id, AuditAction.CREATE,
                after=_snapshot(work_log),
            )
            created = True
        else:
            work_log = existing
            before = _snapshot(work_log)
            work_log.employee_type_id = labourer.employee_type_id
            work_log.open_meters = open_m
            work_log.close_meters = close_m
            work_log.additional_items = stored_items
            work_log.total_earnings = total
            work_log.recorded_by = actor.user_id
            work_log.recorded_at = utcnow()
            await self.session.flush()
            self.audit.record_update(
                actor, "work_log", work_log.work_log_id, before, _snapshot(work_log)
            )
            created = False

        logger.info(
            "Recorded work log %s for labourer %s on %s: %s",
            work_log.work_log_id,
            labourer_id,
            work_date,
            total,
        )
        return WorkLogRecording(work_log=work_log, created=created, warnings=rates.warnings)

    async def calculate(
        self,
        project_id: UUID,
        employee_type_id: UUID,
        work_date: date,
        open_meters: Decimal,
        close_meters: Decimal,
        items: Sequence[AdditionalItem] = (),
    ) -> tuple[Decimal, ResolvedRates]:
        """Resolve the day's rates and compute earnings."""
        rates = await self.rate_resolver.resolve_work_log_rates(
            project_id, employee_type_id, work_date, open_meters, close_meters
        )
        total = compute_earnings(
            open_meters, close_meters, rates.open_rate, rates.close_rate, items
        )
        return total, rates

    async def recompute_earnings(self, work_log: WorkLog) -> Decimal:
        """Recompute a stored entry from its own meters, type and date's rates."""
        total, _ = await self.calculate(
            work_log.project_id,
            work_log.employee_type_id,
            work_log.work_date,
            work_log.open_meters,
            work_log.close_meters,
            parse_additional_items(work_log.additional_items),
        )
        return total

    async def ensure_date_unlocked(self, project_id: UUID, work_date: date) -> None:
        """Raise PeriodLockedError if a non-open period of the project covers the date."""
        result = await self.session.execute(
            select(PaymentPeriod)
            .where(
                PaymentPeriod.project_id == project_id,
                PaymentPeriod.start_date <= work_date,
                PaymentPeriod.end_date >= work_date,
                PaymentPeriod.status != PaymentPeriodStatus.OPEN.value,
            )
            .limit(1)
        )
        locked = result.scalar_one_or_none()
        if locked is not None:
            raise PeriodLockedError(locked.payment_period_id, locked.status)

    async def find_work_log(self, labourer_id: UUID, work_date: date) -> WorkLog | None:
        result = await self.session.execute(
            select(WorkLog).where(
                WorkLog.labourer_id == labourer_id,
                WorkLog.work_date == work_date,
            )
        )
        return result.scalar_one_or_none()

    async def get_work_log(self, work_log_id: UUID) -> WorkLog:
        work_log = await self.session.get(WorkLog, work_log_id)
        if work_log is None:
            raise EntityNotFoundError("work_log", work_log_id)
        return work_log

    async def list_work_logs(
        self,
        actor: Actor,
        project_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[WorkLog]:
        """Work logs of a project, optionally limited to a date range."""
        authorize(actor, Action.READ, ResourceKind.WORK_LOG)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        query = select(WorkLog).where(WorkLog.project_id == project_id)
        if start_date is not None:
            query = query.where(WorkLog.work_date >= start_date)
        if end_date is not None:
            query = query.where(WorkLog.work_date <= end_date)
        query = query.order_by(WorkLog.work_date.desc(), WorkLog.labourer_id)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_my_work_logs(self, actor: Actor, labourer_id: UUID) -> list[WorkLog]:
        """A labourer's own history. Labourers may only read their own."""
        authorize(actor, Action.READ_OWN, ResourceKind.WORK_LOG)

        labourer = await self.session.get(Labourer, labourer_id)
        if labourer is None:
            raise EntityNotFoundError("labourer", labourer_id)
        if actor.role == Role.LABOURER and labourer.user_id != actor.user_id:
            raise AuthorizationError(
                actor.role.value,
                Action.READ.value,
                ResourceKind.WORK_LOG.value,
                "labourers may only view their own work logs",
            )

        result = await self.session.execute(
            select(WorkLog)
            .where(WorkLog.labourer_id == labourer_id)
            .order_by(WorkLog.work_date.desc())
        )
        return list(result.scalars().all())


def _snapshot(work_log: WorkLog) -> dict[str, Any]:
    return {
        "project_id": work_log.project_id,
        "labourer_id": work_log.labourer_id,
        "employee_type_id": work_log.employee_type_id,
        "work_date": work_log.work_date,
        "open_meters": work_log.open_meters,
        "close_meters": work_log.close_meters,
        "additional_items": work_log.additional_items,
        "total_earnings": work_log.total_earnings,
        "recorded_by": work_log.recorded_by,
    }
