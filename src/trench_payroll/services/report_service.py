"""Read-only payroll report over an arbitrary date range."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.errors import EntityNotFoundError, ValidationError
from trench_payroll.models import Labourer, Project, WorkLog
from trench_payroll.services.aggregator import ZERO, LabourerTotals, summarize_work_logs
from trench_payroll.services.authorization import Action, Actor, ResourceKind, authorize


@dataclass(frozen=True)
class PayrollReportRow:
    labourer_id: UUID
    full_name: str
    id_number: str
    totals: LabourerTotals


@dataclass
class PayrollReport:
    project_id: UUID
    start_date: date
    end_date: date
    rows: list[PayrollReportRow] = field(default_factory=list)

    @property
    def grand_total(self) -> Decimal:
        return sum((row.totals.total_earnings for row in self.rows), ZERO)


class PayrollReportService:
    """Per-labourer totals for a project and date range.

    Uses the same grouping as period aggregation but persists nothing, so it
    can preview any range regardless of period boundaries or status.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def payroll_report(
        self,
        actor: Actor,
        project_id: UUID,
        start_date: date,
        end_date: date,
    ) -> PayrollReport:
        authorize(actor, Action.READ, ResourceKind.REPORT)
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")
        if await self.session.get(Project, project_id) is None:
            raise EntityNotFoundError("project", project_id)

        result = await self.session.execute(
            select(WorkLog).where(
                WorkLog.project_id == project_id,
                WorkLog.work_date >= start_date,
                WorkLog.work_date <= end_date,
            )
        )
        totals = summarize_work_logs(result.scalars().all())

        labourers: dict[UUID, Labourer] = {}
        if totals:
            found = await self.session.execute(
                select(Labourer).where(Labourer.labourer_id.in_([t.labourer_id for t in totals]))
            )
            labourers = {lab.labourer_id: lab for lab in found.scalars().all()}

        report = PayrollReport(project_id=project_id, start_date=start_date, end_date=end_date)
        for t in totals:
            labourer = labourers.get(t.labourer_id)
            report.rows.append(
                PayrollReportRow(
                    labourer_id=t.labourer_id,
                    full_name=labourer.full_name if labourer else "",
                    id_number=labourer.id_number if labourer else "",
                    totals=t,
                )
            )
        return report
