"""Payroll report endpoint."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from trench_payroll.api.dependencies import CurrentActor, DbSession
from trench_payroll.services.report_service import PayrollReportService

router = APIRouter(prefix="/reports", tags=["reports"])


class PayrollReportLine(BaseModel):
    labourer_id: UUID
    full_name: str
    id_number: str
    days_worked: int
    open_meters: Decimal
    close_meters: Decimal
    total_meters: Decimal
    total_earnings: Decimal


class PayrollReportResponse(BaseModel):
    project_id: UUID
    start_date: date
    end_date: date
    lines: list[PayrollReportLine]
    grand_total: Decimal


@router.get("/payroll", response_model=PayrollReportResponse)
async def payroll_report(
    db: DbSession,
    actor: CurrentActor,
    project_id: UUID,
    start_date: date,
    end_date: date,
) -> PayrollReportResponse:
    """Per-labourer totals for a project over a date range."""
    report = await PayrollReportService(db).payroll_report(actor, project_id, start_date, end_date)
    return PayrollReportResponse(
        project_id=report.project_id,
        start_date=report.start_date,
        end_date=report.end_date,
        lines=[
            PayrollReportLine(
                labourer_id=row.labourer_id,
                full_name=row.full_name,
                id_number=row.id_number,
                days_worked=row.totals.days_worked,
                open_meters=row.totals.open_meters,
                close_meters=row.totals.close_meters,
                total_meters=row.totals.total_meters,
                total_earnings=row.totals.total_earnings,
            )
            for row in report.rows
        ],
        grand_total=report.grand_total,
    )
