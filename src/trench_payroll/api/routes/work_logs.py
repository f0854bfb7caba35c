"""Work log API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from trench_payroll.api.dependencies import CurrentActor, DbSession
from trench_payroll.api.schemas import (
    ErrorResponse,
    WorkLogCreate,
    WorkLogRecordResponse,
    WorkLogResponse,
)
from trench_payroll.services.work_log_service import WorkLogService

router = APIRouter(tags=["work-logs"])


@router.post(
    "/work-logs",
    response_model=WorkLogRecordResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def record_work_log(
    db: DbSession,
    actor: CurrentActor,
    payload: WorkLogCreate,
) -> WorkLogRecordResponse:
    """Record or overwrite a labourer's output for a day."""
    items = None
    if payload.additional_items is not None:
        items = [
            {"description": item.description, "amount": str(item.amount)}
            for item in payload.additional_items
        ]
    recording = await WorkLogService(db).record_work_log(
        actor,
        payload.project_id,
        payload.labourer_id,
        payload.work_date,
        open_meters=payload.open_meters,
        close_meters=payload.close_meters,
        additional_items=items,
    )
    return WorkLogRecordResponse(
        work_log=WorkLogResponse.model_validate(recording.work_log),
        created=recording.created,
        warnings=recording.warnings,
    )


@router.get("/work-logs", response_model=list[WorkLogResponse])
async def list_work_logs(
    db: DbSession,
    actor: CurrentActor,
    project_id: UUID,
    start_date: Annotated[date | None, Query()] = None,
    end_date: Annotated[date | None, Query()] = None,
) -> list[WorkLogResponse]:
    """List a project's work logs, optionally within a date range."""
    logs = await WorkLogService(db).list_work_logs(actor, project_id, start_date, end_date)
    return [WorkLogResponse.model_validate(log) for log in logs]


@router.get("/labourers/{labourer_id}/work-logs", response_model=list[WorkLogResponse])
async def list_labourer_work_logs(
    db: DbSession,
    actor: CurrentActor,
    labourer_id: Annotated[UUID, Path()],
) -> list[WorkLogResponse]:
    """A labourer's own work history."""
    logs = await WorkLogService(db).list_my_work_logs(actor, labourer_id)
    return [WorkLogResponse.model_validate(log) for log in logs]
