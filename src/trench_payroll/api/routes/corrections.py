"""Correction request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from trench_payroll.api.dependencies import CurrentActor, DbSession
from trench_payroll.api.schemas import (
    CorrectionCreate,
    CorrectionResponse,
    CorrectionReview,
    ErrorResponse,
)
from trench_payroll.services.correction_service import CorrectionService

router = APIRouter(prefix="/corrections", tags=["corrections"])


@router.post(
    "",
    response_model=CorrectionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def request_correction(
    db: DbSession,
    actor: CurrentActor,
    payload: CorrectionCreate,
) -> CorrectionResponse:
    """File a pending correction. The target is not changed until approval."""
    request = await CorrectionService(db).request_correction(
        actor,
        payload.entity_type,
        payload.entity_id,
        payload.field_name,
        payload.new_value,
        payload.reason,
        old_value=payload.old_value,
    )
    return CorrectionResponse.model_validate(request)


@router.get("", response_model=list[CorrectionResponse])
async def list_corrections(
    db: DbSession,
    actor: CurrentActor,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    requested_by: UUID | None = None,
) -> list[CorrectionResponse]:
    requests = await CorrectionService(db).list_correction_requests(
        actor,
        status=status_filter,
        entity_type=entity_type,
        entity_id=entity_id,
        requested_by=requested_by,
    )
    return [CorrectionResponse.model_validate(r) for r in requests]


@router.get(
    "/{request_id}",
    response_model=CorrectionResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_correction(
    db: DbSession,
    actor: CurrentActor,
    request_id: Annotated[UUID, Path()],
) -> CorrectionResponse:
    request = await CorrectionService(db).get_correction_request(actor, request_id)
    return CorrectionResponse.model_validate(request)


@router.post(
    "/{request_id}/review",
    response_model=CorrectionResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def review_correction(
    db: DbSession,
    actor: CurrentActor,
    request_id: Annotated[UUID, Path()],
    payload: CorrectionReview,
) -> CorrectionResponse:
    """Approve or reject a pending request; approval applies it."""
    request = await CorrectionService(db).review_correction(
        actor, request_id, payload.decision, payload.notes
    )
    return CorrectionResponse.model_validate(request)
