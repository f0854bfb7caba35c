"""Payment period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from trench_payroll.api.dependencies import CurrentActor, DbSession
from trench_payroll.api.schemas import (
    ErrorResponse,
    PaymentPeriodCreate,
    PaymentPeriodEntryResponse,
    PaymentPeriodResponse,
    ReasonRequest,
)
from trench_payroll.services.payment_period_service import PaymentPeriodService

router = APIRouter(prefix="/payment-periods", tags=["payment-periods"])

_TRANSITION_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ============================================================================
# Payment Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=PaymentPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_payment_period(
    db: DbSession,
    actor: CurrentActor,
    payload: PaymentPeriodCreate,
) -> PaymentPeriodResponse:
    """Open a new payment period."""
    period = await PaymentPeriodService(db).create_payment_period(
        actor, payload.project_id, payload.start_date, payload.end_date
    )
    return PaymentPeriodResponse.model_validate(period)


@router.get("", response_model=list[PaymentPeriodResponse])
async def list_payment_periods(
    db: DbSession,
    actor: CurrentActor,
    project_id: Annotated[UUID, Query()],
) -> list[PaymentPeriodResponse]:
    periods = await PaymentPeriodService(db).list_payment_periods(actor, project_id)
    return [PaymentPeriodResponse.model_validate(p) for p in periods]


@router.get(
    "/{period_id}",
    response_model=PaymentPeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PaymentPeriodResponse:
    period = await PaymentPeriodService(db).get_payment_period(period_id, actor)
    return PaymentPeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/entries",
    response_model=list[PaymentPeriodEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_period_entries(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> list[PaymentPeriodEntryResponse]:
    entries = await PaymentPeriodService(db).get_period_entries(actor, period_id)
    return [PaymentPeriodEntryResponse.model_validate(e) for e in entries]


# ============================================================================
# Aggregation and State Transitions
# ============================================================================


@router.post(
    "/{period_id}/aggregate",
    response_model=list[PaymentPeriodEntryResponse],
    responses=_TRANSITION_ERRORS,
)
async def aggregate_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> list[PaymentPeriodEntryResponse]:
    """Re-derive the period's entries from work logs. Open periods only."""
    entries = await PaymentPeriodService(db).aggregate(actor, period_id)
    return [PaymentPeriodEntryResponse.model_validate(e) for e in entries]


@router.post("/{period_id}/submit", response_model=PaymentPeriodResponse, responses=_TRANSITION_ERRORS)
async def submit_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PaymentPeriodResponse:
    period = await PaymentPeriodService(db).submit(actor, period_id)
    return PaymentPeriodResponse.model_validate(period)


@router.post("/{period_id}/approve", response_model=PaymentPeriodResponse, responses=_TRANSITION_ERRORS)
async def approve_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PaymentPeriodResponse:
    period = await PaymentPeriodService(db).approve(actor, period_id)
    return PaymentPeriodResponse.model_validate(period)


@router.post("/{period_id}/reject", response_model=PaymentPeriodResponse, responses=_TRANSITION_ERRORS)
async def reject_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
    payload: ReasonRequest,
) -> PaymentPeriodResponse:
    period = await PaymentPeriodService(db).reject(actor, period_id, payload.reason or "")
    return PaymentPeriodResponse.model_validate(period)


@router.post("/{period_id}/reopen", response_model=PaymentPeriodResponse, responses=_TRANSITION_ERRORS)
async def reopen_payment_period(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
    payload: ReasonRequest | None = None,
) -> PaymentPeriodResponse:
    reason = payload.reason if payload else None
    period = await PaymentPeriodService(db).reopen(actor, period_id, reason)
    return PaymentPeriodResponse.model_validate(period)


@router.post("/{period_id}/mark-paid", response_model=PaymentPeriodResponse, responses=_TRANSITION_ERRORS)
async def mark_payment_period_paid(
    db: DbSession,
    actor: CurrentActor,
    period_id: Annotated[UUID, Path()],
) -> PaymentPeriodResponse:
    period = await PaymentPeriodService(db).mark_paid(actor, period_id)
    return PaymentPeriodResponse.model_validate(period)
