"""Pay rate API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from trench_payroll.api.dependencies import CurrentActor, DbSession
from trench_payroll.api.schemas import ErrorResponse, PayRateCreate, PayRateResponse
from trench_payroll.calculators.rate_resolver import RateResolver
from trench_payroll.services.authorization import Action, ResourceKind, authorize
from trench_payroll.services.workforce_service import WorkforceService

router = APIRouter(prefix="/rates", tags=["rates"])


class ResolvedRateResponse(PayRateResponse):
    """The rate in force on the requested date."""

    as_of_date: date


@router.post(
    "",
    response_model=PayRateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_pay_rate(
    db: DbSession,
    actor: CurrentActor,
    payload: PayRateCreate,
) -> PayRateResponse:
    rate = await WorkforceService(db).create_pay_rate(
        actor,
        payload.project_id,
        payload.employee_type_id,
        payload.category,
        payload.amount,
        payload.effective_date,
        unit=payload.unit,
        category_name=payload.category_name,
    )
    return PayRateResponse.model_validate(rate)


@router.get("", response_model=list[PayRateResponse])
async def list_pay_rates(
    db: DbSession,
    actor: CurrentActor,
    project_id: Annotated[UUID, Query()],
) -> list[PayRateResponse]:
    rates = await WorkforceService(db).list_pay_rates(actor, project_id)
    return [PayRateResponse.model_validate(r) for r in rates]


@router.get(
    "/resolve",
    response_model=ResolvedRateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def resolve_rate(
    db: DbSession,
    actor: CurrentActor,
    project_id: UUID,
    employee_type_id: UUID,
    category: str,
    as_of_date: date,
) -> ResolvedRateResponse:
    """Preview the rate that would price work on a date."""
    authorize(actor, Action.READ, ResourceKind.PAY_RATE)
    rate = await RateResolver(db).resolve_rate(project_id, employee_type_id, category, as_of_date)
    return ResolvedRateResponse(
        **PayRateResponse.model_validate(rate).model_dump(),
        as_of_date=as_of_date,
    )
