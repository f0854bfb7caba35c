"""Pay rate resolution by effective date."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.calculators.types import RateCategory, ResolvedRates
from trench_payroll.errors import RateNotFoundError, ValidationError
from trench_payroll.models import PayRate

logger = logging.getLogger(__name__)


class RateResolver:
    """Resolves the pay rate in force for a project, employee type and category.

    Selection:
    - project, employee type and category must match exactly
    - effective_date must be on or before the target date
    - latest effective_date wins; ties go to the most recently created rate
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_rate(
        self,
        project_id: UUID,
        employee_type_id: UUID,
        category: RateCategory | str,
        as_of_date: date,
    ) -> PayRate:
        """Resolve the effective rate.

        Raises:
            RateNotFoundError: If no matching rate is effective on the date
        """
        category = _coerce_category(category)

        result = await self.session.execute(
            select(PayRate)
            .where(
                PayRate.project_id == project_id,
                PayRate.employee_type_id == employee_type_id,
                PayRate.category == category.value,
                PayRate.effective_date <= as_of_date,
            )
            .order_by(PayRate.effective_date.desc(), PayRate.created_at.desc())
            .limit(1)
        )
        rate = result.scalar_one_or_none()
        if rate is None:
            raise RateNotFoundError(project_id, employee_type_id, category.value, as_of_date)
        return rate

    async def resolve_work_log_rates(
        self,
        project_id: UUID,
        employee_type_id: UUID,
        work_date: date,
        open_meters: Decimal,
        close_meters: Decimal,
    ) -> ResolvedRates:
        """Resolve both trenching rates for a work log.

        A missing rate zero-rates its category. When that category actually
        has meters, a warning is attached for the caller to surface.
        """
        resolved = ResolvedRates()
        for category, meters in (
            (RateCategory.OPEN_TRENCHING, open_meters),
            (RateCategory.CLOSE_TRENCHING, close_meters),
        ):
            try:
                rate = await self.resolve_rate(project_id, employee_type_id, category, work_date)
                amount = rate.amount
            except RateNotFoundError as exc:
                amount = Decimal("0")
                if meters > 0:
                    logger.warning("Zero-rating %s meters: %s", category.value, exc)
                    resolved.warnings.append(str(exc))

            if category is RateCategory.OPEN_TRENCHING:
                resolved.open_rate = amount
            else:
                resolved.close_rate = amount

        return resolved

    async def list_rates(self, project_id: UUID) -> list[PayRate]:
        """All rates for a project, newest effective date first."""
        result = await self.session.execute(
            select(PayRate)
            .where(PayRate.project_id == project_id)
            .order_by(PayRate.effective_date.desc(), PayRate.created_at.desc())
        )
        return list(result.scalars().all())


def _coerce_category(category: RateCategory | str) -> RateCategory:
    try:
        return RateCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown rate category '{category}'", field="category")
