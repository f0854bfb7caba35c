"""Tests for pay rate resolver."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from trench_payroll.calculators.rate_resolver import RateResolver
from trench_payroll.errors import RateNotFoundError, ValidationError
from trench_payroll.models import PayRate
from trench_payroll.models.base import utcnow


def make_rate(project, employee_type, category, amount, effective, created_by, **extra):
    return PayRate(
        project_id=project.project_id,
        employee_type_id=employee_type.employee_type_id,
        category=category,
        amount=Decimal(amount),
        unit="per_meter",
        effective_date=effective,
        created_by=created_by,
        **extra,
    )


class TestRateResolver:
    """Test rate resolution by effective date."""

    async def test_resolve_rate_simple(self, session, project, employee_type, rates):
        """The single effective rate is returned."""
        resolver = RateResolver(session)

        rate = await resolver.resolve_rate(
            project.project_id, employee_type.employee_type_id, "open_trenching", date(2024, 12, 2)
        )

        assert rate.amount == Decimal("25.00")

    async def test_resolve_rate_not_found(self, session, project, employee_type):
        """No matching rate raises RateNotFoundError with its coordinates."""
        resolver = RateResolver(session)

        with pytest.raises(RateNotFoundError) as exc_info:
            await resolver.resolve_rate(
                project.project_id, employee_type.employee_type_id, "close_trenching", date(2024, 6, 1)
            )

        assert exc_info.value.category == "close_trenching"
        assert exc_info.value.as_of_date == date(2024, 6, 1)
        assert exc_info.value.code == "RATE_NOT_FOUND"

    async def test_resolve_rate_respects_effective_dates(
        self, session, project, employee_type, rates, admin
    ):
        """A future rate does not apply before its effective date."""
        session.add(
            make_rate(project, employee_type, "open_trenching", "30.00", date(2024, 7, 1), admin.user_id)
        )
        await session.flush()
        resolver = RateResolver(session)

        before = await resolver.resolve_rate(
            project.project_id, employee_type.employee_type_id, "open_trenching", date(2024, 6, 30)
        )
        on = await resolver.resolve_rate(
            project.project_id, employee_type.employee_type_id, "open_trenching", date(2024, 7, 1)
        )

        assert before.amount == Decimal("25.00")
        assert on.amount == Decimal("30.00")

    async def test_rate_before_any_effective_date(self, session, project, employee_type, rates):
        """Dates before the first rate have no rate."""
        resolver = RateResolver(session)

        with pytest.raises(RateNotFoundError):
            await resolver.resolve_rate(
                project.project_id, employee_type.employee_type_id, "open_trenching", date(2023, 12, 31)
            )

    async def test_same_day_tie_goes_to_newest(self, session, project, employee_type, admin):
        """Two rates with one effective date: the most recently created wins."""
        now = utcnow()
        session.add_all(
            [
                make_rate(
                    project, employee_type, "open_trenching", "25.00", date(2024, 1, 1),
                    admin.user_id, created_at=now - timedelta(hours=1),
                ),
                make_rate(
                    project, employee_type, "open_trenching", "27.50", date(2024, 1, 1),
                    admin.user_id, created_at=now,
                ),
            ]
        )
        await session.flush()

        rate = await RateResolver(session).resolve_rate(
            project.project_id, employee_type.employee_type_id, "open_trenching", date(2024, 3, 1)
        )

        assert rate.amount == Decimal("27.50")

    async def test_rates_do_not_leak_across_projects(self, session, project, employee_type, rates):
        """Another project's id never matches."""
        with pytest.raises(RateNotFoundError):
            await RateResolver(session).resolve_rate(
                uuid4(), employee_type.employee_type_id, "open_trenching", date(2024, 3, 1)
            )

    async def test_unknown_category(self, session, project, employee_type):
        """Unknown categories are a validation error."""
        with pytest.raises(ValidationError):
            await RateResolver(session).resolve_rate(
                project.project_id, employee_type.employee_type_id, "digging", date(2024, 3, 1)
            )


class TestResolveWorkLogRates:
    """Test resolution of both trenching rates for one work log."""

    async def test_both_rates(self, session, project, employee_type, rates):
        resolved = await RateResolver(session).resolve_work_log_rates(
            project.project_id, employee_type.employee_type_id, date(2024, 12, 2),
            Decimal("10"), Decimal("8"),
        )

        assert resolved.open_rate == Decimal("25.00")
        assert resolved.close_rate == Decimal("20.00")
        assert resolved.has_warnings is False

    async def test_missing_rate_zero_rated_with_warning(
        self, session, project, employee_type, admin
    ):
        """A category with meters but no rate is zero-rated and warned about."""
        session.add(
            make_rate(project, employee_type, "open_trenching", "25.00", date(2024, 1, 1), admin.user_id)
        )
        await session.flush()

        resolved = await RateResolver(session).resolve_work_log_rates(
            project.project_id, employee_type.employee_type_id, date(2024, 12, 2),
            Decimal("10"), Decimal("8"),
        )

        assert resolved.open_rate == Decimal("25.00")
        assert resolved.close_rate == Decimal("0")
        assert len(resolved.warnings) == 1
        assert "close_trenching" in resolved.warnings[0]

    async def test_missing_rate_without_meters_is_silent(self, session, project, employee_type):
        """No warning when the unpriced category has no output."""
        resolved = await RateResolver(session).resolve_work_log_rates(
            project.project_id, employee_type.employee_type_id, date(2024, 12, 2),
            Decimal("0"), Decimal("0"),
        )

        assert resolved.warnings == []
