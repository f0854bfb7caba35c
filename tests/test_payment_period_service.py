"""Tests for the payment period lifecycle."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from trench_payroll.errors import (
    AuthorizationError,
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from trench_payroll.models import PaymentPeriod
from trench_payroll.services.authorization import Actor, Role
from trench_payroll.services.payment_period_service import (
    PaymentPeriodService,
    default_period_end,
)
from trench_payroll.services.work_log_service import WorkLogService

RECORDED_ON = date(2024, 12, 20)


async def open_period(session, manager, project, start=date(2024, 12, 1), end=date(2024, 12, 14)):
    return await PaymentPeriodService(session).create_payment_period(
        manager, project.project_id, start, end
    )


async def funded_period(session, manager, project, labourer):
    """An open period aggregated over one day of work (410.00)."""
    period = await open_period(session, manager, project)
    await WorkLogService(session).record_work_log(
        manager, project.project_id, labourer.labourer_id, date(2024, 12, 2),
        open_meters="10", close_meters="8", today=RECORDED_ON,
    )
    await PaymentPeriodService(session).aggregate(manager, period.payment_period_id)
    return period


class TestDefaultPeriodEnd:
    """Test end dates implied by payment frequency."""

    def test_fortnightly(self):
        assert default_period_end(date(2024, 12, 1), "fortnightly") == date(2024, 12, 14)

    def test_monthly(self):
        assert default_period_end(date(2024, 2, 1), "monthly") == date(2024, 2, 29)
        assert default_period_end(date(2024, 12, 15), "monthly") == date(2024, 12, 31)

    def test_unknown(self):
        with pytest.raises(ValidationError):
            default_period_end(date(2024, 12, 1), "weekly")


class TestCreatePaymentPeriod:
    """Test opening periods."""

    async def test_created_open(self, session, manager, project):
        period = await open_period(session, manager, project)

        assert period.status == "open"
        assert period.total_amount == Decimal("0.00")
        assert period.version == 1

    async def test_end_date_from_frequency(self, session, manager, project):
        period = await PaymentPeriodService(session).create_payment_period(
            manager, project.project_id, date(2024, 12, 1)
        )
        assert period.end_date == date(2024, 12, 14)

    async def test_inverted_dates(self, session, manager, project):
        with pytest.raises(ValidationError):
            await open_period(session, manager, project, date(2024, 12, 14), date(2024, 12, 1))

    async def test_overlap_rejected(self, session, manager, project):
        """Overlapping periods on one project would pay work twice."""
        await open_period(session, manager, project)

        with pytest.raises(ValidationError):
            await open_period(session, manager, project, date(2024, 12, 14), date(2024, 12, 27))

    async def test_adjacent_allowed(self, session, manager, project):
        await open_period(session, manager, project)
        period = await open_period(session, manager, project, date(2024, 12, 15), date(2024, 12, 28))
        assert period.start_date == date(2024, 12, 15)

    async def test_unknown_project(self, session, manager):
        with pytest.raises(EntityNotFoundError):
            await PaymentPeriodService(session).create_payment_period(
                manager, uuid4(), date(2024, 12, 1)
            )

    async def test_supervisor_cannot_create(self, session, supervisor, project):
        with pytest.raises(AuthorizationError):
            await open_period(session, supervisor, project)

    async def test_list_newest_first(self, session, manager, project):
        await open_period(session, manager, project)
        await open_period(session, manager, project, date(2024, 12, 15), date(2024, 12, 28))

        periods = await PaymentPeriodService(session).list_payment_periods(manager, project.project_id)

        assert [p.start_date for p in periods] == [date(2024, 12, 15), date(2024, 12, 1)]


class TestTransitions:
    """Test submit, approve, reject, reopen and mark-paid."""

    async def test_submit_zero_total_fails(self, session, manager, project):
        """An empty period cannot be submitted and stays open."""
        period = await open_period(session, manager, project)

        with pytest.raises(ValidationError):
            await PaymentPeriodService(session).submit(manager, period.payment_period_id)

        assert period.status == "open"

    async def test_approve_open_period_fails(self, session, admin, manager, project):
        """approve on an open period is an invalid transition."""
        period = await open_period(session, manager, project)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await PaymentPeriodService(session).approve(admin, period.payment_period_id)

        assert exc_info.value.current_status == "open"
        assert exc_info.value.action == "approve"
        assert period.status == "open"

    async def test_full_happy_path(self, session, admin, manager, project, labourer, rates):
        """open → submitted → approved → paid, with stamps."""
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)

        await service.submit(manager, period.payment_period_id)
        assert period.status == "submitted"
        assert period.submitted_by == manager.user_id
        assert period.submitted_at is not None

        await service.approve(admin, period.payment_period_id)
        assert period.status == "approved"
        assert period.approved_by == admin.user_id

        await service.mark_paid(admin, period.payment_period_id)
        assert period.status == "paid"
        assert period.paid_by == admin.user_id

        with pytest.raises(InvalidTransitionError):
            await service.reopen(admin, period.payment_period_id)

    async def test_manager_cannot_approve(self, session, manager, project, labourer, rates):
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)

        with pytest.raises(AuthorizationError):
            await service.approve(manager, period.payment_period_id)

        assert period.status == "submitted"

    async def test_reject_requires_reason(self, session, admin, manager, project, labourer, rates):
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)

        with pytest.raises(ValidationError):
            await service.reject(admin, period.payment_period_id, "")

        assert period.status == "submitted"

    async def test_reject_is_terminal_until_reopen(
        self, session, admin, manager, project, labourer, rates
    ):
        """Rejected periods stay rejected until a manager reopens them."""
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)
        await service.reject(admin, period.payment_period_id, "Close meters on 2 Dec look wrong")

        assert period.status == "rejected"
        assert period.rejected_by == admin.user_id
        assert period.rejection_reason == "Close meters on 2 Dec look wrong"
        with pytest.raises(InvalidTransitionError):
            await service.submit(manager, period.payment_period_id)

        await service.reopen(manager, period.payment_period_id)

        assert period.status == "open"
        assert period.reopen_count == 1
        assert period.submitted_by is None
        assert period.rejected_at is None
        assert period.rejection_reason is None
        # Reopened periods can be re-aggregated
        await service.aggregate(manager, period.payment_period_id)

    async def test_only_submitter_manager_reopens(
        self, session, admin, manager, project, labourer, rates
    ):
        """Another project manager may not reopen someone else's submission."""
        other_manager = Actor(user_id=uuid4(), role=Role.PROJECT_MANAGER)
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)
        await service.reject(admin, period.payment_period_id, "Totals do not match site diary")

        with pytest.raises(AuthorizationError):
            await service.reopen(other_manager, period.payment_period_id)

        await service.reopen(admin, period.payment_period_id)
        assert period.status == "open"

    async def test_transitions_are_audited(self, session, admin, manager, project, labourer, rates):
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)
        await service.approve(admin, period.payment_period_id)
        await session.flush()

        events = await service.audit.list_events("payment_period", period.payment_period_id)

        assert [e.action for e in events] == ["CREATE", "AGGREGATE", "SUBMIT", "APPROVE"]
        assert events[-1].before_json == {"status": "submitted"}

    async def test_concurrent_approval_rejected(
        self, session, admin, manager, project, labourer, rates
    ):
        """A second writer that read a stale version is refused."""
        period = await funded_period(session, manager, project, labourer)
        service = PaymentPeriodService(session)
        await service.submit(manager, period.payment_period_id)

        # Another transaction approves first and bumps the version
        await session.execute(
            update(PaymentPeriod)
            .where(PaymentPeriod.payment_period_id == period.payment_period_id)
            .values(status="approved", version=PaymentPeriod.version + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModificationError):
            await service.approve(admin, period.payment_period_id)

    async def test_period_entries(self, session, manager, project, labourer, rates):
        period = await funded_period(session, manager, project, labourer)

        entries = await PaymentPeriodService(session).get_period_entries(
            manager, period.payment_period_id
        )

        assert [e.total_earnings for e in entries] == [Decimal("410.00")]
