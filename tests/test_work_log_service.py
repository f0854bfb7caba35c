"""Tests for the work-log store."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from trench_payroll.errors import (
    AuthorizationError,
    EntityNotFoundError,
    HistoricalEditDeniedError,
    PeriodLockedError,
    ValidationError,
)
from trench_payroll.models import AuditEvent, PaymentPeriod, PayRate, WorkLog
from trench_payroll.services.work_log_service import WorkLogService
from trench_payroll.services.workforce_service import WorkforceService

TODAY = date(2024, 12, 10)
YESTERDAY = TODAY - timedelta(days=1)


class TestRecordWorkLog:
    """Test recording daily output."""

    async def test_supervisor_records_today(self, session, supervisor, project, labourer, rates):
        """Writing today's date computes and stores earnings."""
        service = WorkLogService(session)

        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="15.5", close_meters="12.0", today=TODAY,
        )

        assert recording.created is True
        assert recording.warnings == []
        assert recording.work_log.total_earnings == Decimal("627.50")
        assert recording.work_log.recorded_by == supervisor.user_id

    async def test_supervisor_cannot_record_yesterday(
        self, session, supervisor, project, labourer, rates
    ):
        """Field roles may only write today's date."""
        service = WorkLogService(session)

        with pytest.raises(HistoricalEditDeniedError) as exc_info:
            await service.record_work_log(
                supervisor, project.project_id, labourer.labourer_id, YESTERDAY,
                open_meters="10", today=TODAY,
            )

        assert exc_info.value.work_date == YESTERDAY
        assert exc_info.value.role == "supervisor"
        assert await service.find_work_log(labourer.labourer_id, YESTERDAY) is None

    async def test_manager_records_past_date(self, session, manager, project, labourer, rates):
        """Elevated roles may backfill past dates."""
        recording = await WorkLogService(session).record_work_log(
            manager, project.project_id, labourer.labourer_id, YESTERDAY,
            open_meters="4", close_meters="2", today=TODAY,
        )

        assert recording.work_log.total_earnings == Decimal("140.00")

    async def test_future_date_rejected(self, session, manager, project, labourer, rates):
        with pytest.raises(ValidationError):
            await WorkLogService(session).record_work_log(
                manager, project.project_id, labourer.labourer_id, TODAY + timedelta(days=1),
                open_meters="4", today=TODAY,
            )

    async def test_labourer_cannot_record(self, session, labourer_actor, project, labourer, rates):
        with pytest.raises(AuthorizationError):
            await WorkLogService(session).record_work_log(
                labourer_actor, project.project_id, labourer.labourer_id, TODAY,
                open_meters="4", today=TODAY,
            )

    async def test_negative_meters_rejected(self, session, supervisor, project, labourer, rates):
        """Negative meters never reach the calculator."""
        with pytest.raises(ValidationError) as exc_info:
            await WorkLogService(session).record_work_log(
                supervisor, project.project_id, labourer.labourer_id, TODAY,
                open_meters="-1", today=TODAY,
            )
        assert exc_info.value.field == "open_meters"

    async def test_second_write_overwrites(self, session, supervisor, project, labourer, rates):
        """Same labourer and day: last write wins, one row remains."""
        service = WorkLogService(session)
        first = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )
        second = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="5", close_meters="5", today=TODAY,
        )

        assert second.created is False
        assert second.work_log.work_log_id == first.work_log.work_log_id
        assert second.work_log.total_earnings == Decimal("225.00")
        rows = (await session.execute(select(WorkLog))).scalars().all()
        assert len(rows) == 1

    async def test_additional_items(self, session, supervisor, project, labourer, rates):
        recording = await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="2", additional_items=[{"description": "Call-out", "amount": "75.50"}],
            today=TODAY,
        )

        assert recording.work_log.total_earnings == Decimal("125.50")
        assert recording.work_log.additional_items == [
            {"description": "Call-out", "amount": "75.50"}
        ]

    async def test_missing_rate_warns(self, session, supervisor, project, labourer, rates):
        """A category without a rate is zero-rated and reported."""
        await session.delete(rates["close_trenching"])
        await session.flush()

        recording = await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )

        assert recording.work_log.total_earnings == Decimal("250.00")
        assert len(recording.warnings) == 1

    async def test_labourer_must_be_on_project(
        self, session, supervisor, project, labourer, rates
    ):
        labourer.project_id = None
        await session.flush()

        with pytest.raises(ValidationError) as exc_info:
            await WorkLogService(session).record_work_log(
                supervisor, project.project_id, labourer.labourer_id, TODAY,
                open_meters="1", today=TODAY,
            )
        assert exc_info.value.field == "labourer_id"

    async def test_unknown_project(self, session, supervisor, labourer):
        with pytest.raises(EntityNotFoundError):
            await WorkLogService(session).record_work_log(
                supervisor, uuid4(), labourer.labourer_id, TODAY, open_meters="1", today=TODAY,
            )

    async def test_closed_project_refuses_writes(
        self, session, supervisor, project, labourer, rates
    ):
        project.status = "completed"
        await session.flush()

        with pytest.raises(HistoricalEditDeniedError):
            await WorkLogService(session).record_work_log(
                supervisor, project.project_id, labourer.labourer_id, TODAY,
                open_meters="1", today=TODAY,
            )

    async def test_locked_period_refuses_writes(
        self, session, manager, project, labourer, rates
    ):
        """A date inside a submitted period is frozen."""
        session.add(
            PaymentPeriod(
                project_id=project.project_id,
                start_date=date(2024, 12, 1),
                end_date=date(2024, 12, 14),
                status="submitted",
                total_amount=Decimal("100.00"),
            )
        )
        await session.flush()

        with pytest.raises(PeriodLockedError) as exc_info:
            await WorkLogService(session).record_work_log(
                manager, project.project_id, labourer.labourer_id, YESTERDAY,
                open_meters="1", today=TODAY,
            )
        assert exc_info.value.current_status == "submitted"

    async def test_open_period_allows_writes(self, session, supervisor, project, labourer, rates):
        session.add(
            PaymentPeriod(
                project_id=project.project_id,
                start_date=date(2024, 12, 1),
                end_date=date(2024, 12, 14),
                status="open",
            )
        )
        await session.flush()

        recording = await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="1", today=TODAY,
        )
        assert recording.created is True

    async def test_manager_cannot_overwrite_others_history(
        self, session, manager, admin, project, labourer, rates
    ):
        """Someone else's past entry needs a correction request."""
        service = WorkLogService(session)
        await service.record_work_log(
            admin, project.project_id, labourer.labourer_id, YESTERDAY,
            open_meters="3", today=TODAY,
        )

        with pytest.raises(HistoricalEditDeniedError):
            await service.record_work_log(
                manager, project.project_id, labourer.labourer_id, YESTERDAY,
                open_meters="9", today=TODAY,
            )

    async def test_manager_overwrites_own_history(self, session, manager, project, labourer, rates):
        service = WorkLogService(session)
        await service.record_work_log(
            manager, project.project_id, labourer.labourer_id, YESTERDAY,
            open_meters="3", today=TODAY,
        )
        recording = await service.record_work_log(
            manager, project.project_id, labourer.labourer_id, YESTERDAY,
            open_meters="4", today=TODAY,
        )
        assert recording.work_log.open_meters == Decimal("4.00")

    async def test_writes_are_audited(self, session, supervisor, project, labourer, rates):
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="1", today=TODAY,
        )
        await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="2", today=TODAY,
        )
        await session.flush()

        events = await service.audit.list_events("work_log", recording.work_log.work_log_id)
        assert [e.action for e in events] == ["CREATE", "UPDATE"]
        assert events[1].before_json["open_meters"] == "1.00"
        assert events[1].after_json["open_meters"] == "2.00"


class TestRoundTrip:
    """Stored earnings reproduce from stored meters and the work date's rates."""

    async def test_recompute_matches_stored(self, session, supervisor, project, labourer, rates):
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="15.5", close_meters="12", today=TODAY,
        )

        assert await service.recompute_earnings(recording.work_log) == recording.work_log.total_earnings

    async def test_later_rate_does_not_change_history(
        self, session, supervisor, admin, project, labourer, employee_type, rates
    ):
        """A rate effective after the work date leaves the entry reproducible."""
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", today=TODAY,
        )
        session.add(
            PayRate(
                project_id=project.project_id,
                employee_type_id=employee_type.employee_type_id,
                category="open_trenching",
                amount=Decimal("40.00"),
                unit="per_meter",
                effective_date=TODAY + timedelta(days=1),
                created_by=admin.user_id,
            )
        )
        await session.flush()

        assert recording.work_log.total_earnings == Decimal("250.00")
        assert await service.recompute_earnings(recording.work_log) == Decimal("250.00")


class TestReferenceDataChanges:
    """Reclassifying or reassigning a labourer never rewrites recorded days."""

    async def test_stores_employee_type(self, session, supervisor, project, labourer, rates):
        recording = await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )
        assert recording.work_log.employee_type_id == labourer.employee_type_id

    async def test_reclassified_labourer_recomputes_at_recorded_type(
        self, session, supervisor, admin, project, labourer, employee_type, rates, foreman
    ):
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )

        await WorkforceService(session).update_labourer(
            admin, labourer.labourer_id, employee_type_id=foreman.employee_type_id
        )

        assert labourer.employee_type_id == foreman.employee_type_id
        assert recording.work_log.employee_type_id == employee_type.employee_type_id
        assert recording.work_log.total_earnings == Decimal("410.00")
        assert await service.recompute_earnings(recording.work_log) == Decimal("410.00")

    async def test_new_days_use_new_type(
        self, session, supervisor, admin, project, labourer, rates, foreman
    ):
        await WorkforceService(session).update_labourer(
            admin, labourer.labourer_id, employee_type_id=foreman.employee_type_id
        )

        recording = await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )

        assert recording.work_log.total_earnings == Decimal("820.00")

    async def test_cross_project_overwrite_refused(
        self, session, supervisor, admin, project, other_project, labourer, rates
    ):
        """A reassigned labourer's existing day stays on the project it was recorded on."""
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )
        await WorkforceService(session).assign_labourers(
            admin, other_project.project_id, [labourer.labourer_id]
        )

        with pytest.raises(HistoricalEditDeniedError):
            await service.record_work_log(
                supervisor, other_project.project_id, labourer.labourer_id, TODAY,
                open_meters="3", today=TODAY,
            )

        assert recording.work_log.project_id == project.project_id
        assert recording.work_log.total_earnings == Decimal("410.00")

    async def test_reassignment_cannot_unfreeze_a_submitted_day(
        self, session, supervisor, admin, project, other_project, labourer, rates
    ):
        service = WorkLogService(session)
        recording = await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY,
            open_meters="10", close_meters="8", today=TODAY,
        )
        session.add(
            PaymentPeriod(
                project_id=project.project_id,
                start_date=date(2024, 12, 1),
                end_date=date(2024, 12, 14),
                status="submitted",
                total_amount=Decimal("410.00"),
            )
        )
        await session.flush()
        await WorkforceService(session).assign_labourers(
            admin, other_project.project_id, [labourer.labourer_id]
        )

        with pytest.raises(PeriodLockedError) as exc_info:
            await service.record_work_log(
                supervisor, other_project.project_id, labourer.labourer_id, TODAY,
                open_meters="3", today=TODAY,
            )

        assert exc_info.value.current_status == "submitted"
        assert recording.work_log.project_id == project.project_id
        assert await service.recompute_earnings(recording.work_log) == Decimal("410.00")


class TestListWorkLogs:
    """Test work-log queries."""

    async def test_list_by_range(self, session, manager, project, labourer, rates):
        service = WorkLogService(session)
        for day in (date(2024, 12, 2), date(2024, 12, 9), date(2024, 12, 16)):
            await service.record_work_log(
                manager, project.project_id, labourer.labourer_id, day, open_meters="1", today=date(2024, 12, 20),
            )

        logs = await service.list_work_logs(
            manager, project.project_id, date(2024, 12, 1), date(2024, 12, 14)
        )

        assert [log.work_date for log in logs] == [date(2024, 12, 9), date(2024, 12, 2)]

    async def test_inverted_range(self, session, manager, project):
        with pytest.raises(ValidationError):
            await WorkLogService(session).list_work_logs(
                manager, project.project_id, date(2024, 12, 14), date(2024, 12, 1)
            )

    async def test_labourer_reads_own_logs(
        self, session, supervisor, labourer_actor, project, labourer, rates
    ):
        labourer.user_id = labourer_actor.user_id
        await session.flush()
        service = WorkLogService(session)
        await service.record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY, open_meters="1", today=TODAY,
        )

        logs = await service.list_my_work_logs(labourer_actor, labourer.labourer_id)

        assert len(logs) == 1

    async def test_labourer_cannot_read_others(
        self, session, labourer_actor, labourer, second_labourer
    ):
        with pytest.raises(AuthorizationError):
            await WorkLogService(session).list_my_work_logs(
                labourer_actor, second_labourer.labourer_id
            )

    async def test_labourer_cannot_list_project(self, session, labourer_actor, project):
        with pytest.raises(AuthorizationError):
            await WorkLogService(session).list_work_logs(labourer_actor, project.project_id)

    async def test_audit_rows_are_written(self, session, supervisor, project, labourer, rates):
        await WorkLogService(session).record_work_log(
            supervisor, project.project_id, labourer.labourer_id, TODAY, open_meters="1", today=TODAY,
        )
        await session.flush()
        rows = (await session.execute(select(AuditEvent))).scalars().all()
        assert rows[0].actor_role == "supervisor"
