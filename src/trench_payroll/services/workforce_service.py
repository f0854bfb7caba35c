"""Workforce reference data: employee types, projects, pay rates, labourers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.calculators.earnings import normalize_quantity
from trench_payroll.calculators.rate_resolver import RateResolver
from trench_payroll.calculators.types import METERED_CATEGORIES, RateCategory, RateUnit
from trench_payroll.errors import (
    EntityNotFoundError,
    HistoricalEditDeniedError,
    ValidationError,
)
from trench_payroll.models import (
    EmployeeType,
    Labourer,
    PaymentPeriodEntry,
    PayRate,
    Project,
)
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import Action, Actor, ResourceKind, authorize
from trench_payroll.services.field_appliers import (
    PROTECTED_LABOURER_FIELDS,
    LabourerFieldApplier,
    ProjectFieldApplier,
    parse_choice,
    parse_optional_text,
    parse_text,
)

logger = logging.getLogger(__name__)

# Opaque object-storage paths; the core never interprets them
DOCUMENT_FIELDS = ("profile_photo_path", "id_document_path", "banking_proof_path")

REQUIRED_LABOURER_FIELDS = (
    "first_name",
    "surname",
    "id_number",
    "date_of_birth",
    "contact_number",
    "bank_name",
    "account_number",
    "account_type",
    "branch_code",
)


class WorkforceService:
    """Reference data the payroll core prices and aggregates against."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)
        self.rate_resolver = RateResolver(session)

    # ===== Employee types =====

    async def create_employee_type(
        self, actor: Actor, name: str, description: str | None = None
    ) -> EmployeeType:
        authorize(actor, Action.CREATE, ResourceKind.EMPLOYEE_TYPE)
        employee_type = EmployeeType(
            name=parse_text(name, "name"),
            description=parse_optional_text(description, "description"),
            is_active=True,
        )
        self.session.add(employee_type)
        await self.session.flush()
        self.audit.record(
            actor, "employee_type", employee_type.employee_type_id, AuditAction.CREATE,
            after={"name": employee_type.name, "description": employee_type.description},
        )
        return employee_type

    async def update_employee_type(
        self,
        actor: Actor,
        employee_type_id: UUID,
        name: str | None = None,
        description: str | None = None,
    ) -> EmployeeType:
        authorize(actor, Action.UPDATE, ResourceKind.EMPLOYEE_TYPE)
        employee_type = await self.get_employee_type(employee_type_id)
        before = {"name": employee_type.name, "description": employee_type.description}
        if name is not None:
            employee_type.name = parse_text(name, "name")
        if description is not None:
            employee_type.description = parse_optional_text(description, "description")
        await self.session.flush()
        self.audit.record_update(
            actor, "employee_type", employee_type_id, before,
            {"name": employee_type.name, "description": employee_type.description},
        )
        return employee_type

    async def deactivate_employee_type(self, actor: Actor, employee_type_id: UUID) -> EmployeeType:
        """Retire an employee type. Historical rates keep referencing it."""
        authorize(actor, Action.UPDATE, ResourceKind.EMPLOYEE_TYPE)
        employee_type = await self.get_employee_type(employee_type_id)
        if employee_type.is_active:
            employee_type.is_active = False
            await self.session.flush()
            self.audit.record(
                actor, "employee_type", employee_type_id, AuditAction.UPDATE,
                before={"is_active": True}, after={"is_active": False},
            )
            logger.info("Deactivated employee type %s", employee_type_id)
        return employee_type

    async def get_employee_type(self, employee_type_id: UUID) -> EmployeeType:
        employee_type = await self.session.get(EmployeeType, employee_type_id)
        if employee_type is None:
            raise EntityNotFoundError("employee_type", employee_type_id)
        return employee_type

    async def list_employee_types(
        self, actor: Actor, include_inactive: bool = False
    ) -> list[EmployeeType]:
        authorize(actor, Action.READ, ResourceKind.EMPLOYEE_TYPE)
        query = select(EmployeeType).order_by(EmployeeType.name)
        if not include_inactive:
            query = query.where(EmployeeType.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _require_active_type(self, employee_type_id: UUID) -> EmployeeType:
        employee_type = await self.get_employee_type(employee_type_id)
        if not employee_type.is_active:
            raise ValidationError(
                f"Employee type {employee_type_id} is inactive", field="employee_type_id"
            )
        return employee_type

    # ===== Projects =====

    async def create_project(
        self,
        actor: Actor,
        name: str,
        location: str | None = None,
        budget: Any = None,
        payment_frequency: str = "fortnightly",
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Project:
        authorize(actor, Action.CREATE, ResourceKind.PROJECT)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        project = Project(
            name=parse_text(name, "name"),
            location=parse_optional_text(location, "location"),
            budget=normalize_quantity(budget, "budget") if budget is not None else None,
            status="active",
            payment_frequency=parse_choice(
                payment_frequency, "payment_frequency", frozenset({"fortnightly", "monthly"})
            ),
            start_date=start_date,
            end_date=end_date,
            created_by=actor.user_id,
        )
        self.session.add(project)
        await self.session.flush()
        self.audit.record(
            actor, "project", project.project_id, AuditAction.CREATE,
            after=_project_snapshot(project),
        )
        logger.info("Created project %s (%s)", project.project_id, project.name)
        return project

    async def update_project(self, actor: Actor, project_id: UUID, **changes: Any) -> Project:
        """Direct update of an active or on-hold project.

        Raises HistoricalEditDeniedError once the project is completed; closed
        projects only change through correction requests.
        """
        authorize(actor, Action.UPDATE, ResourceKind.PROJECT)
        project = await self.get_project(project_id)
        if project.is_closed:
            raise HistoricalEditDeniedError(
                f"Project {project_id} is completed; submit a correction request",
                role=actor.role.value,
            )

        applier = ProjectFieldApplier(self.session)
        unknown = sorted(changes.keys() - applier.correctable_fields)
        if unknown:
            raise ValidationError(f"Unknown project fields: {', '.join(unknown)}", field=unknown[0])
        parsed = {name: applier.parse(name, raw) for name, raw in changes.items()}
        start = parsed.get("start_date", project.start_date)
        end = parsed.get("end_date", project.end_date)
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        before = _project_snapshot(project)
        for name, value in parsed.items():
            setattr(project, name, value)
        await self.session.flush()
        self.audit.record_update(actor, "project", project_id, before, _project_snapshot(project))
        return project

    async def get_project(self, project_id: UUID) -> Project:
        project = await self.session.get(Project, project_id)
        if project is None:
            raise EntityNotFoundError("project", project_id)
        return project

    async def list_projects(self, actor: Actor, status: str | None = None) -> list[Project]:
        authorize(actor, Action.READ, ResourceKind.PROJECT)
        query = select(Project).order_by(Project.name)
        if status is not None:
            query = query.where(Project.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # ===== Pay rates =====

    async def create_pay_rate(
        self,
        actor: Actor,
        project_id: UUID,
        employee_type_id: UUID,
        category: RateCategory | str,
        amount: Any,
        effective_date: date,
        unit: RateUnit | str = RateUnit.PER_METER,
        category_name: str | None = None,
    ) -> PayRate:
        """Add a rate. Earlier rates stay in force for earlier dates."""
        authorize(actor, Action.CREATE, ResourceKind.PAY_RATE)
        try:
            category = RateCategory(category)
        except ValueError as exc:
            raise ValidationError(str(exc), field="category")
        try:
            unit = RateUnit(unit)
        except ValueError as exc:
            raise ValidationError(str(exc), field="unit")
        if category in METERED_CATEGORIES and unit != RateUnit.PER_METER:
            raise ValidationError(
                f"{category.value} rates multiply meters and must be per_meter, got {unit.value}",
                field="unit",
            )
        rate_amount: Decimal = normalize_quantity(amount, "amount")
        if category == RateCategory.CUSTOM and not (category_name or "").strip():
            raise ValidationError("Custom rates need a category name", field="category_name")

        await self.get_project(project_id)
        await self._require_active_type(employee_type_id)

        rate = PayRate(
            project_id=project_id,
            employee_type_id=employee_type_id,
            category=category.value,
            category_name=parse_optional_text(category_name, "category_name", 255),
            amount=rate_amount,
            unit=unit.value,
            effective_date=effective_date,
            created_by=actor.user_id,
        )
        self.session.add(rate)
        await self.session.flush()
        self.audit.record(
            actor, "pay_rate", rate.pay_rate_id, AuditAction.CREATE,
            after={
                "project_id": project_id,
                "employee_type_id": employee_type_id,
                "category": rate.category,
                "amount": rate.amount,
                "unit": rate.unit,
                "effective_date": effective_date,
            },
        )
        logger.info(
            "Created %s rate %s for project %s effective %s",
            rate.category,
            rate.amount,
            project_id,
            effective_date,
        )
        return rate

    async def list_pay_rates(self, actor: Actor, project_id: UUID) -> list[PayRate]:
        authorize(actor, Action.READ, ResourceKind.PAY_RATE)
        return await self.rate_resolver.list_rates(project_id)

    # ===== Labourers =====

    async def create_labourer(
        self,
        actor: Actor,
        employee_type_id: UUID,
        project_id: UUID | None = None,
        user_id: UUID | None = None,
        **fields: Any,
    ) -> Labourer:
        """Register a labourer with identity and banking details.

        Required fields: first_name, surname, id_number, date_of_birth,
        contact_number, bank_name, account_number, account_type, branch_code.
        """
        authorize(actor, Action.CREATE, ResourceKind.LABOURER)
        missing = [name for name in REQUIRED_LABOURER_FIELDS if fields.get(name) in (None, "")]
        if missing:
            raise ValidationError(f"Missing labourer fields: {', '.join(missing)}", field=missing[0])

        values = self._parse_labourer_fields(fields)
        await self._require_active_type(employee_type_id)
        if project_id is not None:
            await self.get_project(project_id)

        labourer = Labourer(
            employee_type_id=employee_type_id,
            project_id=project_id,
            user_id=user_id,
            created_by=actor.user_id,
            **values,
        )
        self.session.add(labourer)
        await self.session.flush()
        self.audit.record(
            actor, "labourer", labourer.labourer_id, AuditAction.CREATE,
            after={"full_name": labourer.full_name, "project_id": project_id},
        )
        logger.info("Registered labourer %s", labourer.labourer_id)
        return labourer

    async def update_labourer(self, actor: Actor, labourer_id: UUID, **changes: Any) -> Labourer:
        """Direct update of a labourer.

        Identity and banking fields become correction-only once the labourer
        appears in any payment period entry.
        """
        authorize(actor, Action.UPDATE, ResourceKind.LABOURER)
        labourer = await self.get_labourer(labourer_id)

        protected = sorted(PROTECTED_LABOURER_FIELDS & changes.keys())
        if protected and await self.has_payment_history(labourer_id):
            raise HistoricalEditDeniedError(
                f"Labourer {labourer_id} has payment history; "
                f"{', '.join(protected)} can only change through a correction request",
                role=actor.role.value,
            )

        values = self._parse_labourer_fields(changes)
        if "employee_type_id" in values:
            await self._require_active_type(values["employee_type_id"])
        if values.get("project_id") is not None:
            await self.get_project(values["project_id"])

        before = {name: getattr(labourer, name) for name in values}
        for name, value in values.items():
            setattr(labourer, name, value)
        await self.session.flush()
        self.audit.record_update(actor, "labourer", labourer_id, before, values)
        return labourer

    async def assign_labourers(
        self, actor: Actor, project_id: UUID, labourer_ids: Iterable[UUID]
    ) -> list[Labourer]:
        """Bulk-assign labourers to a project."""
        authorize(actor, Action.UPDATE, ResourceKind.LABOURER)
        await self.get_project(project_id)

        assigned = []
        for labourer_id in labourer_ids:
            labourer = await self.get_labourer(labourer_id)
            previous = labourer.project_id
            if previous != project_id:
                labourer.project_id = project_id
                self.audit.record(
                    actor, "labourer", labourer_id, AuditAction.ASSIGN,
                    before={"project_id": previous}, after={"project_id": project_id},
                )
            assigned.append(labourer)
        await self.session.flush()
        logger.info("Assigned %d labourers to project %s", len(assigned), project_id)
        return assigned

    async def get_labourer(self, labourer_id: UUID) -> Labourer:
        labourer = await self.session.get(Labourer, labourer_id)
        if labourer is None:
            raise EntityNotFoundError("labourer", labourer_id)
        return labourer

    async def list_labourers(self, actor: Actor, project_id: UUID | None = None) -> list[Labourer]:
        authorize(actor, Action.READ, ResourceKind.LABOURER)
        query = select(Labourer).order_by(Labourer.surname, Labourer.first_name)
        if project_id is not None:
            query = query.where(Labourer.project_id == project_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def has_payment_history(self, labourer_id: UUID) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(PaymentPeriodEntry)
            .where(PaymentPeriodEntry.labourer_id == labourer_id)
        )
        return result.scalar_one() > 0

    def _parse_labourer_fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        applier = LabourerFieldApplier(self.session)
        values: dict[str, Any] = {}
        for name, value in raw.items():
            if name in DOCUMENT_FIELDS:
                values[name] = parse_optional_text(value, name, 1000)
            elif name not in applier.correctable_fields:
                raise ValidationError(f"Unknown labourer field '{name}'", field=name)
            else:
                values[name] = applier.parse(name, value)
        return values


def _project_snapshot(project: Project) -> dict[str, Any]:
    return {
        "name": project.name,
        "location": project.location,
        "budget": project.budget,
        "status": project.status,
        "payment_frequency": project.payment_frequency,
        "start_date": project.start_date,
        "end_date": project.end_date,
    }
