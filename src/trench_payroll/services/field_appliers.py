"""Field appliers: per-entity targets of approved correction requests.

A correction request addresses its target generically by
(entity_type, entity_id, field_name). Each entity type has one applier that
declares which fields are correctable, parses the stored text value into a
typed one, and writes it. The correction workflow dispatches through
``get_applier`` and never assigns attributes on arbitrary models itself.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.calculators.earnings import normalize_quantity, parse_additional_items
from trench_payroll.errors import EntityNotFoundError, ValidationError
from trench_payroll.models import (
    BANKING_FIELDS,
    IDENTITY_FIELDS,
    EmployeeType,
    Labourer,
    PaymentPeriod,
    Project,
    WorkLog,
)
from trench_payroll.models.base import Base
from trench_payroll.services.state_machine import PaymentPeriodStatus
from trench_payroll.services.work_log_service import WorkLogService

SA_ID_PATTERN = re.compile(r"^\d{13}$")
PASSPORT_PATTERN = re.compile(r"^[A-Za-z0-9]{6,9}$")
SA_PHONE_PATTERN = re.compile(r"^(\+27|0)\d{9}$")


class EntityType(str, Enum):
    """Entities a correction request may target."""

    WORK_LOG = "work_log"
    LABOURER = "labourer"
    PROJECT = "project"
    PAYMENT_PERIOD = "payment_period"


# ===== Value parsers =====


def parse_text(raw: Any, field: str, max_length: int = 255) -> str:
    value = str(raw if raw is not None else "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty", field=field)
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds {max_length} characters", field=field)
    return value


def parse_optional_text(raw: Any, field: str, max_length: int = 500) -> str | None:
    if raw is None or str(raw).strip() == "":
        return None
    return parse_text(raw, field, max_length)


def parse_date(raw: Any, field: str) -> date:
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got {raw!r}", field=field)


def parse_uuid(raw: Any, field: str) -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{field} must be a UUID, got {raw!r}", field=field)


def parse_choice(raw: Any, field: str, choices: frozenset[str]) -> str:
    value = str(raw).strip()
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of {sorted(choices)}, got {value!r}", field=field
        )
    return value


def validate_id_number(raw: Any) -> str:
    """A 13-digit South African ID or a 6-9 character passport number."""
    value = parse_text(raw, "id_number", 50)
    if not (SA_ID_PATTERN.match(value) or PASSPORT_PATTERN.match(value)):
        raise ValidationError(
            "id_number must be a 13-digit SA ID or a 6-9 character passport number",
            field="id_number",
        )
    return value


def validate_contact_number(raw: Any) -> str:
    """A South African number: +27 or 0 followed by 9 digits."""
    value = re.sub(r"[\s-]", "", str(raw or ""))
    if not SA_PHONE_PATTERN.match(value):
        raise ValidationError(
            "contact_number must be +27 or 0 followed by 9 digits", field="contact_number"
        )
    return value


def validate_branch_code(raw: Any) -> str:
    value = parse_text(raw, "branch_code", 20)
    if not value.isdigit():
        raise ValidationError("branch_code must be numeric", field="branch_code")
    return value


def validate_account_number(raw: Any) -> str:
    value = parse_text(raw, "account_number", 50)
    if not value.isdigit():
        raise ValidationError("account_number must be numeric", field="account_number")
    return value


def parse_money(raw: Any, field: str) -> Decimal:
    return normalize_quantity(raw, field)


def parse_items(raw: Any) -> list[dict[str, str]] | None:
    """Additional items arrive as a JSON array of {description, amount}."""
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("additional_items must be a JSON array", field="additional_items")
    if raw is not None and not isinstance(raw, list):
        raise ValidationError("additional_items must be a JSON array", field="additional_items")
    items = parse_additional_items(raw)
    return [item.to_dict() for item in items] or None


def to_text(value: Any) -> str | None:
    """Text form of a field value, as stored on a correction request."""
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value, sort_keys=True)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


# ===== Appliers =====


class FieldApplier:
    """Base applier: parse, check, and write one field of one entity type."""

    entity_type: ClassVar[EntityType]
    model: ClassVar[type[Base]]
    parsers: ClassVar[dict[str, Callable[[Any], Any]]] = {}

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def correctable_fields(self) -> frozenset[str]:
        return frozenset(self.parsers)

    def parse(self, field_name: str, raw: Any) -> Any:
        """Parse a raw value for a field, raising ValidationError if invalid."""
        parser = self.parsers.get(field_name)
        if parser is None:
            raise ValidationError(
                f"Field '{field_name}' of {self.entity_type.value} cannot be corrected; "
                f"correctable fields: {sorted(self.parsers)}",
                field="field_name",
            )
        return parser(raw)

    async def load(self, entity_id: UUID) -> Any:
        entity = await self.session.get(self.model, entity_id)
        if entity is None:
            raise EntityNotFoundError(self.entity_type.value, entity_id)
        return entity

    async def current_value(self, entity_id: UUID, field_name: str) -> str | None:
        entity = await self.load(entity_id)
        return to_text(getattr(entity, field_name))

    async def prepare(self, entity_id: UUID, field_name: str, raw: Any) -> Any:
        """Parse and check a value against the current entity without writing."""
        value = self.parse(field_name, raw)
        entity = await self.load(entity_id)
        await self.check(entity, field_name, value)
        return value

    async def check(self, entity: Any, field_name: str, value: Any) -> None:
        """Cross-field and referential checks. No-op by default."""

    async def apply_field(self, entity_id: UUID, field_name: str, value: Any) -> dict[str, Any]:
        """Write a prepared value; returns the before/after of changed fields."""
        entity = await self.load(entity_id)
        before = {field_name: getattr(entity, field_name)}
        setattr(entity, field_name, value)
        await self.session.flush()
        return {"before": before, "after": {field_name: value}}


class WorkLogFieldApplier(FieldApplier):
    """Meter and item corrections; earnings are recomputed on apply."""

    entity_type = EntityType.WORK_LOG
    model = WorkLog
    parsers = {
        "open_meters": lambda raw: normalize_quantity(raw, "open_meters"),
        "close_meters": lambda raw: normalize_quantity(raw, "close_meters"),
        "additional_items": parse_items,
    }

    async def check(self, entity: WorkLog, field_name: str, value: Any) -> None:
        await WorkLogService(self.session).ensure_date_unlocked(
            entity.project_id, entity.work_date
        )

    async def apply_field(self, entity_id: UUID, field_name: str, value: Any) -> dict[str, Any]:
        work_log = await self.load(entity_id)
        before = {field_name: getattr(work_log, field_name), "total_earnings": work_log.total_earnings}
        setattr(work_log, field_name, value)
        work_log.total_earnings = await WorkLogService(self.session).recompute_earnings(work_log)
        await self.session.flush()
        after = {field_name: value, "total_earnings": work_log.total_earnings}
        return {"before": before, "after": after}


class LabourerFieldApplier(FieldApplier):
    """Identity, banking, contact and assignment corrections."""

    entity_type = EntityType.LABOURER
    model = Labourer
    parsers = {
        "first_name": lambda raw: parse_text(raw, "first_name", 100),
        "surname": lambda raw: parse_text(raw, "surname", 100),
        "id_number": validate_id_number,
        "date_of_birth": lambda raw: parse_date(raw, "date_of_birth"),
        "gender": lambda raw: parse_optional_text(raw, "gender", 20),
        "contact_number": validate_contact_number,
        "email": lambda raw: parse_optional_text(raw, "email", 255),
        "physical_address": lambda raw: parse_optional_text(raw, "physical_address"),
        "bank_name": lambda raw: parse_text(raw, "bank_name", 100),
        "account_number": validate_account_number,
        "account_type": lambda raw: parse_choice(
            raw, "account_type", frozenset({"cheque", "savings"})
        ),
        "branch_code": validate_branch_code,
        "employee_type_id": lambda raw: parse_uuid(raw, "employee_type_id"),
        "project_id": lambda raw: parse_uuid(raw, "project_id"),
    }

    async def check(self, entity: Labourer, field_name: str, value: Any) -> None:
        if field_name == "employee_type_id":
            employee_type = await self.session.get(EmployeeType, value)
            if employee_type is None or not employee_type.is_active:
                raise ValidationError(
                    f"Employee type {value} does not exist or is inactive",
                    field="employee_type_id",
                )
        elif field_name == "project_id":
            if await self.session.get(Project, value) is None:
                raise EntityNotFoundError("project", value)


class ProjectFieldApplier(FieldApplier):
    """Corrections to projects, including completed ones."""

    entity_type = EntityType.PROJECT
    model = Project
    parsers = {
        "name": lambda raw: parse_text(raw, "name"),
        "location": lambda raw: parse_optional_text(raw, "location"),
        "budget": lambda raw: parse_money(raw, "budget"),
        "status": lambda raw: parse_choice(
            raw, "status", frozenset({"active", "completed", "on_hold"})
        ),
        "payment_frequency": lambda raw: parse_choice(
            raw, "payment_frequency", frozenset({"fortnightly", "monthly"})
        ),
        "start_date": lambda raw: parse_date(raw, "start_date"),
        "end_date": lambda raw: parse_date(raw, "end_date"),
    }

    async def check(self, entity: Project, field_name: str, value: Any) -> None:
        start = value if field_name == "start_date" else entity.start_date
        end = value if field_name == "end_date" else entity.end_date
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date", field=field_name)


class PaymentPeriodFieldApplier(FieldApplier):
    """Date-range corrections. Paid periods are final."""

    entity_type = EntityType.PAYMENT_PERIOD
    model = PaymentPeriod
    parsers = {
        "start_date": lambda raw: parse_date(raw, "start_date"),
        "end_date": lambda raw: parse_date(raw, "end_date"),
    }

    async def check(self, entity: PaymentPeriod, field_name: str, value: Any) -> None:
        if entity.status == PaymentPeriodStatus.PAID.value:
            raise ValidationError(
                f"Payment period {entity.payment_period_id} is paid and cannot be corrected",
                field=field_name,
            )
        start = value if field_name == "start_date" else entity.start_date
        end = value if field_name == "end_date" else entity.end_date
        if start > end:
            raise ValidationError("start_date must not be after end_date", field=field_name)

        result = await self.session.execute(
            select(PaymentPeriod.payment_period_id)
            .where(
                PaymentPeriod.project_id == entity.project_id,
                PaymentPeriod.payment_period_id != entity.payment_period_id,
                PaymentPeriod.start_date <= end,
                PaymentPeriod.end_date >= start,
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise ValidationError(
                f"Corrected range {start}..{end} overlaps another payment period",
                field=field_name,
            )


APPLIER_CLASSES: dict[EntityType, type[FieldApplier]] = {
    EntityType.WORK_LOG: WorkLogFieldApplier,
    EntityType.LABOURER: LabourerFieldApplier,
    EntityType.PROJECT: ProjectFieldApplier,
    EntityType.PAYMENT_PERIOD: PaymentPeriodFieldApplier,
}

# Labourer fields that can only change through a correction once paid history exists
PROTECTED_LABOURER_FIELDS = IDENTITY_FIELDS | BANKING_FIELDS


def get_applier(session: AsyncSession, entity_type: EntityType | str) -> FieldApplier:
    """Applier for an entity type; unknown types are a ValidationError."""
    try:
        kind = EntityType(entity_type)
    except ValueError:
        raise ValidationError(
            f"Unknown entity type '{entity_type}'; expected one of "
            f"{[t.value for t in EntityType]}",
            field="entity_type",
        )
    return APPLIER_CLASSES[kind](session)
