"""Audit trail recording."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trench_payroll.models import AuditEvent
from trench_payroll.services.authorization import Actor


class AuditAction(str, Enum):
    """Audit event verbs."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    ASSIGN = "ASSIGN"
    AGGREGATE = "AGGREGATE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REOPEN = "REOPEN"
    PAY = "PAY"
    REQUEST = "REQUEST"
    REVIEW = "REVIEW"
    APPLY = "APPLY"


class AuditService:
    """Appends audit events inside the caller's transaction.

    Events are added to the same session as the change they describe, so
    they commit or roll back together with it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        actor: Actor | None,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Record an audit event for an entity."""
        event = AuditEvent(
            actor_user_id=actor.user_id if actor else None,
            actor_role=actor.role.value if actor else None,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            before_json=_jsonable(before),
            after_json=_jsonable(after),
        )
        self.session.add(event)
        return event

    def record_update(
        self,
        actor: Actor | None,
        entity_type: str,
        entity_id: UUID,
        old_data: dict[str, Any],
        new_data: dict[str, Any],
    ) -> AuditEvent | None:
        """Record only the fields that actually changed; skip no-op updates."""
        before = {k: old_data.get(k) for k in new_data if old_data.get(k) != new_data[k]}
        if not before:
            return None
        after = {k: new_data[k] for k in before}
        return self.record(actor, entity_type, entity_id, AuditAction.UPDATE, before, after)

    async def list_events(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        """Audit history of one entity, oldest first."""
        result = await self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.created_at)
        )
        return list(result.scalars().all())


def _jsonable(data: dict[str, Any] | None) -> dict[str, Any] | None:
    if data is None:
        return None
    return {key: _to_json_value(value) for key, value in data.items()}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    return value
