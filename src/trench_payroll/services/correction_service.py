"""Correction request workflow.

The only sanctioned route for changing historical records. A request is
created ``pending`` and never touches its target; a reviewer then approves
or rejects it exactly once. Approval applies the new value through the
entity's field applier in the same transaction as the review.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from trench_payroll.config import get_settings
from trench_payroll.errors import (
    AlreadyReviewedError,
    AuthorizationError,
    ConcurrentModificationError,
    EntityNotFoundError,
    ValidationError,
)
from trench_payroll.models import CorrectionRequest
from trench_payroll.models.base import utcnow
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import (
    Action,
    Actor,
    ResourceKind,
    authorize,
    is_allowed,
)
from trench_payroll.services.field_appliers import EntityType, get_applier, to_text

logger = logging.getLogger(__name__)


class CorrectionStatus(str, Enum):
    """Correction request status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REVIEW_DECISIONS = frozenset({CorrectionStatus.APPROVED, CorrectionStatus.REJECTED})


class CorrectionService:
    """Request, review, and apply corrections to historical records."""

    def __init__(self, session: AsyncSession, reason_min_length: int | None = None):
        self.session = session
        self.audit = AuditService(session)
        if reason_min_length is None:
            reason_min_length = get_settings().correction_reason_min_length
        self.reason_min_length = reason_min_length

    async def request_correction(
        self,
        actor: Actor,
        entity_type: EntityType | str,
        entity_id: UUID,
        field_name: str,
        new_value: Any,
        reason: str,
        old_value: Any = None,
    ) -> CorrectionRequest:
        """Create a pending correction request.

        ``old_value`` is the caller's snapshot of the field; when omitted the
        current stored value is captured instead. The target is not modified.

        Raises:
            AuthorizationError: If the actor may not request corrections
            ValidationError: If the reason is too short, the entity type or
                field is not correctable, or the new value does not parse
            EntityNotFoundError: If the target entity does not exist
        """
        authorize(actor, Action.CREATE, ResourceKind.CORRECTION_REQUEST)

        reason = (reason or "").strip()
        if len(reason) < self.reason_min_length:
            raise ValidationError(
                f"Reason must be at least {self.reason_min_length} characters",
                field="reason",
            )

        applier = get_applier(self.session, entity_type)
        value = applier.parse(field_name, new_value)
        current = await applier.current_value(entity_id, field_name)

        request = CorrectionRequest(
            entity_type=applier.entity_type.value,
            entity_id=entity_id,
            field_name=field_name,
            old_value=to_text(old_value) if old_value is not None else current,
            new_value=to_text(value) or "",
            reason=reason,
            status=CorrectionStatus.PENDING.value,
            requested_by=actor.user_id,
            requested_at=utcnow(),
        )
        self.session.add(request)
        await self.session.flush()

        self.audit.record(
            actor,
            "correction_request",
            request.correction_request_id,
            AuditAction.REQUEST,
            after={
                "entity_type": request.entity_type,
                "entity_id": entity_id,
                "field_name": field_name,
                "old_value": request.old_value,
                "new_value": request.new_value,
            },
        )
        logger.info(
            "Correction %s requested on %s %s.%s by %s",
            request.correction_request_id,
            request.entity_type,
            entity_id,
            field_name,
            actor.user_id,
        )
        return request

    async def review_correction(
        self,
        actor: Actor,
        request_id: UUID,
        decision: CorrectionStatus | str,
        notes: str | None = None,
    ) -> CorrectionRequest:
        """Approve or reject a pending request; approval applies the value.

        Raises:
            AuthorizationError: If the actor may not review corrections
            ValidationError: If the decision is unknown or the value no
                longer validates against the target
            AlreadyReviewedError: If the request is not pending
            ConcurrentModificationError: If another reviewer got there first
        """
        authorize(actor, Action.REVIEW, ResourceKind.CORRECTION_REQUEST)

        try:
            outcome = CorrectionStatus(decision)
        except ValueError:
            outcome = None
        if outcome not in REVIEW_DECISIONS:
            raise ValidationError(
                f"Decision must be 'approved' or 'rejected', got {decision!r}",
                field="decision",
            )

        request = await self._get(request_id)
        if not request.is_pending:
            raise AlreadyReviewedError(request_id, request.status)

        approved = outcome == CorrectionStatus.APPROVED
        applier = get_applier(self.session, request.entity_type)
        value = None
        if approved:
            # Re-validate against the target as it is now, before claiming the request
            value = await applier.prepare(request.entity_id, request.field_name, request.new_value)

        now = utcnow()
        request.status = outcome.value
        request.reviewed_by = actor.user_id
        request.reviewed_at = now
        request.review_notes = notes
        if approved:
            request.applied_at = now
        try:
            await self.session.flush()
        except StaleDataError:
            logger.warning("Concurrent review of correction request %s", request_id)
            raise ConcurrentModificationError("correction_request", request_id)

        self.audit.record(
            actor,
            "correction_request",
            request_id,
            AuditAction.REVIEW,
            before={"status": CorrectionStatus.PENDING.value},
            after={"status": outcome.value, "review_notes": notes},
        )

        if approved:
            change = await applier.apply_field(request.entity_id, request.field_name, value)
            self.audit.record(
                actor,
                request.entity_type,
                request.entity_id,
                AuditAction.APPLY,
                before=change["before"],
                after={**change["after"], "correction_request_id": request_id},
            )

        logger.info(
            "Correction %s %s by %s",
            request_id,
            outcome.value,
            actor.user_id,
        )
        return request

    async def get_correction_request(self, actor: Actor, request_id: UUID) -> CorrectionRequest:
        """Fetch one request. Non-reviewers may only see their own."""
        authorize(actor, Action.READ_OWN, ResourceKind.CORRECTION_REQUEST)
        request = await self._get(request_id)
        if not self._can_read_all(actor) and request.requested_by != actor.user_id:
            raise AuthorizationError(
                actor.role.value,
                Action.READ.value,
                ResourceKind.CORRECTION_REQUEST.value,
                "only reviewers may view other users' requests",
            )
        return request

    async def list_correction_requests(
        self,
        actor: Actor,
        status: CorrectionStatus | str | None = None,
        entity_type: EntityType | str | None = None,
        entity_id: UUID | None = None,
        requested_by: UUID | None = None,
    ) -> list[CorrectionRequest]:
        """Filtered requests, newest first.

        Non-reviewer roles are always restricted to their own requests.
        """
        authorize(actor, Action.READ_OWN, ResourceKind.CORRECTION_REQUEST)
        if not self._can_read_all(actor):
            requested_by = actor.user_id

        query = select(CorrectionRequest)
        if status is not None:
            query = query.where(CorrectionRequest.status == _enum_value(CorrectionStatus, status, "status"))
        if entity_type is not None:
            query = query.where(
                CorrectionRequest.entity_type == _enum_value(EntityType, entity_type, "entity_type")
            )
        if entity_id is not None:
            query = query.where(CorrectionRequest.entity_id == entity_id)
        if requested_by is not None:
            query = query.where(CorrectionRequest.requested_by == requested_by)
        query = query.order_by(CorrectionRequest.requested_at.desc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _get(self, request_id: UUID) -> CorrectionRequest:
        request = await self.session.get(CorrectionRequest, request_id)
        if request is None:
            raise EntityNotFoundError("correction_request", request_id)
        return request

    @staticmethod
    def _can_read_all(actor: Actor) -> bool:
        return is_allowed(actor.role, Action.READ, ResourceKind.CORRECTION_REQUEST)


def _enum_value(enum_cls: type[Enum], value: Any, field: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError(f"Unknown {field} {value!r}", field=field)
