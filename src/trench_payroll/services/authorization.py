"""Authorization gate: one policy table consulted before every mutation.

The table maps (resource kind, action) to the roles allowed to perform it.
Nothing else in the core decides permissions by inspecting roles directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from trench_payroll.errors import AuthorizationError, ValidationError


class Role(str, Enum):
    """User roles supplied by the identity provider."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    SUPERVISOR = "supervisor"
    PROJECT_ADMIN = "project_admin"
    LABOURER = "labourer"


class Action(str, Enum):
    """Verbs the gate knows about."""

    CREATE = "create"
    READ = "read"
    READ_OWN = "read_own"
    UPDATE = "update"
    EDIT_HISTORICAL = "edit_historical"
    AGGREGATE = "aggregate"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REOPEN = "reopen"
    MARK_PAID = "mark_paid"
    REVIEW = "review"


class ResourceKind(str, Enum):
    """Kinds of resources the gate protects."""

    WORK_LOG = "work_log"
    PAYMENT_PERIOD = "payment_period"
    CORRECTION_REQUEST = "correction_request"
    PAY_RATE = "pay_rate"
    EMPLOYEE_TYPE = "employee_type"
    PROJECT = "project"
    LABOURER = "labourer"
    REPORT = "report"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as supplied by the identity provider."""

    user_id: UUID
    role: Role
    email_domain: str | None = None

    @classmethod
    def from_claims(cls, user_id: UUID, role: str, email: str | None = None) -> Actor:
        """Build an actor from raw identity claims."""
        try:
            parsed_role = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown role '{role}'", field="role")
        domain = email.rsplit("@", 1)[-1].lower() if email and "@" in email else None
        return cls(user_id=user_id, role=parsed_role, email_domain=domain)


ALL_ROLES = frozenset(Role)
ADMINS = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
MANAGERS = ADMINS | {Role.PROJECT_MANAGER}
FIELD_STAFF = MANAGERS | {Role.SUPERVISOR, Role.PROJECT_ADMIN}
STAFF = ALL_ROLES - {Role.LABOURER}

POLICY: dict[tuple[ResourceKind, Action], frozenset[Role]] = {
    # Work logs
    (ResourceKind.WORK_LOG, Action.CREATE): FIELD_STAFF,
    (ResourceKind.WORK_LOG, Action.EDIT_HISTORICAL): MANAGERS,
    (ResourceKind.WORK_LOG, Action.READ): STAFF,
    (ResourceKind.WORK_LOG, Action.READ_OWN): ALL_ROLES,
    # Payment periods
    (ResourceKind.PAYMENT_PERIOD, Action.CREATE): MANAGERS,
    (ResourceKind.PAYMENT_PERIOD, Action.READ): MANAGERS | {Role.PROJECT_ADMIN},
    (ResourceKind.PAYMENT_PERIOD, Action.AGGREGATE): MANAGERS,
    (ResourceKind.PAYMENT_PERIOD, Action.SUBMIT): MANAGERS,
    (ResourceKind.PAYMENT_PERIOD, Action.APPROVE): ADMINS,
    (ResourceKind.PAYMENT_PERIOD, Action.REJECT): ADMINS,
    (ResourceKind.PAYMENT_PERIOD, Action.MARK_PAID): ADMINS,
    (ResourceKind.PAYMENT_PERIOD, Action.REOPEN): MANAGERS,
    # Correction requests
    (ResourceKind.CORRECTION_REQUEST, Action.CREATE): ALL_ROLES,
    (ResourceKind.CORRECTION_REQUEST, Action.READ_OWN): ALL_ROLES,
    (ResourceKind.CORRECTION_REQUEST, Action.READ): MANAGERS,
    (ResourceKind.CORRECTION_REQUEST, Action.REVIEW): MANAGERS,
    # Reference data
    (ResourceKind.PAY_RATE, Action.CREATE): MANAGERS,
    (ResourceKind.PAY_RATE, Action.READ): ALL_ROLES,
    (ResourceKind.EMPLOYEE_TYPE, Action.CREATE): ADMINS,
    (ResourceKind.EMPLOYEE_TYPE, Action.UPDATE): ADMINS,
    (ResourceKind.EMPLOYEE_TYPE, Action.READ): ALL_ROLES,
    (ResourceKind.PROJECT, Action.CREATE): ADMINS,
    (ResourceKind.PROJECT, Action.UPDATE): MANAGERS,
    (ResourceKind.PROJECT, Action.READ): ALL_ROLES,
    (ResourceKind.LABOURER, Action.CREATE): FIELD_STAFF,
    (ResourceKind.LABOURER, Action.UPDATE): FIELD_STAFF,
    (ResourceKind.LABOURER, Action.READ): STAFF,
    (ResourceKind.REPORT, Action.READ): MANAGERS | {Role.PROJECT_ADMIN},
}


def is_allowed(role: Role | str, action: Action | str, resource: ResourceKind | str) -> bool:
    """Check the policy table. Unknown roles, actions or resources are denied."""
    try:
        key = (ResourceKind(resource), Action(action))
        parsed_role = Role(role)
    except ValueError:
        return False
    return parsed_role in POLICY.get(key, frozenset())


def authorize(actor: Actor, action: Action, resource: ResourceKind) -> None:
    """Raise AuthorizationError unless the actor's role may perform the action."""
    if not is_allowed(actor.role, action, resource):
        raise AuthorizationError(actor.role.value, action.value, resource.value)


def allowed_roles(action: Action, resource: ResourceKind) -> frozenset[Role]:
    """Roles the policy grants for an action (used by UI capability hints)."""
    return POLICY.get((resource, action), frozenset())
