"""Tests for the authorization policy table."""

from uuid import uuid4

import pytest

from trench_payroll.errors import AuthorizationError, ValidationError
from trench_payroll.services.authorization import (
    Action,
    Actor,
    ResourceKind,
    Role,
    allowed_roles,
    authorize,
    is_allowed,
)


class TestPolicyTable:
    """Test role × action × resource decisions."""

    @pytest.mark.parametrize(
        "role",
        [Role.SUPER_ADMIN, Role.ADMIN, Role.PROJECT_MANAGER, Role.SUPERVISOR, Role.PROJECT_ADMIN],
    )
    def test_field_staff_record_work(self, role):
        """Everyone but labourers may record work logs."""
        assert is_allowed(role, Action.CREATE, ResourceKind.WORK_LOG) is True

    def test_labourer_cannot_record_work(self):
        assert is_allowed(Role.LABOURER, Action.CREATE, ResourceKind.WORK_LOG) is False

    def test_historical_edits_for_managers_only(self):
        """Only managers and admins may write past dates."""
        assert allowed_roles(Action.EDIT_HISTORICAL, ResourceKind.WORK_LOG) == {
            Role.SUPER_ADMIN,
            Role.ADMIN,
            Role.PROJECT_MANAGER,
        }

    @pytest.mark.parametrize("action", [Action.APPROVE, Action.REJECT, Action.MARK_PAID])
    def test_approval_rights_are_admin_only(self, action):
        """Approve, reject and mark-paid need admin rights."""
        assert is_allowed(Role.ADMIN, action, ResourceKind.PAYMENT_PERIOD) is True
        assert is_allowed(Role.SUPER_ADMIN, action, ResourceKind.PAYMENT_PERIOD) is True
        assert is_allowed(Role.PROJECT_MANAGER, action, ResourceKind.PAYMENT_PERIOD) is False
        assert is_allowed(Role.SUPERVISOR, action, ResourceKind.PAYMENT_PERIOD) is False

    def test_managers_submit_and_reopen(self):
        assert is_allowed(Role.PROJECT_MANAGER, Action.SUBMIT, ResourceKind.PAYMENT_PERIOD) is True
        assert is_allowed(Role.PROJECT_MANAGER, Action.REOPEN, ResourceKind.PAYMENT_PERIOD) is True
        assert is_allowed(Role.SUPERVISOR, Action.SUBMIT, ResourceKind.PAYMENT_PERIOD) is False

    def test_everyone_may_request_corrections(self):
        for role in Role:
            assert is_allowed(role, Action.CREATE, ResourceKind.CORRECTION_REQUEST) is True

    def test_only_managers_review_corrections(self):
        assert is_allowed(Role.PROJECT_MANAGER, Action.REVIEW, ResourceKind.CORRECTION_REQUEST) is True
        assert is_allowed(Role.SUPERVISOR, Action.REVIEW, ResourceKind.CORRECTION_REQUEST) is False
        assert is_allowed(Role.LABOURER, Action.REVIEW, ResourceKind.CORRECTION_REQUEST) is False

    def test_unknown_values_denied(self):
        """Unknown roles, actions or resources are denied, not errors."""
        assert is_allowed("janitor", Action.READ, ResourceKind.PROJECT) is False
        assert is_allowed(Role.ADMIN, "delete", ResourceKind.PROJECT) is False
        assert is_allowed(Role.ADMIN, Action.READ, "invoice") is False

    def test_unlisted_pair_denied(self):
        """Pairs absent from the table deny everyone."""
        assert is_allowed(Role.SUPER_ADMIN, Action.MARK_PAID, ResourceKind.WORK_LOG) is False


class TestAuthorize:
    """Test the raising gate."""

    def test_raises_with_context(self):
        actor = Actor(user_id=uuid4(), role=Role.SUPERVISOR)

        with pytest.raises(AuthorizationError) as exc_info:
            authorize(actor, Action.APPROVE, ResourceKind.PAYMENT_PERIOD)

        assert exc_info.value.role == "supervisor"
        assert exc_info.value.action == "approve"
        assert exc_info.value.resource == "payment_period"
        assert exc_info.value.code == "FORBIDDEN"

    def test_allows_silently(self):
        actor = Actor(user_id=uuid4(), role=Role.ADMIN)
        assert authorize(actor, Action.APPROVE, ResourceKind.PAYMENT_PERIOD) is None


class TestActorFromClaims:
    """Test building actors from identity claims."""

    def test_parses_role_and_domain(self):
        user_id = uuid4()
        actor = Actor.from_claims(user_id, "project_manager", "Sipho@Fibreco.CO.ZA")

        assert actor.user_id == user_id
        assert actor.role == Role.PROJECT_MANAGER
        assert actor.email_domain == "fibreco.co.za"

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            Actor.from_claims(uuid4(), "owner")

    def test_missing_email(self):
        assert Actor.from_claims(uuid4(), "admin").email_domain is None
