"""
Test suite for RBAC module

Tests the group permission matrix, role resolution, and the loan request
and approval authorization rules.
"""

import pytest

from table_banking.errors import AuthorizationError
from table_banking.rbac import (
    GroupRole, Permission, ROLE_PERMISSIONS, RoleResolver, LoanAuthorization,
    authorize_decision, authorize_loan_request, has_permission, require_permission
)


MEMBER, TREASURER, ADMIN = GroupRole.MEMBER, GroupRole.TREASURER, GroupRole.ADMIN

# Expected grants, one row per permission: (member, treasurer, admin)
EXPECTED_MATRIX = {
    Permission.REQUEST_OWN_LOAN: (True, True, True),
    Permission.CREATE_LOAN_FOR_MEMBER: (False, True, True),
    Permission.AUTO_APPROVE_LOAN: (False, True, True),
    Permission.APPROVE_LOAN: (False, True, True),
    Permission.REJECT_LOAN: (False, True, True),
    Permission.VIEW_GROUP_LOANS: (False, True, True),
    Permission.RECORD_OWN_PAYMENT: (True, True, True),
    Permission.RECORD_PAYMENT: (False, True, True),
    Permission.REPAIR_SCHEDULE: (False, True, True),
    Permission.SWEEP_DEFAULTS: (False, True, True),
    Permission.MANAGE_MEMBERS: (False, False, True),
    Permission.MANAGE_GROUP: (False, False, True),
}


class TestPermissionMatrix:
    """The matrix is the single source of role decisions"""

    def test_every_permission_is_specified(self):
        assert set(EXPECTED_MATRIX) == set(Permission)
        assert set(ROLE_PERMISSIONS) == set(GroupRole)

    @pytest.mark.parametrize("permission", list(Permission))
    def test_matrix_matches_expected_grants(self, permission):
        for role, expected in zip((MEMBER, TREASURER, ADMIN), EXPECTED_MATRIX[permission]):
            assert has_permission(role, permission) is expected, (role, permission)

    @pytest.mark.parametrize("permission", list(Permission))
    def test_non_members_hold_nothing(self, permission):
        assert not has_permission(None, permission)

    def test_require_permission_raises_with_details(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_permission(MEMBER, Permission.APPROVE_LOAN, "admin or treasurer required")
        assert exc_info.value.details == {"permission": "approve_loan", "role": "member"}

        assert require_permission(ADMIN, Permission.APPROVE_LOAN, "x") == ADMIN


class _Membership:
    def __init__(self, role, is_active=True):
        self.role = role
        self.is_active = is_active


class _Memberships:
    def __init__(self, rows):
        self.rows = rows

    def get_membership(self, user_id, group_id):
        return self.rows.get((user_id, group_id))


class TestRoleResolver:
    """Non-membership is reported, not raised"""

    def setup_method(self):
        self.resolver = RoleResolver(_Memberships({
            ("alice", "G1"): _Membership(MEMBER),
            ("tess", "G1"): _Membership(TREASURER),
            ("gone", "G1"): _Membership(ADMIN, is_active=False),
        }))

    def test_active_roles(self):
        assert self.resolver.resolve("alice", "G1") == MEMBER
        assert self.resolver.resolve("tess", "G1") == TREASURER

    def test_inactive_membership_is_not_a_member(self):
        assert self.resolver.resolve("gone", "G1") is None

    def test_unknown_user_or_group(self):
        assert self.resolver.resolve("mallory", "G1") is None
        assert self.resolver.resolve("alice", "G2") is None


class TestAuthorizeLoanRequest:
    """Who may borrow, and for whom"""

    def test_member_borrows_for_themself(self):
        result = authorize_loan_request("alice", MEMBER)
        assert result == LoanAuthorization(borrower_id="alice", auto_approve=False)

    def test_member_naming_themself_explicitly(self):
        result = authorize_loan_request("alice", MEMBER, target_borrower_id="alice")
        assert result.borrower_id == "alice"

    def test_member_cannot_name_another_borrower(self):
        with pytest.raises(AuthorizationError, match="only admins and treasurers"):
            authorize_loan_request("alice", MEMBER, target_borrower_id="bob", target_role=MEMBER)

    def test_member_auto_approve_is_dropped(self):
        result = authorize_loan_request("alice", MEMBER, auto_approve=True)
        assert result.auto_approve is False

    @pytest.mark.parametrize("role", [TREASURER, ADMIN])
    def test_officer_creates_for_member(self, role):
        result = authorize_loan_request("tess", role, target_borrower_id="bob", target_role=MEMBER)
        assert result == LoanAuthorization(borrower_id="bob", auto_approve=False)

    @pytest.mark.parametrize("role", [TREASURER, ADMIN])
    def test_officer_auto_approves_for_member(self, role):
        result = authorize_loan_request("tess", role, target_borrower_id="bob",
                                        target_role=MEMBER, auto_approve=True)
        assert result.auto_approve is True

    def test_officer_own_loan_is_never_auto_approved(self):
        result = authorize_loan_request("tess", TREASURER, target_borrower_id="tess",
                                        auto_approve=True)
        assert result == LoanAuthorization(borrower_id="tess", auto_approve=False)

    def test_target_must_be_active_member(self):
        with pytest.raises(AuthorizationError, match="not an active member"):
            authorize_loan_request("tess", ADMIN, target_borrower_id="mallory", target_role=None)

    def test_non_member_requester(self):
        with pytest.raises(AuthorizationError, match="not an active group member"):
            authorize_loan_request("mallory", None)


class TestAuthorizeDecision:
    """Approval and rejection rights"""

    @pytest.mark.parametrize("permission", [Permission.APPROVE_LOAN, Permission.REJECT_LOAN])
    def test_officer_may_decide(self, permission):
        authorize_decision("tess", TREASURER, "alice", permission)
        authorize_decision("ada", ADMIN, "alice", permission)

    @pytest.mark.parametrize("permission", [Permission.APPROVE_LOAN, Permission.REJECT_LOAN])
    def test_member_may_not_decide(self, permission):
        with pytest.raises(AuthorizationError):
            authorize_decision("bob", MEMBER, "alice", permission)

    @pytest.mark.parametrize("role", [TREASURER, ADMIN])
    def test_self_approval_forbidden(self, role):
        with pytest.raises(AuthorizationError, match="Self-approval"):
            authorize_decision("tess", role, "tess", Permission.APPROVE_LOAN)

    def test_non_member_may_not_decide(self):
        with pytest.raises(AuthorizationError):
            authorize_decision("mallory", None, "alice", Permission.APPROVE_LOAN)
