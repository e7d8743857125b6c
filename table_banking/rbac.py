"""
Role-Based Access Control Module

Group roles, the permission matrix that backs every authorization rule in
the loan engine, the role resolver, and the loan authorization resolver.
All role decisions go through ROLE_PERMISSIONS; nothing else compares role
names.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Protocol

from .errors import AuthorizationError


class GroupRole(Enum):
    """Membership role within a savings group"""
    MEMBER = "member"
    TREASURER = "treasurer"
    ADMIN = "admin"


class Permission(Enum):
    """Group-scoped permissions"""
    # Loan permissions
    REQUEST_OWN_LOAN = "request_own_loan"
    CREATE_LOAN_FOR_MEMBER = "create_loan_for_member"
    AUTO_APPROVE_LOAN = "auto_approve_loan"
    APPROVE_LOAN = "approve_loan"
    REJECT_LOAN = "reject_loan"
    VIEW_GROUP_LOANS = "view_group_loans"

    # Payment permissions
    RECORD_OWN_PAYMENT = "record_own_payment"
    RECORD_PAYMENT = "record_payment"

    # Maintenance permissions
    REPAIR_SCHEDULE = "repair_schedule"
    SWEEP_DEFAULTS = "sweep_defaults"

    # Admin permissions
    MANAGE_MEMBERS = "manage_members"
    MANAGE_GROUP = "manage_group"


_MEMBER_PERMISSIONS = frozenset({
    Permission.REQUEST_OWN_LOAN,
    Permission.RECORD_OWN_PAYMENT,
})

_TREASURER_PERMISSIONS = _MEMBER_PERMISSIONS | frozenset({
    Permission.CREATE_LOAN_FOR_MEMBER,
    Permission.AUTO_APPROVE_LOAN,
    Permission.APPROVE_LOAN,
    Permission.REJECT_LOAN,
    Permission.VIEW_GROUP_LOANS,
    Permission.RECORD_PAYMENT,
    Permission.REPAIR_SCHEDULE,
    Permission.SWEEP_DEFAULTS,
})

ROLE_PERMISSIONS: Dict[GroupRole, FrozenSet[Permission]] = {
    GroupRole.MEMBER: _MEMBER_PERMISSIONS,
    GroupRole.TREASURER: _TREASURER_PERMISSIONS,
    GroupRole.ADMIN: _TREASURER_PERMISSIONS | frozenset({
        Permission.MANAGE_MEMBERS,
        Permission.MANAGE_GROUP,
    }),
}


def has_permission(role: Optional[GroupRole], permission: Permission) -> bool:
    """Check a role against the matrix; non-members hold no permissions"""
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS[role]


def require_permission(role: Optional[GroupRole], permission: Permission, message: str) -> GroupRole:
    """Return the role if it grants ``permission``, otherwise raise AuthorizationError"""
    if not has_permission(role, permission):
        raise AuthorizationError(message, {"permission": permission.value,
                                           "role": role.value if role else None})
    return role


class MembershipLookup(Protocol):
    def get_membership(self, user_id: str, group_id: str): ...


class RoleResolver:
    """
    Resolves a user's role within a group

    "Not a member" (no membership, or an inactive one) is reported as None,
    never raised.
    """

    def __init__(self, memberships: MembershipLookup):
        self.memberships = memberships

    def resolve(self, user_id: str, group_id: str) -> Optional[GroupRole]:
        membership = self.memberships.get_membership(user_id, group_id)
        if membership is None or not membership.is_active:
            return None
        return membership.role


@dataclass(frozen=True)
class LoanAuthorization:
    """Outcome of authorizing a loan request"""
    borrower_id: str
    auto_approve: bool = False


def authorize_loan_request(
    requester_id: str,
    requester_role: Optional[GroupRole],
    target_borrower_id: Optional[str] = None,
    target_role: Optional[GroupRole] = None,
    auto_approve: bool = False
) -> LoanAuthorization:
    """
    Decide who borrows and whether the loan is approved on creation

    Pure decision over already-resolved roles; performs no storage I/O.

    Args:
        requester_id: Acting user
        requester_role: Acting user's role in the group (None if not a member)
        target_borrower_id: Member the loan is for; None means the requester
        target_role: Target's role in the group (None if not an active member)
        auto_approve: Whether the creator asks to skip pending review

    Returns:
        LoanAuthorization with the resolved borrower and auto-approve flag

    Raises:
        AuthorizationError: On any role or membership violation
    """
    require_permission(requester_role, Permission.REQUEST_OWN_LOAN,
                       "Access denied - not an active group member")

    borrower_id = target_borrower_id or requester_id

    if borrower_id == requester_id:
        # Auto-approval of one's own loan would be self-approval; the flag is dropped
        return LoanAuthorization(borrower_id=requester_id, auto_approve=False)

    require_permission(requester_role, Permission.CREATE_LOAN_FOR_MEMBER,
                       "Access denied - only admins and treasurers can create loans for other members")

    if target_role is None:
        raise AuthorizationError(
            "Invalid borrower - user is not an active member of this group",
            {"borrower_id": borrower_id}
        )

    if auto_approve:
        require_permission(requester_role, Permission.AUTO_APPROVE_LOAN,
                           "Access denied - auto-approval requires admin or treasurer role")

    return LoanAuthorization(borrower_id=borrower_id, auto_approve=auto_approve)


def authorize_decision(
    actor_id: str,
    actor_role: Optional[GroupRole],
    borrower_id: str,
    permission: Permission
) -> None:
    """
    Check that an actor may approve or reject a loan

    Raises:
        AuthorizationError: If the actor lacks the permission or is the borrower
    """
    require_permission(actor_role, permission,
                       "Access denied - admin or treasurer role required")
    if actor_id == borrower_id:
        raise AuthorizationError("Self-approval is forbidden", {"actor_id": actor_id})
