"""
Groups Module

Savings groups and their memberships. Memberships are deactivated, never
deleted, so historical loans keep valid borrower and approver references.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
import uuid

from .audit import AuditTrail, AuditEventType
from .currency import decimal_from_value
from .errors import AuthorizationError, ReferentialError, ValidationError
from .logging_config import get_logger, log_action
from .rbac import GroupRole, Permission, RoleResolver, require_permission
from .storage import StorageInterface, StorageRecord


logger = get_logger("table_banking.groups")


@dataclass
class Group(StorageRecord):
    """Savings and lending circle"""
    name: str
    interest_rate: Decimal  # Percent, e.g. Decimal('5') for 5%
    created_by: str
    description: str = ""
    contribution_amount: Decimal = Decimal('0')
    max_members: Optional[int] = None

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['interest_rate'] = str(self.interest_rate)
        result['contribution_amount'] = str(self.contribution_amount)
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'Group':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            interest_rate=Decimal(data['interest_rate']),
            created_by=data['created_by'],
            description=data.get('description', ""),
            contribution_amount=Decimal(data.get('contribution_amount', '0')),
            max_members=data.get('max_members')
        )


@dataclass
class Membership(StorageRecord):
    """Association of a user to a group"""
    user_id: str
    group_id: str
    role: GroupRole = GroupRole.MEMBER
    is_active: bool = True

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['role'] = self.role.value
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'Membership':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            user_id=data['user_id'],
            group_id=data['group_id'],
            role=GroupRole(data['role']),
            is_active=data['is_active']
        )


def _membership_id(user_id: str, group_id: str) -> str:
    return f"{group_id}:{user_id}"


def _parse_rate(value: Union[str, int, Decimal]) -> Decimal:
    try:
        rate = decimal_from_value(value)
    except ValueError:
        raise ValidationError("interest_rate", f"Invalid interest rate: {value!r}")
    if not rate.is_finite() or rate < 0:
        raise ValidationError("interest_rate", "Interest rate must be a non-negative number")
    return rate


class GroupManager:
    """
    Manages groups and memberships
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.roles = RoleResolver(self)

        self.groups_table = "groups"
        self.memberships_table = "group_members"

    def create_group(
        self,
        creator_id: str,
        name: str,
        interest_rate: Union[str, int, Decimal] = Decimal('0'),
        description: str = "",
        contribution_amount: Union[str, int, Decimal] = Decimal('0'),
        max_members: Optional[int] = None
    ) -> Group:
        """
        Create a group; the creator joins as its first admin

        Args:
            creator_id: Acting user
            name: Group name
            interest_rate: Flat interest percentage applied to new loans
            description: Free text
            contribution_amount: Expected periodic contribution
            max_members: Optional membership cap

        Returns:
            Created Group
        """
        if not name or not name.strip():
            raise ValidationError("name", "Group name is required")
        rate = _parse_rate(interest_rate)
        if max_members is not None and max_members < 1:
            raise ValidationError("max_members", "max_members must be at least 1")

        now = datetime.now(timezone.utc)
        group = Group(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            interest_rate=rate,
            created_by=creator_id,
            description=description,
            contribution_amount=decimal_from_value(contribution_amount),
            max_members=max_members
        )

        with self.storage.atomic():
            self.storage.save(self.groups_table, group.id, group.to_dict())
            self._save_membership(self._new_membership(creator_id, group.id, GroupRole.ADMIN))

        self.audit_trail.log_event(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group.id,
            metadata={"name": group.name, "interest_rate": group.interest_rate},
            user_id=creator_id
        )
        log_action(logger, "info", "Group created", user_id=creator_id,
                   action="create_group", resource=group.id)
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        """Get group by ID"""
        data = self.storage.load(self.groups_table, group_id)
        if data:
            return Group.from_dict(data)
        return None

    def require_group(self, group_id: str) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise ReferentialError("group", group_id)
        return group

    def update_interest_rate(self, actor_id: str, group_id: str,
                             interest_rate: Union[str, int, Decimal]) -> Group:
        """
        Change the group's rate for future loans

        Existing loans keep the rate they were created with.
        """
        group = self.require_group(group_id)
        require_permission(self.roles.resolve(actor_id, group_id), Permission.MANAGE_GROUP,
                           "Access denied - admin role required")

        old_rate = group.interest_rate
        group.interest_rate = _parse_rate(interest_rate)
        group.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.groups_table, group.id, group.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.GROUP_RATE_CHANGED,
            entity_type="group",
            entity_id=group.id,
            metadata={"old_rate": old_rate, "new_rate": group.interest_rate},
            user_id=actor_id
        )
        return group

    # Membership management

    def get_membership(self, user_id: str, group_id: str) -> Optional[Membership]:
        """Get a membership (active or not) for a user in a group"""
        data = self.storage.load(self.memberships_table, _membership_id(user_id, group_id))
        if data:
            return Membership.from_dict(data)
        return None

    def list_members(self, group_id: str, include_inactive: bool = False) -> List[Membership]:
        members = [
            Membership.from_dict(data)
            for data in self.storage.find(self.memberships_table, {"group_id": group_id})
        ]
        if not include_inactive:
            members = [m for m in members if m.is_active]
        members.sort(key=lambda m: m.created_at)
        return members

    def add_member(self, actor_id: str, group_id: str, user_id: str,
                   role: GroupRole = GroupRole.MEMBER) -> Membership:
        """
        Add a user to a group, or reactivate a previous membership

        Only admins add members. A user joining on their own behalf is
        handled by join_group.
        """
        group = self.require_group(group_id)
        require_permission(self.roles.resolve(actor_id, group_id), Permission.MANAGE_MEMBERS,
                           "Access denied - admin role required")
        return self._enroll(actor_id, group, user_id, role)

    def join_group(self, user_id: str, group_id: str) -> Membership:
        """Self-service join as a plain member"""
        group = self.require_group(group_id)
        return self._enroll(user_id, group, user_id, GroupRole.MEMBER)

    def _enroll(self, actor_id: str, group: Group, user_id: str, role: GroupRole) -> Membership:
        existing = self.get_membership(user_id, group.id)
        if existing and existing.is_active:
            raise ValidationError("user_id", f"User {user_id} is already a member of this group")

        if group.max_members is not None and len(self.list_members(group.id)) >= group.max_members:
            raise ValidationError("group_id", "Group has reached its member limit")

        if existing:
            existing.is_active = True
            existing.role = role
            existing.updated_at = datetime.now(timezone.utc)
            membership = existing
        else:
            membership = self._new_membership(user_id, group.id, role)
        self._save_membership(membership)

        self.audit_trail.log_event(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="membership",
            entity_id=membership.id,
            metadata={"group_id": group.id, "user_id": user_id, "role": role},
            user_id=actor_id
        )
        log_action(logger, "info", "Member added", user_id=actor_id,
                   action="add_member", resource=membership.id)
        return membership

    def change_role(self, actor_id: str, group_id: str, user_id: str, role: GroupRole) -> Membership:
        """Change a member's role (admin only; the last admin cannot be demoted)"""
        self.require_group(group_id)
        require_permission(self.roles.resolve(actor_id, group_id), Permission.MANAGE_MEMBERS,
                           "Access denied - admin role required")

        membership = self._require_active_membership(user_id, group_id)
        if membership.role == GroupRole.ADMIN and role != GroupRole.ADMIN:
            self._ensure_not_last_admin(group_id)

        old_role = membership.role
        membership.role = role
        membership.updated_at = datetime.now(timezone.utc)
        self._save_membership(membership)

        self.audit_trail.log_event(
            event_type=AuditEventType.MEMBER_ROLE_CHANGED,
            entity_type="membership",
            entity_id=membership.id,
            metadata={"old_role": old_role, "new_role": role},
            user_id=actor_id
        )
        return membership

    def deactivate_member(self, actor_id: str, group_id: str, user_id: str) -> Membership:
        """Deactivate a membership; admins may remove anyone, members only themselves"""
        self.require_group(group_id)
        if actor_id != user_id:
            require_permission(self.roles.resolve(actor_id, group_id), Permission.MANAGE_MEMBERS,
                               "Access denied - admin role required")

        membership = self._require_active_membership(user_id, group_id)
        if membership.role == GroupRole.ADMIN:
            self._ensure_not_last_admin(group_id)

        membership.is_active = False
        membership.updated_at = datetime.now(timezone.utc)
        self._save_membership(membership)

        self.audit_trail.log_event(
            event_type=AuditEventType.MEMBER_DEACTIVATED,
            entity_type="membership",
            entity_id=membership.id,
            metadata={"group_id": group_id, "user_id": user_id},
            user_id=actor_id
        )
        return membership

    def _require_active_membership(self, user_id: str, group_id: str) -> Membership:
        membership = self.get_membership(user_id, group_id)
        if membership is None or not membership.is_active:
            raise ReferentialError("membership", _membership_id(user_id, group_id))
        return membership

    def _ensure_not_last_admin(self, group_id: str) -> None:
        admins = [m for m in self.list_members(group_id) if m.role == GroupRole.ADMIN]
        if len(admins) <= 1:
            raise AuthorizationError("A group must keep at least one active admin")

    def _new_membership(self, user_id: str, group_id: str, role: GroupRole) -> Membership:
        now = datetime.now(timezone.utc)
        return Membership(
            id=_membership_id(user_id, group_id),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            group_id=group_id,
            role=role,
            is_active=True
        )

    def _save_membership(self, membership: Membership) -> None:
        self.storage.save(self.memberships_table, membership.id, membership.to_dict())
