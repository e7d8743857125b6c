"""
Group and membership endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .auth import LendingSystem, get_current_user, get_lending_system
from .schemas import (
    AddMemberRequest, ChangeRoleRequest, CreateGroupRequest, SweepDefaultsRequest,
    UpdateInterestRateRequest, group_to_response, loan_to_response, membership_to_response
)
from ..errors import ReferentialError
from ..models import LoanStatus


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_group(
    request: CreateGroupRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Create a group; the caller becomes its admin"""
    group = system.group_manager.create_group(
        creator_id=user_id,
        name=request.name,
        interest_rate=request.interest_rate,
        description=request.description,
        contribution_amount=request.contribution_amount,
        max_members=request.max_members
    )
    return group_to_response(group)


@router.get("/{group_id}")
async def get_group(
    group_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Get group details (members only)"""
    group = system.group_manager.require_group(group_id)
    if system.group_manager.roles.resolve(user_id, group_id) is None:
        raise ReferentialError("group", group_id)
    return group_to_response(group)


@router.put("/{group_id}/interest-rate")
async def update_interest_rate(
    group_id: str,
    request: UpdateInterestRateRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Change the rate applied to future loans"""
    group = system.group_manager.update_interest_rate(user_id, group_id, request.interest_rate)
    return group_to_response(group)


@router.get("/{group_id}/members")
async def list_members(
    group_id: str,
    include_inactive: bool = False,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """List group members"""
    system.group_manager.require_group(group_id)
    if system.group_manager.roles.resolve(user_id, group_id) is None:
        raise ReferentialError("group", group_id)
    members = system.group_manager.list_members(group_id, include_inactive=include_inactive)
    return {"members": [membership_to_response(m) for m in members]}


@router.post("/{group_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    group_id: str,
    request: AddMemberRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Add a member (admin only)"""
    membership = system.group_manager.add_member(user_id, group_id, request.user_id, request.role)
    return membership_to_response(membership)


@router.post("/{group_id}/join", status_code=status.HTTP_201_CREATED)
async def join_group(
    group_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Join a group as a member"""
    membership = system.group_manager.join_group(user_id, group_id)
    return membership_to_response(membership)


@router.put("/{group_id}/members/{member_id}/role")
async def change_role(
    group_id: str,
    member_id: str,
    request: ChangeRoleRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Change a member's role (admin only)"""
    membership = system.group_manager.change_role(user_id, group_id, member_id, request.role)
    return membership_to_response(membership)


@router.delete("/{group_id}/members/{member_id}")
async def deactivate_member(
    group_id: str,
    member_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Deactivate a membership; members may leave, admins may remove anyone"""
    membership = system.group_manager.deactivate_member(user_id, group_id, member_id)
    return membership_to_response(membership)


@router.get("/{group_id}/loans")
async def list_group_loans(
    group_id: str,
    status: Optional[LoanStatus] = None,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """List loans visible to the caller, optionally filtered by status"""
    loans = system.loan_manager.list_group_loans(user_id, group_id, status)
    return {"loans": [loan_to_response(loan) for loan in loans]}


@router.post("/{group_id}/sweep-defaults")
async def sweep_defaults(
    group_id: str,
    request: SweepDefaultsRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Default loans with installments past the grace period"""
    defaulted = system.loan_manager.sweep_group_defaults(user_id, group_id, request.as_of)
    return {"defaulted": [loan_to_response(loan) for loan in defaulted]}
