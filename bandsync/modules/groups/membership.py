"""
Membership state machine for a (user, group) pair.

    NONE --join/invite--> PENDING --approve--> ACTIVE
    PENDING --reject/cancel--> NONE
    ACTIVE --remove/leave--> NONE

The functions here only mutate the in-memory group; the group service applies
them inside a store transaction together with the matching user document
writes. Removing or demoting the only admin of a group is refused.
"""
from enum import Enum
from typing import Iterable, Optional
from bandsync.config.permissions_config import UserRole


class MembershipState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACTIVE = "active"


class MembershipError(Exception):
    def __init__(self, message: str, status_code: int = 409):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def membership_state(group, user_id: str) -> MembershipState:
    if user_id in group.members:
        return MembershipState.ACTIVE
    if user_id in group.pending_members:
        return MembershipState.PENDING
    return MembershipState.NONE


def admin_count(group, users: Iterable) -> int:
    """Count active members whose profile says Admin for this group"""
    return sum(
        1 for user in users
        if user.id in group.members and user.group_id == group.id and user.role == UserRole.ADMIN
    )


def is_last_admin(group, users: Iterable, target_id: str, new_role: Optional[UserRole] = None) -> bool:
    """
    True when removing the target (new_role None) or changing its role to
    new_role would leave the group without an admin.
    """
    users = list(users)
    target = next((u for u in users if u.id == target_id), None)
    if target is None or target.role != UserRole.ADMIN or target.group_id != group.id:
        return False
    if new_role == UserRole.ADMIN:
        return False
    return admin_count(group, users) <= 1


def _require_state(group, user_id: str, expected: MembershipState) -> None:
    state = membership_state(group, user_id)
    if state == expected:
        return
    if expected == MembershipState.PENDING:
        raise MembershipError("No pending request for this user", status_code=404)
    raise MembershipError("User is not a member of this group", status_code=404)


def request_join(group, user) -> None:
    state = membership_state(group, user.id)
    if state == MembershipState.PENDING:
        raise MembershipError("A join request for this group is already pending")
    if state == MembershipState.ACTIVE:
        raise MembershipError("User is already a member of this group")
    if user.group_id and user.group_id != group.id:
        raise MembershipError("User already belongs to another group")
    group.pending_members.append(user.id)


def approve(group, user_id: str) -> None:
    _require_state(group, user_id, MembershipState.PENDING)
    group.pending_members = [uid for uid in group.pending_members if uid != user_id]
    group.members.append(user_id)


def reject(group, user_id: str) -> None:
    _require_state(group, user_id, MembershipState.PENDING)
    group.pending_members = [uid for uid in group.pending_members if uid != user_id]


def remove(group, users: Iterable, user_id: str) -> None:
    _require_state(group, user_id, MembershipState.ACTIVE)
    if is_last_admin(group, users, user_id):
        raise MembershipError("Cannot remove the only admin of the group")
    group.members = [uid for uid in group.members if uid != user_id]


def change_role(group, users: Iterable, user_id: str, new_role: UserRole) -> None:
    _require_state(group, user_id, MembershipState.ACTIVE)
    if is_last_admin(group, users, user_id, new_role):
        raise MembershipError("The group needs at least one admin")
