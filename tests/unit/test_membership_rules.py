from datetime import datetime, timezone

import pytest

from bandsync.config.permissions_config import UserRole
from bandsync.modules.groups import membership
from bandsync.modules.groups.membership import MembershipError, MembershipState
from bandsync.modules.groups.schemas import GroupModel
from bandsync.modules.users.schemas import UserModel


def _group(members=None, pending=None) -> GroupModel:
    return GroupModel(
        id="g1",
        name="Band",
        code="ABC123",
        members=list(members or []),
        pending_members=list(pending or []),
        created_at=datetime.now(timezone.utc),
    )


def _user(user_id: str, role: UserRole = UserRole.MEMBER, group_id="g1") -> UserModel:
    return UserModel(id=user_id, email=f"{user_id}@example.com", name=user_id, group_id=group_id, role=role)


def test_membership_state():
    group = _group(members=["a"], pending=["p"])
    assert membership.membership_state(group, "a") == MembershipState.ACTIVE
    assert membership.membership_state(group, "p") == MembershipState.PENDING
    assert membership.membership_state(group, "x") == MembershipState.NONE


def test_request_join_adds_pending():
    group = _group(members=["a"])
    membership.request_join(group, _user("u", group_id=None))
    assert group.pending_members == ["u"]
    assert "u" not in group.members


@pytest.mark.parametrize("members,pending,message", [
    (["u"], [], "already a member"),
    ([], ["u"], "already pending"),
])
def test_request_join_rejected_when_not_none(members, pending, message):
    group = _group(members=members, pending=pending)
    with pytest.raises(MembershipError) as exc:
        membership.request_join(group, _user("u"))
    assert message in exc.value.message
    assert exc.value.status_code == 409


def test_request_join_rejected_for_user_of_other_group():
    group = _group()
    with pytest.raises(MembershipError):
        membership.request_join(group, _user("u", group_id="other"))
    assert group.pending_members == []


def test_approve_moves_to_members():
    group = _group(members=["a"], pending=["u"])
    membership.approve(group, "u")
    assert "u" in group.members
    assert "u" not in group.pending_members


def test_approve_without_request_is_not_found():
    group = _group(members=["a"])
    with pytest.raises(MembershipError) as exc:
        membership.approve(group, "u")
    assert exc.value.status_code == 404


def test_reject_drops_pending():
    group = _group(pending=["u", "v"])
    membership.reject(group, "u")
    assert group.pending_members == ["v"]
    assert group.members == []


def test_remove_last_admin_is_refused():
    group = _group(members=["a", "m"])
    users = [_user("a", UserRole.ADMIN), _user("m")]
    with pytest.raises(MembershipError) as exc:
        membership.remove(group, users, "a")
    assert "only admin" in exc.value.message
    assert group.members == ["a", "m"]


def test_remove_admin_when_another_admin_exists():
    group = _group(members=["a", "b"])
    users = [_user("a", UserRole.ADMIN), _user("b", UserRole.ADMIN)]
    membership.remove(group, users, "a")
    assert group.members == ["b"]


def test_remove_non_member_is_not_found():
    group = _group(members=["a"], pending=["u"])
    with pytest.raises(MembershipError) as exc:
        membership.remove(group, [_user("a", UserRole.ADMIN)], "u")
    assert exc.value.status_code == 404


@pytest.mark.parametrize("new_role", [UserRole.MANAGER, UserRole.MUSICIAN, UserRole.MEMBER])
def test_demoting_last_admin_is_refused(new_role):
    group = _group(members=["a", "m"])
    users = [_user("a", UserRole.ADMIN), _user("m")]
    with pytest.raises(MembershipError):
        membership.change_role(group, users, "a", new_role)


def test_admin_keeping_admin_role_is_allowed():
    group = _group(members=["a"])
    membership.change_role(group, [_user("a", UserRole.ADMIN)], "a", UserRole.ADMIN)


def test_admin_count_ignores_profiles_of_other_groups():
    group = _group(members=["a", "b"])
    users = [_user("a", UserRole.ADMIN), _user("b", UserRole.ADMIN, group_id="elsewhere")]
    assert membership.admin_count(group, users) == 1
    assert membership.is_last_admin(group, users, "a")


def test_is_last_admin_false_for_non_admin_target():
    group = _group(members=["a", "m"])
    users = [_user("a", UserRole.ADMIN), _user("m", UserRole.MANAGER)]
    assert not membership.is_last_admin(group, users, "m")
