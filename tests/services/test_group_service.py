from unittest.mock import patch

import pytest
from fastapi import HTTPException

from bandsync.config.permissions_config import UserRole
from bandsync.database.document_store import GROUPS, PERMISSIONS, USERS
from bandsync.modules.groups import service as group_service_module
from bandsync.modules.groups.service import GroupService, generate_invite_code
from bandsync.modules.permissions.cache import get_permission_cache
from bandsync.modules.users.service import UserService
from tests.mocks.store import InMemoryDocumentStore
from tests.utils import make_user


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def service(store):
    return GroupService(store)


@pytest.fixture
def band(store, service):
    """Group with admin "admin" and active member "m"."""
    make_user(store, "admin")
    make_user(store, "m")
    group = service.create_group("Band", UserService(store).get_user("admin"))
    service.join_group(group.code, UserService(store).get_user("m"))
    service.approve_member(group.id, "m")
    return service.get_group(group.id)


def _user(store, user_id):
    return UserService(store).get_user(user_id)


def test_generate_invite_code_format():
    code = generate_invite_code()
    assert len(code) == 6
    assert code == code.upper()
    assert all(c in "0123456789ABCDEF" for c in code)


def test_create_group_makes_creator_admin(store, service):
    make_user(store, "admin")
    group = service.create_group("Band", _user(store, "admin"))

    admin = _user(store, "admin")
    assert admin.group_id == group.id
    assert admin.role == UserRole.ADMIN
    assert group.members == ["admin"]
    assert store.get(PERMISSIONS, group.id).data["group_id"] == group.id


def test_create_group_refused_while_member_elsewhere(store, service, band):
    with pytest.raises(HTTPException) as exc:
        service.create_group("Other", _user(store, "m"))
    assert exc.value.status_code == 409


def test_join_by_code_is_case_insensitive(store, service, band):
    make_user(store, "u")
    group = service.join_group(f"  {band.code.lower()} ", _user(store, "u"))
    assert "u" in group.pending_members
    user = _user(store, "u")
    assert user.group_id == band.id
    assert user.role == UserRole.MEMBER


def test_join_unknown_code(store, service, band):
    make_user(store, "u")
    with pytest.raises(HTTPException) as exc:
        service.join_group("ZZZZZZ", _user(store, "u"))
    assert exc.value.status_code == 404


def test_join_twice_is_conflict(store, service, band):
    make_user(store, "u")
    service.join_group(band.code, _user(store, "u"))
    with pytest.raises(HTTPException) as exc:
        service.join_group(band.code, _user(store, "u"))
    assert exc.value.status_code == 409


def test_stale_group_pointer_does_not_block_join(store, service, band):
    make_user(store, "u", group_id="deleted-group")
    group = service.join_group(band.code, _user(store, "u"))
    assert "u" in group.pending_members


def test_approve_then_fetch(store, service, band):
    make_user(store, "u")
    service.join_group(band.code, _user(store, "u"))
    service.approve_member(band.id, "u")

    group = service.get_group(band.id)
    assert "u" in group.members
    assert "u" not in group.pending_members


def test_reject_then_fetch(store, service, band):
    make_user(store, "u")
    service.join_group(band.code, _user(store, "u"))
    service.reject_member(band.id, "u")

    group = service.get_group(band.id)
    assert "u" not in group.pending_members
    assert "u" not in group.members
    assert _user(store, "u").group_id is None


def test_remove_member_resets_profile(store, service, band):
    service.change_role(band.id, "m", UserRole.MANAGER)
    service.remove_member(band.id, "m")

    user = _user(store, "m")
    assert user.group_id is None
    assert user.role == UserRole.MEMBER
    assert "m" not in service.get_group(band.id).members


def test_last_admin_cannot_leave_or_be_demoted(store, service, band):
    with pytest.raises(HTTPException) as exc:
        service.leave_group(band.id, _user(store, "admin"))
    assert exc.value.status_code == 409
    with pytest.raises(HTTPException):
        service.change_role(band.id, "admin", UserRole.MEMBER)
    assert _user(store, "admin").role == UserRole.ADMIN


def test_change_role_bumps_group_version(store, service, band):
    before = store.get(GROUPS, band.id).version
    user = service.change_role(band.id, "m", UserRole.MUSICIAN)
    assert user.role == UserRole.MUSICIAN
    assert store.get(GROUPS, band.id).version > before


def test_concurrent_demotion_is_seen_on_retry(store, service, band):
    """Two admins: while "admin" removes "m2", m2 demotes admin; the retry sees it."""
    make_user(store, "m2")
    service.join_group(band.code, _user(store, "m2"))
    service.approve_member(band.id, "m2")
    service.change_role(band.id, "m2", UserRole.ADMIN)

    def concurrent_demotion(txn):
        # a competing transition writes the group and admin's profile
        store.update(USERS, "admin", {"role": UserRole.MEMBER.value})
        store.update(GROUPS, band.id, {"updated_at": "2030-01-01T00:00:00+00:00"})

    store.before_commit = concurrent_demotion
    with pytest.raises(HTTPException) as exc:
        service.remove_member(band.id, "m2")

    assert exc.value.status_code == 409
    assert store.conflicts == 1
    group = service.get_group(band.id)
    assert "m2" in group.members
    assert _user(store, "m2").role == UserRole.ADMIN


def test_exhausted_retries_surface_as_conflict(store, service, band):
    store.max_transaction_attempts = 2

    def always_conflict(txn):
        store.update(GROUPS, band.id, {"updated_at": "2030-01-01T00:00:00+00:00"})
        store.before_commit = always_conflict

    store.before_commit = always_conflict
    with pytest.raises(HTTPException) as exc:
        service.change_role(band.id, "m", UserRole.MANAGER)
    assert exc.value.status_code == 409
    store.before_commit = None
    assert _user(store, "m").role == UserRole.MEMBER


def test_regenerated_code_differs_and_is_unique(store, service, band):
    group = service.regenerate_code(band.id)
    assert group.code != band.code
    assert service.find_group_by_code(band.code) is None
    assert service.find_group_by_code(group.code).id == band.id


def test_code_generation_retries_on_collision(store, service, band):
    codes = iter([band.code, band.code, "NEW123"])
    with patch.object(group_service_module, "generate_invite_code", side_effect=lambda length: next(codes)):
        assert service.generate_unique_code() == "NEW123"


def test_code_generation_gives_up_after_max_attempts(store, service, band):
    with patch.object(group_service_module, "generate_invite_code", return_value=band.code):
        with pytest.raises(HTTPException) as exc:
            service.generate_unique_code()
    assert exc.value.status_code == 503


def test_delete_group_clears_member_pointers(store, service, band):
    make_user(store, "u")
    service.join_group(band.code, _user(store, "u"))
    service.change_role(band.id, "m", UserRole.ADMIN)

    service.delete_group(band.id, _user(store, "admin"))

    assert store.get(GROUPS, band.id) is None
    assert store.get(PERMISSIONS, band.id) is None
    for user_id in ("admin", "m", "u"):
        assert _user(store, user_id).group_id is None


def test_delete_group_refused_for_sole_admin_with_members(store, service, band):
    with pytest.raises(HTTPException) as exc:
        service.delete_group(band.id, _user(store, "admin"))
    assert exc.value.status_code == 409
    assert store.get(GROUPS, band.id) is not None


def test_delete_group_drops_permission_listener(store, service, band):
    cache = get_permission_cache(store)
    cache.get(band.id)
    assert store.listener_count == 1
    service.remove_member(band.id, "m")

    service.delete_group(band.id, _user(store, "admin"))

    assert store.listener_count == 0
    assert len(cache) == 0


def test_change_role_of_member_without_profile(store, service, band):
    store.delete(USERS, "m")
    with pytest.raises(HTTPException) as exc:
        service.change_role(band.id, "m", UserRole.MANAGER)
    assert exc.value.status_code == 404
    assert store.get(USERS, "m") is None


def test_members_never_in_both_lists(store, service, band):
    for user_id in ("p1", "p2", "p3"):
        make_user(store, user_id)
        service.join_group(band.code, _user(store, user_id))
    service.approve_member(band.id, "p1")
    service.reject_member(band.id, "p2")
    service.cancel_request(band.id, _user(store, "p3"))

    group = service.get_group(band.id)
    assert not set(group.members) & set(group.pending_members)
    assert group.pending_members == []


def test_capabilities_follow_settings(store, service, band):
    group = service.get_group(band.id)
    group.settings.allow_members_to_create_events = False
    member = _user(store, "m")

    capabilities = service.capabilities(group, member)
    assert not capabilities.can_create_events
    assert capabilities.can_create_setlists
    assert not capabilities.is_manager

    admin_capabilities = service.capabilities(group, _user(store, "admin"))
    assert admin_capabilities.can_create_events
    assert admin_capabilities.is_admin
