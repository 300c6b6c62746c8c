import pytest
from fastapi import HTTPException

from bandsync.config.permissions_config import ModuleType, UserRole
from bandsync.database.document_store import GROUPS, PERMISSIONS
from bandsync.modules.groups.service import GroupService
from bandsync.modules.permissions.cache import PermissionCache
from bandsync.modules.permissions.service import PermissionService
from bandsync.modules.users.service import UserService
from tests.mocks.store import InMemoryDocumentStore
from tests.utils import make_user


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def group_id(store):
    make_user(store, "admin")
    return GroupService(store).create_group("Band", UserService(store).get_user("admin")).id


@pytest.fixture
def service(store):
    return PermissionService(store, PermissionCache(store))


def test_missing_permissions_fall_back_to_defaults(store, service, group_id):
    store.delete(PERMISSIONS, group_id)
    assert service.find_permissions(group_id) is None
    assert service.has_access(group_id, ModuleType.CALENDAR, UserRole.MEMBER)
    assert not service.has_access(group_id, ModuleType.FINANCES, UserRole.MEMBER)

    permissions = service.get_permissions(group_id)
    assert permissions.id == group_id
    assert store.get(PERMISSIONS, group_id) is not None


def test_update_module_permission(store, service, group_id):
    service.update_module_permission(group_id, ModuleType.FINANCES, [UserRole.MUSICIAN, UserRole.MUSICIAN])

    assert service.roles_with_access(group_id, ModuleType.FINANCES) == [UserRole.MUSICIAN]
    assert service.has_access(group_id, ModuleType.FINANCES, UserRole.MUSICIAN)
    assert not service.has_access(group_id, ModuleType.FINANCES, UserRole.MANAGER)
    assert service.has_access(group_id, ModuleType.FINANCES, UserRole.ADMIN)


def test_admin_module_cannot_be_changed(service, group_id):
    with pytest.raises(HTTPException) as exc:
        service.update_module_permission(group_id, ModuleType.ADMIN, [UserRole.MEMBER])
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException):
        service.set_module_enabled(group_id, ModuleType.ADMIN, False)


def test_disable_and_enable_module(store, service, group_id):
    service.set_module_enabled(group_id, ModuleType.CHATS, False)
    assert service.roles_with_access(group_id, ModuleType.CHATS) == []
    assert "chats" not in store.get(GROUPS, group_id).data["settings"]["enabled_modules"]
    assert ModuleType.CHATS not in service.accessible_modules(group_id, UserRole.MEMBER)

    service.set_module_enabled(group_id, ModuleType.CHATS, True)
    assert UserRole.MEMBER in service.roles_with_access(group_id, ModuleType.CHATS)
    assert "chats" in store.get(GROUPS, group_id).data["settings"]["enabled_modules"]


def test_reset_to_defaults(service, group_id):
    service.update_module_permission(group_id, ModuleType.CONTACTS, [UserRole.MEMBER])
    service.reset_to_defaults(group_id)
    assert service.roles_with_access(group_id, ModuleType.CONTACTS) == [UserRole.ADMIN, UserRole.MANAGER]


def test_cache_follows_external_writes(store, service, group_id):
    assert service.has_access(group_id, ModuleType.CALENDAR, UserRole.MEMBER)
    store.set(PERMISSIONS, group_id, {
        "group_id": group_id,
        "modules": [{"module_id": "calendar", "role_access": ["Manager"]}],
    })
    assert not service.has_access(group_id, ModuleType.CALENDAR, UserRole.MEMBER)


def test_cache_subscribes_once_per_group(store, group_id):
    cache = PermissionCache(store)
    cache.get(group_id)
    cache.get(group_id)
    assert store.listener_count == 1
    cache.invalidate(group_id)
    assert store.listener_count == 0


def test_update_for_missing_group(service):
    with pytest.raises(HTTPException) as exc:
        service.update_module_permission("nope", ModuleType.TASKS, [UserRole.ADMIN])
    assert exc.value.status_code == 404


def test_cache_evicts_least_recently_used_group(store, group_id):
    make_user(store, "other")
    other_id = GroupService(store).create_group("Other", UserService(store).get_user("other")).id
    cache = PermissionCache(store, max_groups=1)

    assert cache.get(group_id) is not None
    assert cache.get(other_id) is not None

    assert store.listener_count == 1
    assert len(cache) == 1
    # the evicted group is subscribed again on demand
    assert cache.get(group_id).group_id == group_id
    assert store.listener_count == 1
