"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bandsync.config.permissions_config import EDITOR_ROLES, ModuleType, UserRole
from bandsync.database.document_store import DocumentStore
from bandsync.database.supabase_client import get_document_store, get_supabase
from bandsync.modules.auth.provider import AuthProvider, SupabaseAuthProvider
from bandsync.modules.auth.service import AuthService
from bandsync.modules.events.service import EventService
from bandsync.modules.groups.schemas import GroupModel
from bandsync.modules.groups.service import GroupService
from bandsync.modules.notifications.notifier import PushNotifier, StoreQueuePushNotifier
from bandsync.modules.permissions.cache import get_permission_cache
from bandsync.modules.permissions.service import PermissionService
from bandsync.modules.users.schemas import UserModel
from bandsync.modules.users.service import UserService
from supabase import Client
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_provider(supabase: Client = Depends(get_supabase)) -> AuthProvider:
    return SupabaseAuthProvider(supabase)


def get_user_service(store: DocumentStore = Depends(get_document_store)) -> UserService:
    return UserService(store)


def get_auth_service(
    provider: AuthProvider = Depends(get_auth_provider),
    users: UserService = Depends(get_user_service)
) -> AuthService:
    return AuthService(provider, users)


def get_group_service(store: DocumentStore = Depends(get_document_store)) -> GroupService:
    return GroupService(store)


def get_permission_service(store: DocumentStore = Depends(get_document_store)) -> PermissionService:
    return PermissionService(store, get_permission_cache(store))


def get_push_notifier(store: DocumentStore = Depends(get_document_store)) -> PushNotifier:
    return StoreQueuePushNotifier(store)


def get_event_service(
    store: DocumentStore = Depends(get_document_store),
    notifier: PushNotifier = Depends(get_push_notifier)
) -> EventService:
    return EventService(store, notifier)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    provider: AuthProvider = Depends(get_auth_provider)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = provider.get_user(token)
    return user_data


def get_current_user(
    user_data: dict = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service)
) -> UserModel:
    """Profile of the authenticated user, repaired or created when needed"""
    return users.ensure_user_exists(user_data["id"], user_data.get("email"))


def _load_group(group_id: str, groups: GroupService) -> GroupModel:
    return groups.get_group(group_id)


def _is_active_member(group: GroupModel, user: UserModel) -> bool:
    return user.id in group.members and user.group_id == group.id


def check_group_member(
    group_id: str,
    user: UserModel = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
) -> UserModel:
    """Check if user is an active member of a group"""
    group = _load_group(group_id, groups)
    if _is_active_member(group, user):
        return user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You must be a member of this group"
    )


def check_group_manager(
    group_id: str,
    user: UserModel = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
) -> UserModel:
    """Check if user is an admin or manager of a group"""
    group = _load_group(group_id, groups)
    if _is_active_member(group, user) and user.role in EDITOR_ROLES:
        return user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You must be a group admin or manager to perform this action"
    )


def check_group_admin(
    group_id: str,
    user: UserModel = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
) -> UserModel:
    """Check if user is an admin of a group"""
    group = _load_group(group_id, groups)
    if _is_active_member(group, user) and user.role == UserRole.ADMIN:
        return user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You must be a group admin to perform this action"
    )


def require_module_access(module: ModuleType):
    """Factory function to create a module access check dependency"""
    def check_module_access(
        group_id: str,
        user: UserModel = Depends(check_group_member),
        permissions: PermissionService = Depends(get_permission_service)
    ) -> UserModel:
        """Dependency to check the user's role may open the module"""
        if not permissions.has_access(group_id, module, user.role):
            logger.info(f"User {user.id} ({user.role.value}) denied access to {module.value} in group {group_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Your role does not have access to the {module.value} module"
            )
        return user
    return check_module_access
