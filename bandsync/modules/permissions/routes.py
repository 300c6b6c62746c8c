from fastapi import APIRouter, Depends
from bandsync.config.permissions_config import ModuleType
from bandsync.modules.permissions import resolver
from bandsync.modules.permissions.schemas import (
    PermissionModel, ModulePermissionUpdate, ModuleEnabledUpdate, AccessibleModulesResponse
)
from bandsync.modules.permissions.service import PermissionService
from bandsync.modules.users.schemas import UserModel
from bandsync.core.dependencies import check_group_admin, check_group_member, get_permission_service

router = APIRouter(prefix="/groups/{group_id}/permissions", tags=["permissions"])


@router.get("", response_model=PermissionModel)
async def get_permissions(
    group_id: str,
    current_user: UserModel = Depends(check_group_member),
    service: PermissionService = Depends(get_permission_service)
):
    """Get the group's module permissions (created with defaults when missing)"""
    return service.get_permissions(group_id)


@router.get("/me", response_model=AccessibleModulesResponse)
async def get_my_modules(
    group_id: str,
    current_user: UserModel = Depends(check_group_member),
    service: PermissionService = Depends(get_permission_service)
):
    """Modules the current user's role may open"""
    return AccessibleModulesResponse(
        role=current_user.role,
        modules=service.accessible_modules(group_id, current_user.role),
        can_edit=resolver.has_edit_permission(current_user.role),
    )


@router.put("/{module}", response_model=PermissionModel)
async def update_module_permission(
    group_id: str,
    module: ModuleType,
    update: ModulePermissionUpdate,
    current_user: UserModel = Depends(check_group_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Set the roles allowed to open a module (group admin only)"""
    return service.update_module_permission(group_id, module, update.roles)


@router.put("/{module}/enabled", response_model=PermissionModel)
async def set_module_enabled(
    group_id: str,
    module: ModuleType,
    update: ModuleEnabledUpdate,
    current_user: UserModel = Depends(check_group_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Enable or disable a module for the whole group (group admin only)"""
    return service.set_module_enabled(group_id, module, update.enabled)


@router.post("/reset", response_model=PermissionModel)
async def reset_permissions(
    group_id: str,
    current_user: UserModel = Depends(check_group_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Restore the default access matrix (group admin only)"""
    return service.reset_to_defaults(group_id)
