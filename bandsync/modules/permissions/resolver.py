"""
Module access resolution.

Admins always have access. Other roles are checked against the group's
stored PermissionModel; when no model is loaded yet, or the model has no entry
for the module, the default policy from permissions_config applies so that a
slow initial load never locks members out of the basic modules.
"""
import logging
from typing import List, Optional
from pydantic import ValidationError
from bandsync.config.permissions_config import (
    EDITOR_ROLES, ModuleType, UserRole, get_default_roles,
)
from bandsync.database.document_store import Document
from bandsync.modules.permissions.schemas import ModulePermission, PermissionModel

logger = logging.getLogger(__name__)


def default_permission_model(group_id: str) -> PermissionModel:
    return PermissionModel(
        group_id=group_id,
        modules=[
            ModulePermission(module_id=module, role_access=get_default_roles(module))
            for module in ModuleType
        ],
    )


def roles_with_access(permissions: Optional[PermissionModel], module: ModuleType) -> List[UserRole]:
    if module == ModuleType.ADMIN:
        return [UserRole.ADMIN]
    entry = permissions.module(module) if permissions else None
    if entry is not None:
        return list(entry.role_access)
    return get_default_roles(module)


def has_access(permissions: Optional[PermissionModel], module: ModuleType, role: UserRole) -> bool:
    if role == UserRole.ADMIN:
        return True
    return role in roles_with_access(permissions, module)


def accessible_modules(permissions: Optional[PermissionModel], role: UserRole) -> List[ModuleType]:
    return [module for module in ModuleType if has_access(permissions, module, role)]


def has_edit_permission(role: Optional[UserRole]) -> bool:
    """Only admins and managers can edit module content"""
    return role in EDITOR_ROLES


def decode_permissions(document: Document, group_id: Optional[str] = None) -> PermissionModel:
    """
    Decode a permissions document. A document that does not validate is
    rebuilt entry by entry: unknown modules and roles are dropped and every
    module left without an entry gets its default roles.
    """
    try:
        return PermissionModel.model_validate({**document.data, "id": document.id})
    except ValidationError as e:
        logger.warning(f"Permissions document {document.id} failed validation, rebuilding: {e.error_count()} error(s)")

    data = document.data
    modules: List[ModulePermission] = []
    raw_modules = data.get("modules")
    for raw in raw_modules if isinstance(raw_modules, list) else []:
        if not isinstance(raw, dict) or not isinstance(raw.get("role_access"), list):
            continue
        try:
            module_id = ModuleType(raw.get("module_id"))
        except ValueError:
            continue
        if any(m.module_id == module_id for m in modules):
            continue
        roles = []
        for value in raw["role_access"]:
            try:
                role = UserRole(value)
            except ValueError:
                continue
            if role not in roles:
                roles.append(role)
        modules.append(ModulePermission(module_id=module_id, role_access=roles))

    present = {m.module_id for m in modules}
    for module in ModuleType:
        if module not in present:
            modules.append(ModulePermission(module_id=module, role_access=get_default_roles(module)))

    stored_group_id = data.get("group_id")
    return PermissionModel(
        id=document.id,
        group_id=stored_group_id if isinstance(stored_group_id, str) else (group_id or ""),
        modules=modules,
    )
