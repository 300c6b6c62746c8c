import logging
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException
from bandsync.config.permissions_config import ModuleType, UserRole, get_default_roles
from bandsync.database.document_store import DocumentStore, Transaction, TransactionConflict, GROUPS, PERMISSIONS
from bandsync.modules.permissions import resolver
from bandsync.modules.permissions.cache import PermissionCache
from bandsync.modules.permissions.schemas import ModulePermission, PermissionModel

logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, store: DocumentStore, cache: Optional[PermissionCache] = None):
        self.store = store
        self.cache = cache

    def find_permissions(self, group_id: str) -> Optional[PermissionModel]:
        """Stored permissions for the group, or None when the group has none yet"""
        if self.cache is not None:
            return self.cache.get(group_id)
        documents = self.store.query(PERMISSIONS, filters=[("group_id", "==", group_id)], limit=1)
        if not documents:
            return None
        return resolver.decode_permissions(documents[0], group_id)

    def get_permissions(self, group_id: str) -> PermissionModel:
        """Get the group's permissions, creating the defaults when missing"""
        permissions = self.find_permissions(group_id)
        if permissions is None:
            permissions = self.create_default_permissions(group_id)
        return permissions

    def create_default_permissions(self, group_id: str) -> PermissionModel:
        permissions = resolver.default_permission_model(group_id)
        try:
            self.store.set(PERMISSIONS, group_id, permissions.to_document())
        except Exception as e:
            logger.error(f"Error creating default permissions for group {group_id}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to create permissions: {e}")
        permissions.id = group_id
        if self.cache is not None:
            self.cache.put(group_id, permissions)
        logger.info(f"Created default permissions for group {group_id}")
        return permissions

    def has_access(self, group_id: str, module: ModuleType, role: UserRole) -> bool:
        if role == UserRole.ADMIN:
            return True
        return resolver.has_access(self.find_permissions(group_id), module, role)

    def accessible_modules(self, group_id: str, role: UserRole) -> List[ModuleType]:
        if role == UserRole.ADMIN:
            return list(ModuleType)
        return resolver.accessible_modules(self.find_permissions(group_id), role)

    def roles_with_access(self, group_id: str, module: ModuleType) -> List[UserRole]:
        return resolver.roles_with_access(self.find_permissions(group_id), module)

    def _write(self, group_id: str, mutate) -> PermissionModel:
        """Read-modify-write the permissions document and the group settings in one transaction"""
        doc_id = group_id

        def txn_fn(txn: Transaction) -> PermissionModel:
            group = txn.get(GROUPS, group_id)
            if group is None:
                raise HTTPException(status_code=404, detail="Group not found")
            document = txn.get(PERMISSIONS, doc_id)
            if document is not None:
                permissions = resolver.decode_permissions(document, group_id)
            else:
                permissions = resolver.default_permission_model(group_id)
            permissions.id = doc_id
            settings = dict(group.get("settings") or {})
            mutate(permissions, settings)
            txn.set(PERMISSIONS, doc_id, permissions.to_document())
            txn.update(GROUPS, group_id, {
                "settings": settings,
                "updated_at": datetime.now(timezone.utc).isoformat()
            })
            return permissions

        try:
            permissions = self.store.run_transaction(txn_fn)
        except TransactionConflict:
            raise HTTPException(status_code=409, detail="Permissions were modified concurrently, please retry")
        if self.cache is not None:
            self.cache.put(group_id, permissions)
        return permissions

    def update_module_permission(self, group_id: str, module: ModuleType, roles: List[UserRole]) -> PermissionModel:
        """Replace the roles allowed to open a module"""
        if module == ModuleType.ADMIN:
            raise HTTPException(status_code=400, detail="Access to the admin module cannot be changed")
        unique_roles = list(dict.fromkeys(roles))

        def mutate(permissions: PermissionModel, settings: dict) -> None:
            entry = permissions.module(module)
            if entry is not None:
                entry.role_access = unique_roles
            else:
                permissions.modules.append(ModulePermission(module_id=module, role_access=unique_roles))
            enabled = [m for m in settings.get("enabled_modules", [m.value for m in ModuleType]) if m != module.value]
            if unique_roles:
                enabled.append(module.value)
            settings["enabled_modules"] = enabled

        permissions = self._write(group_id, mutate)
        logger.info(f"Group {group_id}: {module.value} access set to {[r.value for r in unique_roles]}")
        return permissions

    def set_module_enabled(self, group_id: str, module: ModuleType, enabled: bool) -> PermissionModel:
        """
        Disabling a module empties its role list. Enabling keeps the current
        roles, or restores the defaults when the module had none.
        """
        if module == ModuleType.ADMIN:
            raise HTTPException(status_code=400, detail="The admin module cannot be disabled")
        if not enabled:
            return self.update_module_permission(group_id, module, [])
        roles = self.roles_with_access(group_id, module) or get_default_roles(module)
        return self.update_module_permission(group_id, module, roles)

    def reset_to_defaults(self, group_id: str) -> PermissionModel:
        def mutate(permissions: PermissionModel, settings: dict) -> None:
            permissions.modules = resolver.default_permission_model(group_id).modules
            settings["enabled_modules"] = [m.value for m in ModuleType]

        permissions = self._write(group_id, mutate)
        logger.info(f"Group {group_id}: permissions reset to defaults")
        return permissions
