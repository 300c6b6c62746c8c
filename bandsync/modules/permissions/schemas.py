from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from bandsync.config.permissions_config import ModuleType, UserRole


class ModulePermission(BaseModel):
    module_id: ModuleType
    role_access: List[UserRole] = Field(default_factory=list)

    def has_access(self, role: UserRole) -> bool:
        return role in self.role_access


class PermissionModel(BaseModel):
    id: Optional[str] = None
    group_id: str
    modules: List[ModulePermission] = Field(default_factory=list)

    def module(self, module_id: ModuleType) -> Optional[ModulePermission]:
        return next((m for m in self.modules if m.module_id == module_id), None)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class ModulePermissionUpdate(BaseModel):
    roles: List[UserRole]


class ModuleEnabledUpdate(BaseModel):
    enabled: bool


class AccessibleModulesResponse(BaseModel):
    role: UserRole
    modules: List[ModuleType]
    can_edit: bool
