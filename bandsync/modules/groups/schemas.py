from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from bandsync.config.permissions_config import ModuleType, UserRole
from bandsync.modules.groups.membership import MembershipState
from bandsync.modules.users.schemas import UserModel


class GroupSettings(BaseModel):
    allow_members_to_invite: bool = True
    allow_members_to_create_events: bool = True
    allow_members_to_create_setlists: bool = True
    allow_guest_access: bool = False
    enable_notifications: bool = True
    enabled_modules: List[ModuleType] = Field(default_factory=lambda: list(ModuleType))


class GroupModel(BaseModel):
    id: str
    name: str
    code: str
    members: List[str] = Field(default_factory=list)
    pending_members: List[str] = Field(default_factory=list)
    settings: GroupSettings = Field(default_factory=GroupSettings)
    created_at: datetime
    updated_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class GroupCreate(BaseModel):
    name: str = Field(min_length=1)


class GroupUpdate(BaseModel):
    name: str = Field(min_length=1)


class JoinGroupRequest(BaseModel):
    code: str = Field(min_length=1)


class InviteRequest(BaseModel):
    email: EmailStr


class RoleUpdate(BaseModel):
    role: UserRole


class GroupMembersResponse(BaseModel):
    members: List[UserModel]
    pending_members: List[UserModel]


class GroupCapabilities(BaseModel):
    membership: MembershipState
    is_admin: bool
    is_manager: bool
    can_create_events: bool
    can_create_setlists: bool
    can_invite_members: bool
