from pydantic import BaseModel
from typing import Optional, Dict, Any
from bandsync.config.permissions_config import UserRole


class UserModel(BaseModel):
    id: str
    email: str
    name: str
    phone: str = ""
    group_id: Optional[str] = None
    role: UserRole = UserRole.MEMBER

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
