from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from bandsync.config.permissions_config import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str
    group_id: Optional[str] = None
    role: UserRole = UserRole.MEMBER


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    phone: str = ""


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str


class PasswordResetRequest(BaseModel):
    email: EmailStr
