from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPAuthorizationCredentials
from bandsync.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, PasswordResetRequest
)
from bandsync.modules.auth.service import AuthService
from bandsync.modules.permissions.service import PermissionService
from bandsync.modules.users.schemas import UserModel
from bandsync.core.dependencies import security, get_auth_service, get_current_user, get_permission_service

router = APIRouter(prefix="/auth", tags=["auth"])


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and invalidate token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.post("/reset-password", status_code=200)
async def reset_password(
    request: PasswordResetRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Send a password reset email"""
    service.reset_password(request.email)
    return {"message": "Password reset email sent"}


@router.get("/me")
async def get_me(
    current_user: UserModel = Depends(get_current_user),
    permissions: PermissionService = Depends(get_permission_service)
):
    """Get current authenticated user and the modules they can open (for frontend UI)."""
    modules = []
    if current_user.group_id:
        modules = [m.value for m in permissions.accessible_modules(current_user.group_id, current_user.role)]
    return {**current_user.model_dump(mode="json"), "modules": modules}
