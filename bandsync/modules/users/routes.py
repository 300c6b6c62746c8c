from fastapi import APIRouter, Depends, HTTPException, status
from bandsync.modules.users.schemas import UserModel, UserUpdate
from bandsync.modules.users.service import UserService
from bandsync.core.dependencies import get_current_user, get_user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserModel)
async def get_me(current_user: UserModel = Depends(get_current_user)):
    """Get the current user's profile"""
    return current_user


@router.put("/me", response_model=UserModel)
async def update_me(
    user_data: UserUpdate,
    current_user: UserModel = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update the current user's name and phone"""
    return service.update_profile(current_user.id, user_data)


@router.get("/{user_id}", response_model=UserModel)
async def get_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Get user by ID (only if same user or in the same group)"""
    if user_id == current_user.id:
        return current_user
    user = service.get_user(user_id)
    if not current_user.group_id or user.group_id != current_user.group_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not accessible")
    return user
