from fastapi import APIRouter, Depends, HTTPException, status
from bandsync.modules.groups.schemas import (
    GroupCreate, GroupUpdate, GroupModel, GroupSettings, GroupMembersResponse,
    GroupCapabilities, JoinGroupRequest, InviteRequest, RoleUpdate
)
from bandsync.modules.events.service import EventService
from bandsync.modules.groups.service import GroupService
from bandsync.modules.users.schemas import UserModel
from bandsync.core.dependencies import (
    get_current_user, get_group_service, get_event_service, check_group_admin, check_group_manager, check_group_member
)

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupModel, status_code=201)
async def create_group(
    group_data: GroupCreate,
    current_user: UserModel = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Create a new group; the creator becomes its admin"""
    return service.create_group(group_data.name.strip(), current_user)


@router.post("/join", response_model=GroupModel)
async def join_group(
    request: JoinGroupRequest,
    current_user: UserModel = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Request to join a group with its invite code"""
    return service.join_group(request.code, current_user)


@router.get("/{group_id}", response_model=GroupModel)
async def get_group(
    group_id: str,
    current_user: UserModel = Depends(check_group_member),
    service: GroupService = Depends(get_group_service)
):
    """Get group by ID (only if user is a member)"""
    return service.get_group(group_id)


@router.put("/{group_id}", response_model=GroupModel)
async def update_group(
    group_id: str,
    group_data: GroupUpdate,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Rename group (group admin only)"""
    return service.update_name(group_id, group_data.name)


@router.delete("/{group_id}", status_code=204)
async def delete_group(
    group_id: str,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service),
    events: EventService = Depends(get_event_service)
):
    """Delete group (group admin only) along with its events and reminders"""
    service.delete_group(group_id, current_user)
    events.delete_group_events(group_id)
    return None


# Members

@router.get("/{group_id}/members", response_model=GroupMembersResponse)
async def list_members(
    group_id: str,
    current_user: UserModel = Depends(check_group_member),
    service: GroupService = Depends(get_group_service)
):
    """List members and pending join requests"""
    return service.list_members(group_id)


@router.post("/{group_id}/invite", response_model=GroupModel)
async def invite_member(
    group_id: str,
    request: InviteRequest,
    current_user: UserModel = Depends(check_group_member),
    service: GroupService = Depends(get_group_service)
):
    """Add a registered user as a pending member by email"""
    group = service.get_group(group_id)
    if not service.capabilities(group, current_user).can_invite_members:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not allowed to invite members")
    return service.invite_by_email(group_id, request.email)


@router.post("/{group_id}/members/{user_id}/approve", response_model=GroupModel)
async def approve_member(
    group_id: str,
    user_id: str,
    current_user: UserModel = Depends(check_group_manager),
    service: GroupService = Depends(get_group_service)
):
    """Approve a pending join request"""
    return service.approve_member(group_id, user_id)


@router.post("/{group_id}/members/{user_id}/reject", response_model=GroupModel)
async def reject_member(
    group_id: str,
    user_id: str,
    current_user: UserModel = Depends(check_group_manager),
    service: GroupService = Depends(get_group_service)
):
    """Reject a pending join request"""
    return service.reject_member(group_id, user_id)


@router.delete("/{group_id}/members/{user_id}", response_model=GroupModel)
async def remove_member(
    group_id: str,
    user_id: str,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Remove an active member (group admin only)"""
    return service.remove_member(group_id, user_id)


@router.put("/{group_id}/members/{user_id}/role", response_model=UserModel)
async def change_member_role(
    group_id: str,
    user_id: str,
    role_data: RoleUpdate,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Change a member's role (group admin only)"""
    return service.change_role(group_id, user_id, role_data.role)


@router.post("/{group_id}/leave", response_model=GroupModel)
async def leave_group(
    group_id: str,
    current_user: UserModel = Depends(check_group_member),
    service: GroupService = Depends(get_group_service)
):
    """Leave the group"""
    return service.leave_group(group_id, current_user)


@router.post("/{group_id}/cancel-request", response_model=GroupModel)
async def cancel_request(
    group_id: str,
    current_user: UserModel = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Withdraw the current user's pending join request"""
    return service.cancel_request(group_id, current_user)


# Settings and invite code

@router.put("/{group_id}/settings", response_model=GroupModel)
async def update_settings(
    group_id: str,
    settings_data: GroupSettings,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Replace group settings (group admin only)"""
    return service.update_settings(group_id, settings_data)


@router.post("/{group_id}/settings/reset", response_model=GroupModel)
async def reset_settings(
    group_id: str,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Restore default group settings (group admin only)"""
    return service.reset_settings(group_id)


@router.post("/{group_id}/code", response_model=GroupModel)
async def regenerate_code(
    group_id: str,
    current_user: UserModel = Depends(check_group_admin),
    service: GroupService = Depends(get_group_service)
):
    """Issue a new invite code (group admin only)"""
    return service.regenerate_code(group_id)


@router.get("/{group_id}/capabilities", response_model=GroupCapabilities)
async def get_capabilities(
    group_id: str,
    current_user: UserModel = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Membership state and allowed actions of the current user"""
    group = service.get_group(group_id)
    return service.capabilities(group, current_user)
