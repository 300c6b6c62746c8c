from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
from bandsync.config.permissions_config import ModuleType
from bandsync.modules.events.schemas import EventCreate, EventModel, EventType, EventUpdate
from bandsync.modules.events.service import EventService
from bandsync.modules.groups.service import GroupService
from bandsync.modules.users.schemas import UserModel
from bandsync.core.dependencies import get_event_service, get_group_service, require_module_access

router = APIRouter(prefix="/groups/{group_id}/events", tags=["events"])

check_calendar_access = require_module_access(ModuleType.CALENDAR)


def check_can_create_events(
    group_id: str,
    current_user: UserModel = Depends(check_calendar_access),
    groups: GroupService = Depends(get_group_service)
) -> UserModel:
    """Managers always, other members when the group settings allow it"""
    group = groups.get_group(group_id)
    if not groups.capabilities(group, current_user).can_create_events:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to manage events in this group"
        )
    return current_user


@router.get("", response_model=List[EventModel])
async def list_events(
    group_id: str,
    on_date: Optional[date] = Query(None, alias="date"),
    event_type: Optional[EventType] = Query(None, alias="type"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    current_user: UserModel = Depends(check_calendar_access),
    service: EventService = Depends(get_event_service)
):
    """List group events, optionally filtered by day, type, period or month"""
    return service.list_events(
        group_id, on_date=on_date, event_type=event_type, start=start, end=end, month=month, year=year
    )


@router.get("/upcoming", response_model=List[EventModel])
async def upcoming_events(
    group_id: str,
    limit: int = Query(5, ge=1, le=50),
    current_user: UserModel = Depends(check_calendar_access),
    service: EventService = Depends(get_event_service)
):
    """Next events from now on"""
    return service.upcoming_events(group_id, limit=limit)


@router.post("", response_model=EventModel, status_code=201)
async def create_event(
    group_id: str,
    event_data: EventCreate,
    current_user: UserModel = Depends(check_can_create_events),
    service: EventService = Depends(get_event_service)
):
    """Create an event and schedule its reminders"""
    return service.create_event(group_id, event_data, current_user)


@router.get("/{event_id}", response_model=EventModel)
async def get_event(
    group_id: str,
    event_id: str,
    current_user: UserModel = Depends(check_calendar_access),
    service: EventService = Depends(get_event_service)
):
    """Get event by ID"""
    return service.get_event(group_id, event_id)


@router.put("/{event_id}", response_model=EventModel)
async def update_event(
    group_id: str,
    event_id: str,
    event_data: EventUpdate,
    current_user: UserModel = Depends(check_can_create_events),
    service: EventService = Depends(get_event_service)
):
    """Update an event and reschedule its reminders"""
    return service.update_event(group_id, event_id, event_data)


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    group_id: str,
    event_id: str,
    current_user: UserModel = Depends(check_can_create_events),
    service: EventService = Depends(get_event_service)
):
    """Delete an event and cancel its reminders"""
    service.delete_event(group_id, event_id)
    return None
