import logging
from datetime import date as date_type, datetime, timedelta, timezone
from typing import List, Optional
from fastapi import HTTPException
from pydantic import ValidationError
from bandsync.database.document_store import Document, DocumentStore, EVENTS, GROUPS
from bandsync.modules.events.schemas import EventCreate, EventModel, EventType, EventUpdate
from bandsync.modules.groups.service import decode_group
from bandsync.modules.notifications.notifier import PushNotifier
from bandsync.modules.users.schemas import UserModel

logger = logging.getLogger(__name__)

DAY_BEFORE = timedelta(days=1)
HOUR_BEFORE = timedelta(hours=1)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def notification_ids(event_id: str) -> List[str]:
    return [f"event_day_before_{event_id}", f"event_hour_before_{event_id}"]


def month_range(month: int, year: int):
    """First instant of the month and first instant of the next one"""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


class EventService:
    def __init__(self, store: DocumentStore, notifier: PushNotifier):
        self.store = store
        self.notifier = notifier

    def _decode(self, document: Document) -> Optional[EventModel]:
        try:
            event = EventModel.model_validate(document.to_dict())
        except ValidationError as e:
            logger.warning(f"Skipping unreadable event {document.id}: {e.error_count()} error(s)")
            return None
        event.date = _as_utc(event.date)
        return event

    def list_events(
        self,
        group_id: str,
        on_date: Optional[date_type] = None,
        event_type: Optional[EventType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> List[EventModel]:
        """Events of a group sorted by date, narrowed by any of the filters"""
        documents = self.store.query(EVENTS, filters=[("group_id", "==", group_id)])
        events = [e for e in (self._decode(d) for d in documents) if e is not None]

        if on_date is not None:
            events = [e for e in events if e.date.date() == on_date]
        if event_type is not None:
            events = [e for e in events if e.type == event_type]
        if start is not None:
            events = [e for e in events if e.date >= _as_utc(start)]
        if end is not None:
            events = [e for e in events if e.date <= _as_utc(end)]
        if month is not None or year is not None:
            if month is None or year is None:
                raise HTTPException(status_code=400, detail="Both month and year are required")
            month_start, month_end = month_range(month, year)
            events = [e for e in events if month_start <= e.date < month_end]

        return sorted(events, key=lambda e: e.date)

    def upcoming_events(self, group_id: str, limit: int = 5, now: Optional[datetime] = None) -> List[EventModel]:
        now = _as_utc(now or datetime.now(timezone.utc))
        return [e for e in self.list_events(group_id) if e.date > now][:limit]

    def get_event(self, group_id: str, event_id: str) -> EventModel:
        """Get event by ID within the group"""
        document = self.store.get(EVENTS, event_id)
        event = self._decode(document) if document else None
        if event is None or event.group_id != group_id:
            raise HTTPException(status_code=404, detail="Event not found")
        return event

    def create_event(self, group_id: str, event_data: EventCreate, creator: UserModel) -> EventModel:
        data = event_data.model_dump(mode="json")
        data.update({
            "date": _as_utc(event_data.date).isoformat(),
            "group_id": group_id,
            "created_by": creator.id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        try:
            document = self.store.add(EVENTS, data)
        except Exception as e:
            logger.error(f"Error creating event in group {group_id}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to create event: {e}")
        event = self._decode(document)
        logger.info(f"Event {event.id} created in group {group_id} by {creator.id}")
        self.schedule_notifications(event)
        return event

    def update_event(self, group_id: str, event_id: str, event_data: EventUpdate) -> EventModel:
        """Replace an event's details and reschedule its reminders"""
        current = self.get_event(group_id, event_id)
        updated = current.model_copy(update={
            **event_data.model_dump(),
            "date": _as_utc(event_data.date),
            "updated_at": datetime.now(timezone.utc),
        })
        self.store.set(EVENTS, event_id, updated.to_document())
        self.cancel_notifications(event_id)
        self.schedule_notifications(updated)
        logger.info(f"Event {event_id} updated in group {group_id}")
        return updated

    def delete_event(self, group_id: str, event_id: str) -> None:
        self.get_event(group_id, event_id)
        self.store.delete(EVENTS, event_id)
        self.cancel_notifications(event_id)
        logger.info(f"Event {event_id} deleted from group {group_id}")

    def delete_group_events(self, group_id: str) -> int:
        """Delete every event of a group and cancel their queued reminders"""
        documents = self.store.query(EVENTS, filters=[("group_id", "==", group_id)])
        for document in documents:
            self.store.delete(EVENTS, document.id)
            self.cancel_notifications(document.id)
        if documents:
            logger.info(f"Deleted {len(documents)} events of group {group_id}")
        return len(documents)

    # Reminders

    def schedule_notifications(self, event: EventModel, now: Optional[datetime] = None) -> int:
        """
        Schedule the day-before and hour-before reminders for every active
        member. Reminders whose time has already passed are skipped, and
        nothing is scheduled when the group turned notifications off.
        """
        document = self.store.get(GROUPS, event.group_id)
        if document is None:
            return 0
        group = decode_group(document)
        if not group.settings.enable_notifications:
            logger.debug(f"Notifications disabled for group {group.id}, not scheduling for event {event.id}")
            return 0

        now = _as_utc(now or datetime.now(timezone.utc))
        day_id, hour_id = notification_ids(event.id)
        reminders = [
            (day_id, event.date - DAY_BEFORE, f"Tomorrow: {event.title}"),
            (hour_id, event.date - HOUR_BEFORE, f"In one hour: {event.title}"),
        ]
        body = event.title if not event.location else f"{event.title} at {event.location}"
        scheduled = 0
        for identifier, fire_at, title in reminders:
            if fire_at <= now:
                continue
            self.notifier.schedule(identifier, title, body, fire_at, list(group.members), group_id=group.id)
            scheduled += 1
        return scheduled

    def cancel_notifications(self, event_id: str) -> None:
        for identifier in notification_ids(event_id):
            self.notifier.cancel(identifier)
