from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class EventType(str, Enum):
    CONCERT = "concert"
    REHEARSAL = "rehearsal"
    MEETING = "meeting"
    RECORDING = "recording"
    OTHER = "other"


class EventBase(BaseModel):
    title: str = Field(min_length=1)
    date: datetime
    type: EventType = EventType.OTHER
    location: Optional[str] = None
    notes: Optional[str] = None


class EventCreate(EventBase):
    pass


class EventUpdate(EventBase):
    pass


class EventModel(EventBase):
    id: str
    group_id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})
