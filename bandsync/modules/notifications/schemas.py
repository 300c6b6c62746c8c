from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class NotificationStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class ScheduledNotification(BaseModel):
    id: str
    title: str
    body: str
    fire_at: datetime
    recipients: List[str] = Field(default_factory=list)
    group_id: Optional[str] = None
    status: NotificationStatus = NotificationStatus.SCHEDULED
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})
