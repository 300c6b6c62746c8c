"""
Push notification scheduling.

A PushNotifier schedules a notification under a caller-chosen identifier and
can cancel it by that identifier; scheduling again under the same identifier
replaces the pending notification. The store-backed notifier keeps the queue
in the notifications collection, where the dispatcher picks up due entries.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional
from bandsync.database.document_store import DocumentStore, NOTIFICATIONS
from bandsync.modules.notifications.schemas import NotificationStatus, ScheduledNotification

logger = logging.getLogger(__name__)


class PushNotifier(ABC):
    @abstractmethod
    def schedule(
        self,
        identifier: str,
        title: str,
        body: str,
        fire_at: datetime,
        recipients: List[str],
        group_id: Optional[str] = None,
    ) -> ScheduledNotification:
        ...

    @abstractmethod
    def cancel(self, identifier: str) -> bool:
        """Drop a pending notification; False when nothing was pending"""


class StoreQueuePushNotifier(PushNotifier):
    def __init__(self, store: DocumentStore):
        self.store = store

    def schedule(
        self,
        identifier: str,
        title: str,
        body: str,
        fire_at: datetime,
        recipients: List[str],
        group_id: Optional[str] = None,
    ) -> ScheduledNotification:
        notification = ScheduledNotification(
            id=identifier,
            title=title,
            body=body,
            fire_at=fire_at,
            recipients=recipients,
            group_id=group_id,
            status=NotificationStatus.SCHEDULED,
            created_at=datetime.now(timezone.utc),
        )
        self.store.set(NOTIFICATIONS, identifier, notification.to_document())
        logger.info(f"Scheduled notification {identifier} for {fire_at.isoformat()} ({len(recipients)} recipient(s))")
        return notification

    def cancel(self, identifier: str) -> bool:
        document = self.store.get(NOTIFICATIONS, identifier)
        if document is None or document.get("status") != NotificationStatus.SCHEDULED.value:
            return False
        self.store.delete(NOTIFICATIONS, identifier)
        logger.info(f"Cancelled notification {identifier}")
        return True
