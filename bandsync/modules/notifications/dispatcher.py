import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional
from pydantic import ValidationError
from supabase import Client
from bandsync.config.settings import settings
from bandsync.database.supabase_client import SupabaseClient
from bandsync.database.document_store import DocumentStore, Transaction, TransactionConflict, NOTIFICATIONS
from bandsync.modules.notifications.schemas import NotificationStatus, ScheduledNotification

logger = logging.getLogger(__name__)


class SupabaseFunctionPushSender:
    """Delivers a notification through a Supabase Edge Function"""

    def __init__(self, client: Client, function_name: str):
        self.client = client
        self.function_name = function_name

    def send(self, notification: ScheduledNotification) -> None:
        self.client.functions.invoke(
            self.function_name,
            invoke_options={
                "body": {
                    "id": notification.id,
                    "title": notification.title,
                    "body": notification.body,
                    "recipients": notification.recipients,
                    "group_id": notification.group_id,
                }
            },
        )


def _claim(store: DocumentStore, notification_id: str, now: datetime) -> Optional[ScheduledNotification]:
    """Mark a due notification as sent unless another dispatcher got there first"""
    def txn_fn(txn: Transaction) -> Optional[ScheduledNotification]:
        document = txn.get(NOTIFICATIONS, notification_id)
        if document is None or document.get("status") != NotificationStatus.SCHEDULED.value:
            return None
        txn.update(NOTIFICATIONS, notification_id, {
            "status": NotificationStatus.SENT.value,
            "sent_at": now.isoformat(),
        })
        return ScheduledNotification.model_validate(document.to_dict())

    try:
        return store.run_transaction(txn_fn, max_attempts=1)
    except TransactionConflict:
        logger.debug(f"Notification {notification_id} changed while claiming, skipping")
        return None


def dispatch_due_notifications(store: DocumentStore, sender, now: Optional[datetime] = None) -> int:
    """Send every scheduled notification whose fire time has passed; returns how many were sent"""
    now = now or datetime.now(timezone.utc)
    documents = store.query(NOTIFICATIONS, filters=[("status", "==", NotificationStatus.SCHEDULED.value)])
    sent = 0
    for document in documents:
        try:
            pending = ScheduledNotification.model_validate(document.to_dict())
        except ValidationError as e:
            logger.error(f"Notification {document.id} is unreadable, marking failed: {e.error_count()} error(s)")
            store.update(NOTIFICATIONS, document.id, {
                "status": NotificationStatus.FAILED.value,
                "error": "unreadable notification",
            })
            continue
        fire_at = pending.fire_at if pending.fire_at.tzinfo else pending.fire_at.replace(tzinfo=timezone.utc)
        if fire_at > now:
            continue

        notification = _claim(store, pending.id, now)
        if notification is None:
            continue
        try:
            sender.send(notification)
            sent += 1
            logger.info(f"Delivered notification {notification.id} to {len(notification.recipients)} recipient(s)")
        except Exception as e:
            logger.error(f"Error delivering notification {notification.id}: {str(e)}")
            store.update(NOTIFICATIONS, notification.id, {
                "status": NotificationStatus.FAILED.value,
                "error": str(e),
            })
    if not sent:
        logger.debug("No due notifications")
    return sent


async def notification_dispatcher_loop():
    """Background task that periodically delivers due notifications"""
    sender = SupabaseFunctionPushSender(SupabaseClient.get_service_client(), settings.push_function_name)
    while True:
        try:
            await asyncio.to_thread(dispatch_due_notifications, SupabaseClient.get_store(), sender)
        except Exception as e:
            logger.error(f"Error in notification dispatcher loop: {str(e)}")

        await asyncio.sleep(settings.notification_poll_interval)
