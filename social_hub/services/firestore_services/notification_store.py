import logging
import uuid
from datetime import datetime
from typing import List, Optional

from firebase_admin import firestore_async
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from social_hub.core.exceptions import NotificationNotFound
from social_hub.schemas import NotificationCreate, NotificationRead
from social_hub.services.base import NotificationPublisher, NotificationStore
from social_hub.services.firestore_services.friendship_store import store_errors

logger = logging.getLogger(__name__)

# Firestore caps a write batch at 500 operations
BATCH_SIZE = 500


def _to_notification(doc) -> NotificationRead:
    data = doc.to_dict()
    return NotificationRead(
        id=doc.id,
        recipient_id=data["recipient_id"],
        notification_type=data["notification_type"],
        title=data["title"],
        message=data["message"],
        payload=data.get("payload") or {},
        read=bool(data.get("read", False)),
        created_at=data["created_at"],
    )


class FirestoreNotificationStore(NotificationStore):

    def __init__(self, publisher: Optional[NotificationPublisher] = None, db=None):
        self.publisher = publisher
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = firestore_async.client()
        return self._db

    def get_notifications_collection(self):
        return self.db.collection('notifications')

    async def create(self, notification_in: NotificationCreate) -> NotificationRead:
        doc_ref = self.get_notifications_collection().document(str(uuid.uuid4()))
        notification_data = {
            "recipient_id": notification_in.recipient_id,
            "notification_type": notification_in.notification_type,
            "title": notification_in.title,
            "message": notification_in.message,
            "payload": notification_in.payload,
            "read": False,
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        with store_errors("create notification"):
            await doc_ref.set(notification_data)
            # Retrieve the document to get server-generated timestamps
            created_doc = await doc_ref.get()
        notification = _to_notification(created_doc)
        logger.info(f"Notification {notification.id} ({notification.notification_type}) created for {notification.recipient_id}")

        if self.publisher:
            await self.publisher.publish(notification)
        return notification

    async def get(self, notification_id: str) -> Optional[NotificationRead]:
        with store_errors("get notification"):
            doc = await self.get_notifications_collection().document(notification_id).get()
        if doc.exists:
            return _to_notification(doc)
        return None

    async def list_recent(
        self, recipient_id: str, since: Optional[datetime] = None, limit: int = 20
    ) -> List[NotificationRead]:
        query = self.get_notifications_collection().where(filter=FieldFilter('recipient_id', '==', recipient_id))
        if since is not None:
            query = query.where(filter=FieldFilter('created_at', '>=', since))
        query = query.order_by('created_at', direction=firestore.Query.DESCENDING).limit(limit)
        with store_errors("list notifications"):
            return [_to_notification(doc) async for doc in query.stream()]

    async def mark_read(self, notification_id: str) -> NotificationRead:
        doc_ref = self.get_notifications_collection().document(notification_id)
        with store_errors("mark notification read"):
            doc = await doc_ref.get()
            if not doc.exists:
                raise NotificationNotFound()
            notification = _to_notification(doc)
            if not notification.read:
                # Only ever written as True, so concurrent surfaces cannot un-read a row
                await doc_ref.update({"read": True})
                notification.read = True
                logger.info(f"Notification {notification_id} marked as read.")
        return notification

    async def mark_all_read(self, recipient_id: str) -> int:
        query = self.get_notifications_collection() \
            .where(filter=FieldFilter('recipient_id', '==', recipient_id)) \
            .where(filter=FieldFilter('read', '==', False))

        updated_count = 0
        with store_errors("mark all notifications read"):
            batch = self.db.batch()
            pending_writes = 0
            async for doc in query.stream():
                batch.update(doc.reference, {"read": True})
                pending_writes += 1
                if pending_writes == BATCH_SIZE:
                    await batch.commit()
                    updated_count += pending_writes
                    batch = self.db.batch()
                    pending_writes = 0
            if pending_writes:
                await batch.commit()
                updated_count += pending_writes
        logger.info(f"Marked {updated_count} notifications as read for user {recipient_id}.")
        return updated_count

    async def unread_count(self, recipient_id: str) -> int:
        query = self.get_notifications_collection() \
            .where(filter=FieldFilter('recipient_id', '==', recipient_id)) \
            .where(filter=FieldFilter('read', '==', False))
        with store_errors("count unread notifications"):
            results = await query.count(alias="unread").get()
        return int(results[0][0].value)
