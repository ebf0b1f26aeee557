"""In-memory NotificationStore for local development and tests."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from social_hub.core.exceptions import NotificationNotFound
from social_hub.schemas import NotificationCreate, NotificationRead
from social_hub.services.base import NotificationPublisher, NotificationStore

logger = logging.getLogger(__name__)


class InMemoryNotificationStore(NotificationStore):

    def __init__(self, publisher: Optional[NotificationPublisher] = None):
        self.publisher = publisher
        self._rows: Dict[str, NotificationRead] = {}

    async def create(self, notification_in: NotificationCreate) -> NotificationRead:
        notification = NotificationRead(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            read=False,
            **notification_in.model_dump(),
        )
        self._rows[notification.id] = notification
        logger.info(f"Notification {notification.id} ({notification.notification_type}) created for {notification.recipient_id}")
        if self.publisher:
            await self.publisher.publish(notification.model_copy(deep=True))
        return notification.model_copy(deep=True)

    async def get(self, notification_id: str) -> Optional[NotificationRead]:
        row = self._rows.get(notification_id)
        return row.model_copy(deep=True) if row else None

    async def list_recent(
        self, recipient_id: str, since: Optional[datetime] = None, limit: int = 20
    ) -> List[NotificationRead]:
        rows = [
            row for row in self._rows.values()
            if row.recipient_id == recipient_id and (since is None or row.created_at >= since)
        ]
        # Insertion order breaks created_at ties so "newest first" is stable
        rows = list(reversed(rows))
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [row.model_copy(deep=True) for row in rows[:limit]]

    async def mark_read(self, notification_id: str) -> NotificationRead:
        row = self._rows.get(notification_id)
        if row is None:
            raise NotificationNotFound()
        if not row.read:
            row.read = True
            logger.info(f"Notification {notification_id} marked as read.")
        return row.model_copy(deep=True)

    async def mark_all_read(self, recipient_id: str) -> int:
        updated_count = 0
        for row in self._rows.values():
            if row.recipient_id == recipient_id and not row.read:
                row.read = True
                updated_count += 1
        logger.info(f"Marked {updated_count} notifications as read for user {recipient_id}.")
        return updated_count

    async def unread_count(self, recipient_id: str) -> int:
        return sum(1 for row in self._rows.values() if row.recipient_id == recipient_id and not row.read)
