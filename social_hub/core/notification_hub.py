import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from social_hub.schemas import NotificationRead
from social_hub.services.base import NotificationPublisher

logger = logging.getLogger(__name__)

_CLOSED = object()


class NotificationSubscription:
    """
    One live "row inserted" stream for one recipient.
    Events are delivered in publish order; the same row may arrive more than once.
    """

    def __init__(self, hub: "NotificationHub", recipient_id: str):
        self.hub = hub
        self.recipient_id = recipient_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def deliver(self, notification: NotificationRead):
        if not self.closed:
            self._queue.put_nowait(notification)

    async def get(self) -> Optional[NotificationRead]:
        """Next event, or None once the subscription is closed."""
        if self.closed:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.hub._detach(self)
        # Wake a reader blocked in get()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> NotificationRead:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item


class NotificationHub(NotificationPublisher):
    """
    In-process fan-out of inserted notifications, scoped by recipient.
    Every live subscription for a recipient receives every published row.
    """

    def __init__(self):
        self.active_subscriptions: Dict[str, List[NotificationSubscription]] = {}

    def subscribe(self, recipient_id: str) -> NotificationSubscription:
        subscription = NotificationSubscription(self, recipient_id)
        self.active_subscriptions.setdefault(recipient_id, []).append(subscription)
        logger.info(f"Notification subscription opened for {recipient_id}. Active: {self.subscriber_count(recipient_id)}")
        return subscription

    @asynccontextmanager
    async def subscription(self, recipient_id: str) -> AsyncIterator[NotificationSubscription]:
        subscription = self.subscribe(recipient_id)
        try:
            yield subscription
        finally:
            subscription.close()

    def _detach(self, subscription: NotificationSubscription):
        subscriptions = self.active_subscriptions.get(subscription.recipient_id)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
            if not subscriptions:
                del self.active_subscriptions[subscription.recipient_id]
        logger.info(f"Notification subscription closed for {subscription.recipient_id}. Active: {self.subscriber_count(subscription.recipient_id)}")

    def subscriber_count(self, recipient_id: str) -> int:
        return len(self.active_subscriptions.get(recipient_id, []))

    def dispatch(self, notification: NotificationRead) -> int:
        """Deliver to every live subscription of the recipient. Returns how many received it."""
        subscriptions = list(self.active_subscriptions.get(notification.recipient_id, []))
        for subscription in subscriptions:
            subscription.deliver(notification)
        logger.debug(f"Dispatched notification {notification.id} to {len(subscriptions)} subscription(s).")
        return len(subscriptions)

    async def publish(self, notification: NotificationRead) -> None:
        self.dispatch(notification)

    def close_all(self):
        for subscriptions in list(self.active_subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.close()
