"""
Per-surface notification state.

A NotificationDispatcher backs one mounted surface (the persistent panel or
the short-lived drawer). It merges the snapshot pulled on mount with the rows
pushed afterwards, so that every row is applied exactly once even though the
channel delivers at least once and the snapshot may race the first push.
Several dispatchers for the same recipient may be live at once; they share
nothing but the stores, whose writes are idempotent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Set

from social_hub.core.config import settings
from social_hub.core.exceptions import (
    InvalidTransition,
    NotAuthorized,
    NotificationNotFound,
    RelationshipNotFound,
    StoreUnavailable,
)
from social_hub.core.notification_hub import NotificationHub, NotificationSubscription
from social_hub.schemas import (
    ActionOutcomeEnum,
    ActionResult,
    DispatcherStateEnum,
    NotificationRead,
    SurfaceEnum,
)
from social_hub.services.base import NotificationStore
from social_hub.services.relationship_service import RelationshipService

logger = logging.getLogger(__name__)

AlertCallback = Callable[[NotificationRead], Awaitable[None]]


@dataclass(frozen=True)
class SurfaceOptions:
    surface: SurfaceEnum
    limit: int
    window: Optional[timedelta] = None
    # Drawer rows disappear once acted on; panel rows stay, marked read
    drop_on_act: bool = False

    @classmethod
    def for_surface(cls, surface: SurfaceEnum) -> "SurfaceOptions":
        if surface == SurfaceEnum.DRAWER:
            return cls(
                surface=surface,
                limit=settings.NOTIFICATION_DRAWER_LIMIT,
                window=timedelta(hours=settings.NOTIFICATION_DRAWER_WINDOW_HOURS),
                drop_on_act=True,
            )
        return cls(surface=surface, limit=settings.NOTIFICATION_PANEL_LIMIT)


async def act_on_notification(
    notification: NotificationRead,
    recipient_id: str,
    accept: bool,
    notification_store: NotificationStore,
    relationship_service: RelationshipService,
) -> ActionResult:
    """
    Answers the friend request a notification points at, then marks the
    notification read. A request that another surface already answered counts
    as resolved: the user's goal (no longer pending) holds either way.
    A withdrawn request still retires the notification before
    RelationshipNotFound propagates.
    """
    if notification.recipient_id != recipient_id:
        raise NotAuthorized("Not your notification.")
    friendship_id = notification.friendship_id
    if friendship_id is None:
        raise InvalidTransition("This notification has no action.")

    outcome = ActionOutcomeEnum.APPLIED
    try:
        await relationship_service.respond(friendship_id, recipient_id, accept)
    except InvalidTransition:
        logger.warning(f"Friend request {friendship_id} was already answered elsewhere; treating as resolved.")
        outcome = ActionOutcomeEnum.ALREADY_RESOLVED
    except RelationshipNotFound:
        logger.warning(f"Friend request {friendship_id} no longer exists; retiring notification {notification.id}.")
        await notification_store.mark_read(notification.id)
        raise

    await notification_store.mark_read(notification.id)
    return ActionResult(notification_id=notification.id, outcome=outcome, accepted=accept)


class NotificationDispatcher:

    def __init__(
        self,
        recipient_id: str,
        notification_store: NotificationStore,
        relationship_service: RelationshipService,
        hub: NotificationHub,
        options: Optional[SurfaceOptions] = None,
        on_alert: Optional[AlertCallback] = None,
    ):
        self.recipient_id = recipient_id
        self.notification_store = notification_store
        self.relationship_service = relationship_service
        self.hub = hub
        self.options = options or SurfaceOptions.for_surface(SurfaceEnum.PANEL)
        self.on_alert = on_alert

        self.state = DispatcherStateEnum.UNINITIALIZED
        self._subscription: Optional[NotificationSubscription] = None
        self._notifications: List[NotificationRead] = []
        self._pending_actions: Set[str] = set()
        # Every id applied since mount, including rows later trimmed or dropped
        self._seen_ids: Set[str] = set()
        self._unread_count = 0

    # --- Lifecycle ---

    async def mount(self):
        if self.state == DispatcherStateEnum.LIVE:
            return
        # Subscribe before taking the snapshot so no insert falls in between;
        # anything delivered by both paths is dropped by id in apply().
        self._subscription = self.hub.subscribe(self.recipient_id)
        try:
            since = datetime.now(timezone.utc) - self.options.window if self.options.window else None
            snapshot = await self.notification_store.list_recent(self.recipient_id, since=since, limit=self.options.limit)
            unread_count = await self.notification_store.unread_count(self.recipient_id)
        except BaseException:
            self._release()
            raise
        self._notifications = snapshot
        self._seen_ids = {n.id for n in snapshot}
        self._pending_actions = {n.id for n in snapshot if n.is_actionable}
        self._unread_count = unread_count
        self.state = DispatcherStateEnum.LIVE
        logger.info(f"{self.options.surface.value} surface mounted for {self.recipient_id} with {len(snapshot)} notification(s).")

    async def unmount(self):
        """Stops applying events. Safe to call more than once."""
        if self.state != DispatcherStateEnum.LIVE:
            return
        self._release()
        self.state = DispatcherStateEnum.SUSPENDED
        logger.info(f"{self.options.surface.value} surface suspended for {self.recipient_id}.")

    def _release(self):
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def __aenter__(self) -> "NotificationDispatcher":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.unmount()

    async def run(self):
        """Applies pushed rows until the dispatcher is unmounted."""
        subscription = self._subscription
        if subscription is None:
            if self.state == DispatcherStateEnum.SUSPENDED:
                return
            raise RuntimeError("Dispatcher must be mounted before it can run.")
        async for notification in subscription:
            await self.apply(notification)

    # --- Event application ---

    async def apply(self, notification: NotificationRead) -> bool:
        """
        Applies one pushed insert. Returns False when it was ignored: a row applied
        before, one for another recipient, or any row while not live.
        """
        if self.state != DispatcherStateEnum.LIVE or notification.recipient_id != self.recipient_id:
            return False
        if notification.id in self._seen_ids:
            logger.debug(f"Duplicate delivery of notification {notification.id} ignored.")
            return False

        # The hub hands one instance to every surface; local read flags must not leak across
        notification = notification.model_copy(deep=True)
        self._seen_ids.add(notification.id)
        self._notifications.insert(0, notification)
        if not notification.read:
            self._unread_count += 1
            await self._resync_unread_count()
        if notification.is_actionable:
            self._pending_actions.add(notification.id)
        self._trim()

        if self.on_alert is not None:
            await self.on_alert(notification)
        return True

    def _trim(self):
        if len(self._notifications) <= self.options.limit:
            return
        for dropped in self._notifications[self.options.limit:]:
            self._pending_actions.discard(dropped.id)
        del self._notifications[self.options.limit:]

    # --- Read state ---

    async def mark_read(self, notification_id: str) -> NotificationRead:
        local = self._find(notification_id)
        if local is None:
            stored = await self.notification_store.get(notification_id)
            if stored is None:
                raise NotificationNotFound()
            if stored.recipient_id != self.recipient_id:
                raise NotAuthorized("Not your notification.")
        updated = await self.notification_store.mark_read(notification_id)
        self._set_read(notification_id)
        await self.refresh_unread_count()
        return updated

    async def mark_all_read(self) -> int:
        marked_count = await self.notification_store.mark_all_read(self.recipient_id)
        for notification in self._notifications:
            notification.read = True
        self._pending_actions.clear()
        await self.refresh_unread_count()
        return marked_count

    async def refresh_unread_count(self) -> int:
        self._unread_count = await self.notification_store.unread_count(self.recipient_id)
        return self._unread_count

    async def _resync_unread_count(self):
        # A row inserted between the snapshot and the count query is already counted
        try:
            await self.refresh_unread_count()
        except StoreUnavailable:
            logger.warning(f"Could not re-sync unread count for {self.recipient_id}; keeping {self._unread_count}.")

    # --- Embedded actions ---

    async def act(self, notification_id: str, accept: bool) -> ActionResult:
        notification = self._find(notification_id) or await self.notification_store.get(notification_id)
        if notification is None:
            raise NotificationNotFound()

        try:
            result = await act_on_notification(
                notification,
                self.recipient_id,
                accept,
                self.notification_store,
                self.relationship_service,
            )
        except RelationshipNotFound:
            # Withdrawn request: the controls can never succeed, so retire them anyway
            await self._retire_action(notification_id)
            raise

        await self._retire_action(notification_id)
        return result

    async def _retire_action(self, notification_id: str):
        self._set_read(notification_id)
        if self.options.drop_on_act:
            self._notifications = [n for n in self._notifications if n.id != notification_id]
        await self.refresh_unread_count()

    # --- Views ---

    @property
    def notifications(self) -> List[NotificationRead]:
        return [n.model_copy(deep=True) for n in self._notifications]

    @property
    def unread_count(self) -> int:
        return self._unread_count

    def pending_actions(self) -> List[NotificationRead]:
        """Notifications that still show accept/decline controls, newest first."""
        return [n.model_copy(deep=True) for n in self._notifications if n.id in self._pending_actions]

    def _find(self, notification_id: str) -> Optional[NotificationRead]:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def _set_read(self, notification_id: str):
        notification = self._find(notification_id)
        if notification is not None:
            notification.read = True
        self._pending_actions.discard(notification_id)
