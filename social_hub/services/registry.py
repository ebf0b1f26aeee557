import logging
import os
from dataclasses import dataclass
from typing import Optional

import firebase_admin

from social_hub.core.config import settings
from social_hub.core.notification_hub import NotificationHub
from social_hub.core.pubsub_bridge import PubSubNotificationListener, PubSubNotificationPublisher
from social_hub.services.base import FriendshipStore, NotificationStore, UserDirectory
from social_hub.services.firestore_services.friendship_store import FirestoreFriendshipStore
from social_hub.services.firestore_services.notification_store import FirestoreNotificationStore
from social_hub.services.firestore_services.user_directory import FirestoreUserDirectory
from social_hub.services.memory_services import (
    InMemoryFriendshipStore,
    InMemoryNotificationStore,
    InMemoryUserDirectory,
)
from social_hub.services.relationship_service import RelationshipService

logger = logging.getLogger(__name__)


@dataclass
class SocialServices:
    hub: NotificationHub
    friendship_store: FriendshipStore
    notification_store: NotificationStore
    user_directory: UserDirectory
    relationship_service: RelationshipService
    listener: Optional[PubSubNotificationListener] = None

    def start(self):
        if self.listener is not None:
            self.listener.ensure_subscription()
            self.listener.start()

    def stop(self):
        if self.listener is not None:
            self.listener.stop()
        self.hub.close_all()


def init_firebase():
    # It will automatically use FIRESTORE_EMULATOR_HOST if set in environment.
    # For production, it will use Application Default Credentials.
    if settings.FIRESTORE_EMULATOR_HOST:
        os.environ["FIRESTORE_EMULATOR_HOST"] = settings.FIRESTORE_EMULATOR_HOST
    if not firebase_admin._apps:
        firebase_admin.initialize_app(options={'projectId': settings.GCP_PROJECT_ID})
        logger.info("Firebase Admin SDK initialized.")
    else:
        logger.info("Firebase app already initialized.")


def build_services(backend: Optional[str] = None) -> SocialServices:
    backend = backend or settings.STORE_BACKEND
    hub = NotificationHub()

    if backend == "memory":
        friendship_store = InMemoryFriendshipStore()
        notification_store = InMemoryNotificationStore(publisher=hub)
        user_directory = InMemoryUserDirectory()
        listener = None
    else:
        init_firebase()
        # Inserts reach local surfaces through Pub/Sub, so every instance sees them
        publisher = PubSubNotificationPublisher()
        publisher.ensure_topic()
        friendship_store = FirestoreFriendshipStore()
        notification_store = FirestoreNotificationStore(publisher=publisher)
        user_directory = FirestoreUserDirectory()
        listener = PubSubNotificationListener(hub)

    logger.info(f"Social services built with the {backend} backend.")
    return SocialServices(
        hub=hub,
        friendship_store=friendship_store,
        notification_store=notification_store,
        user_directory=user_directory,
        relationship_service=RelationshipService(friendship_store, notification_store, user_directory),
        listener=listener,
    )
