"""In-memory backends for local development and tests."""

from social_hub.services.memory_services.friendship_store import InMemoryFriendshipStore
from social_hub.services.memory_services.notification_store import InMemoryNotificationStore
from social_hub.services.memory_services.user_directory import InMemoryUserDirectory

__all__ = [
    "InMemoryFriendshipStore",
    "InMemoryNotificationStore",
    "InMemoryUserDirectory",
]
