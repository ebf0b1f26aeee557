"""Store interfaces shared by the Firestore and in-memory backends."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Set

from social_hub.schemas import (
    Friendship,
    FriendshipStatusEnum,
    NotificationCreate,
    NotificationRead,
    ProfileRead,
    RequestDirectionEnum,
)


class FriendshipStore(ABC):
    """
    Sole writer of friendship edges.

    Implementations must make the uniqueness check of `create` and the
    status check of `set_status` atomic with their writes: at most one
    pending or accepted edge may exist per unordered pair of users.
    """

    @abstractmethod
    async def create(self, requester_id: str, recipient_id: str) -> Friendship:
        """Insert a pending edge. Raises InvalidSelfRelation or DuplicateRelationship."""

    @abstractmethod
    async def get(self, friendship_id: str) -> Optional[Friendship]:
        pass

    @abstractmethod
    async def set_status(
        self, friendship_id: str, recipient_id: str, new_status: FriendshipStatusEnum
    ) -> Friendship:
        """
        Answer a pending edge. Only the recipient may answer; re-applying the
        status the edge already has is a no-op success.
        """

    @abstractmethod
    async def delete(self, friendship_id: str, caller_id: str) -> None:
        """Remove an edge outright. Either party may delete."""

    @abstractmethod
    async def find_between(self, user_a: str, user_b: str) -> Optional[Friendship]:
        """The active (pending or accepted) edge for a pair, in either orientation."""

    @abstractmethod
    async def list_accepted_edges(self, user_id: str) -> List[Friendship]:
        """Accepted edges where user_id is requester or recipient."""

    @abstractmethod
    async def list_pending(self, user_id: str, direction: RequestDirectionEnum) -> List[Friendship]:
        """Pending edges for user_id, oldest first."""

    async def list_accepted(self, user_id: str) -> Set[str]:
        """Counterpart ids of every accepted edge, deduplicated."""
        edges = dedupe_by_counterpart(user_id, await self.list_accepted_edges(user_id))
        return {edge.counterpart_of(user_id) for edge in edges}


def dedupe_by_counterpart(user_id: str, edges: List[Friendship]) -> List[Friendship]:
    """
    Merge outgoing and incoming result sets, keeping one edge per counterpart.
    The oldest edge wins so that `since` stays stable for the caller.
    """
    by_counterpart = {}
    for edge in sorted(edges, key=lambda e: e.created_at):
        by_counterpart.setdefault(edge.counterpart_of(user_id), edge)
    return list(by_counterpart.values())


class NotificationPublisher(ABC):
    """Producer side of the change-subscription channel."""

    @abstractmethod
    async def publish(self, notification: NotificationRead) -> None:
        pass


class NotificationStore(ABC):
    """Sole writer of notification rows. `read` only ever moves to True."""

    @abstractmethod
    async def create(self, notification_in: NotificationCreate) -> NotificationRead:
        """Persist a row and publish it to the change-subscription channel."""

    @abstractmethod
    async def get(self, notification_id: str) -> Optional[NotificationRead]:
        pass

    @abstractmethod
    async def list_recent(
        self, recipient_id: str, since: Optional[datetime] = None, limit: int = 20
    ) -> List[NotificationRead]:
        """Newest first."""

    @abstractmethod
    async def mark_read(self, notification_id: str) -> NotificationRead:
        """Idempotent. Raises NotificationNotFound."""

    @abstractmethod
    async def mark_all_read(self, recipient_id: str) -> int:
        """Idempotent. Returns the number of rows that changed."""

    @abstractmethod
    async def unread_count(self, recipient_id: str) -> int:
        """Counted from the rows on every call, never stored."""


class UserDirectory(ABC):
    """Read-only view of learner profiles."""

    @abstractmethod
    async def get_many(self, user_ids: List[str]) -> List[ProfileRead]:
        pass

    @abstractmethod
    async def search_by_username(self, query: str, limit: int = 10) -> List[ProfileRead]:
        """Case-insensitive partial match on username."""
