"""In-memory FriendshipStore for local development and tests."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from social_hub.core.exceptions import (
    DuplicateRelationship,
    InvalidSelfRelation,
    InvalidTransition,
    NotAuthorized,
    RelationshipNotFound,
)
from social_hub.schemas import (
    Friendship,
    FriendshipStatusEnum,
    RequestDirectionEnum,
    canonical_pair_key,
)
from social_hub.services.base import FriendshipStore

logger = logging.getLogger(__name__)


class InMemoryFriendshipStore(FriendshipStore):
    """
    Dict-backed edges plus a canonical-pair index of the active edge.

    No method awaits between reading and writing, so on a single event loop
    every check-and-write is atomic.
    """

    def __init__(self):
        self._edges: Dict[str, Friendship] = {}
        self._active_pairs: Dict[str, str] = {}

    async def create(self, requester_id: str, recipient_id: str) -> Friendship:
        if requester_id == recipient_id:
            raise InvalidSelfRelation()
        pair_key = canonical_pair_key(requester_id, recipient_id)
        if pair_key in self._active_pairs:
            raise DuplicateRelationship()

        now = datetime.now(timezone.utc)
        edge = Friendship(
            id=str(uuid.uuid4()),
            requester_id=requester_id,
            recipient_id=recipient_id,
            status=FriendshipStatusEnum.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._edges[edge.id] = edge
        self._active_pairs[pair_key] = edge.id
        logger.info(f"Friend request {edge.id} created: {requester_id} -> {recipient_id}")
        return edge.model_copy()

    async def get(self, friendship_id: str) -> Optional[Friendship]:
        edge = self._edges.get(friendship_id)
        return edge.model_copy() if edge else None

    async def set_status(
        self, friendship_id: str, recipient_id: str, new_status: FriendshipStatusEnum
    ) -> Friendship:
        edge = self._edges.get(friendship_id)
        if edge is None:
            raise RelationshipNotFound()
        if edge.recipient_id != recipient_id:
            raise NotAuthorized()
        if edge.status == new_status:
            return edge.model_copy()
        if edge.status != FriendshipStatusEnum.PENDING or new_status == FriendshipStatusEnum.PENDING:
            raise InvalidTransition()

        edge.status = new_status
        edge.updated_at = datetime.now(timezone.utc)
        if new_status == FriendshipStatusEnum.REJECTED:
            self._active_pairs.pop(edge.pair_key, None)
        logger.info(f"Friend request {friendship_id} answered: {new_status.value}")
        return edge.model_copy()

    async def delete(self, friendship_id: str, caller_id: str) -> None:
        edge = self._edges.get(friendship_id)
        if edge is None:
            raise RelationshipNotFound()
        if not edge.involves(caller_id):
            raise NotAuthorized("Not part of this friendship.")
        del self._edges[friendship_id]
        if self._active_pairs.get(edge.pair_key) == friendship_id:
            del self._active_pairs[edge.pair_key]
        logger.info(f"Friendship {friendship_id} removed by {caller_id}")

    async def find_between(self, user_a: str, user_b: str) -> Optional[Friendship]:
        friendship_id = self._active_pairs.get(canonical_pair_key(user_a, user_b))
        return await self.get(friendship_id) if friendship_id else None

    async def list_accepted_edges(self, user_id: str) -> List[Friendship]:
        return [
            edge.model_copy()
            for edge in self._edges.values()
            if edge.involves(user_id) and edge.status == FriendshipStatusEnum.ACCEPTED
        ]

    async def list_pending(self, user_id: str, direction: RequestDirectionEnum) -> List[Friendship]:
        field = "recipient_id" if direction == RequestDirectionEnum.INCOMING else "requester_id"
        results = [
            edge.model_copy()
            for edge in self._edges.values()
            if getattr(edge, field) == user_id and edge.status == FriendshipStatusEnum.PENDING
        ]
        results.sort(key=lambda e: e.created_at)
        return results
