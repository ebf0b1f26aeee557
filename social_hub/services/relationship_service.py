import logging
from typing import Dict, List, Optional, Set

from social_hub.core.config import settings
from social_hub.core.exceptions import DuplicateRelationship, SocialHubError, StoreUnavailable
from social_hub.schemas import (
    Friendship,
    FriendshipStatusEnum,
    FriendRead,
    FriendRequestOutcomeEnum,
    FriendRequestRead,
    FriendRequestResult,
    NotificationCreate,
    NotificationTypeEnum,
    ProfileRead,
    RequestDirectionEnum,
)
from social_hub.services.base import (
    FriendshipStore,
    NotificationStore,
    UserDirectory,
    dedupe_by_counterpart,
)

logger = logging.getLogger(__name__)


class RelationshipService:
    """
    Friendship operations for presentation surfaces.

    A friendship is stored once as a directed edge (who asked whom) and read
    as an undirected relation. Invariant violations come back as typed
    SocialHubError subclasses and are never retried here.
    """

    def __init__(
        self,
        friendship_store: FriendshipStore,
        notification_store: NotificationStore,
        user_directory: UserDirectory,
        search_limit: Optional[int] = None,
    ):
        self.friendship_store = friendship_store
        self.notification_store = notification_store
        self.user_directory = user_directory
        self.search_limit = search_limit or settings.FRIEND_SEARCH_LIMIT
        self._friend_cache: Dict[str, Set[str]] = {}

    # --- Requests ---

    async def send_request(self, from_id: str, to_id: str) -> FriendRequestResult:
        try:
            edge = await self.friendship_store.create(from_id, to_id)
        except DuplicateRelationship:
            return await self._duplicate_outcome(from_id, to_id)

        try:
            await self._notify_request(edge)
        except SocialHubError:
            # A request nobody is told about would sit pending forever; undo it.
            logger.error(f"Could not notify {to_id} of friend request {edge.id}; withdrawing it.")
            await self.friendship_store.delete(edge.id, from_id)
            raise StoreUnavailable("Friend request could not be sent. Please try again.")

        return FriendRequestResult(
            outcome=FriendRequestOutcomeEnum.SENT,
            message="Friend request sent!",
            friendship=edge,
        )

    async def _duplicate_outcome(self, from_id: str, to_id: str) -> FriendRequestResult:
        existing = await self.friendship_store.find_between(from_id, to_id)
        if existing is not None and existing.status == FriendshipStatusEnum.ACCEPTED:
            return FriendRequestResult(
                outcome=FriendRequestOutcomeEnum.ALREADY_FRIENDS,
                message="You are already friends.",
                friendship=existing,
            )
        return FriendRequestResult(
            outcome=FriendRequestOutcomeEnum.ALREADY_PENDING,
            message="Request already pending.",
            friendship=existing,
        )

    async def _notify_request(self, edge: Friendship):
        requesters = await self.user_directory.get_many([edge.requester_id])
        name = _display_name(requesters[0]) if requesters else "Someone"
        await self.notification_store.create(NotificationCreate(
            recipient_id=edge.recipient_id,
            notification_type=NotificationTypeEnum.FRIEND_REQUEST.value,
            title="New friend request",
            message=f"{name} wants to be your friend.",
            payload={"friendship_id": edge.id, "requester_id": edge.requester_id},
        ))

    async def respond(self, friendship_id: str, recipient_id: str, accept: bool) -> Friendship:
        new_status = FriendshipStatusEnum.ACCEPTED if accept else FriendshipStatusEnum.REJECTED
        edge = await self.friendship_store.set_status(friendship_id, recipient_id, new_status)
        self.invalidate(edge.requester_id, edge.recipient_id)
        return edge

    async def remove_friend(self, friendship_id: str, caller_id: str) -> None:
        edge = await self.friendship_store.get(friendship_id)
        await self.friendship_store.delete(friendship_id, caller_id)
        if edge is not None:
            self.invalidate(edge.requester_id, edge.recipient_id)

    # --- Reads ---

    async def friends_of(self, user_id: str) -> List[FriendRead]:
        """
        Accepted counterparts with profile data. Only the set is guaranteed;
        ordering is left to the caller.
        """
        edges = dedupe_by_counterpart(user_id, await self.friendship_store.list_accepted_edges(user_id))
        self._friend_cache[user_id] = {edge.counterpart_of(user_id) for edge in edges}
        profiles = await self._profiles_by_id([edge.counterpart_of(user_id) for edge in edges])
        return [
            FriendRead(friendship_id=edge.id, since=edge.updated_at, profile=_profile_for(profiles, edge.counterpart_of(user_id)))
            for edge in edges
        ]

    async def list_pending(self, user_id: str, direction: RequestDirectionEnum) -> List[FriendRequestRead]:
        edges = await self.friendship_store.list_pending(user_id, direction)
        profiles = await self._profiles_by_id([edge.counterpart_of(user_id) for edge in edges])
        return [
            FriendRequestRead(
                friendship_id=edge.id,
                requester_id=edge.requester_id,
                recipient_id=edge.recipient_id,
                created_at=edge.created_at,
                counterpart=_profile_for(profiles, edge.counterpart_of(user_id)),
            )
            for edge in edges
        ]

    async def search(self, for_user_id: str, query: str) -> List[ProfileRead]:
        if not query or not query.strip():
            return []
        # Always the current accepted set, never the cache
        excluded = await self.friendship_store.list_accepted(for_user_id)
        excluded.add(for_user_id)
        candidates = await self.user_directory.search_by_username(query, limit=self.search_limit + len(excluded))
        return [profile for profile in candidates if profile.id not in excluded][:self.search_limit]

    async def friend_ids(self, user_id: str) -> Set[str]:
        """Cached friend-id set for display purposes."""
        if user_id not in self._friend_cache:
            self._friend_cache[user_id] = await self.friendship_store.list_accepted(user_id)
        return set(self._friend_cache[user_id])

    def invalidate(self, *user_ids: str):
        for user_id in user_ids:
            self._friend_cache.pop(user_id, None)

    async def _profiles_by_id(self, user_ids: List[str]) -> Dict[str, ProfileRead]:
        profiles = await self.user_directory.get_many(user_ids)
        return {profile.id: profile for profile in profiles}


def _display_name(profile: ProfileRead) -> str:
    return profile.display_name or profile.username


def _profile_for(profiles: Dict[str, ProfileRead], user_id: str) -> ProfileRead:
    # A friend whose profile is gone still counts as a friend
    return profiles.get(user_id) or ProfileRead(id=user_id, username="unknown")
