import logging
import uuid
from contextlib import contextmanager
from typing import List, Optional

from firebase_admin import firestore_async
from google.api_core import exceptions as google_api_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from social_hub.core.exceptions import (
    DuplicateRelationship,
    InvalidSelfRelation,
    InvalidTransition,
    NotAuthorized,
    RelationshipNotFound,
    StoreUnavailable,
)
from social_hub.schemas import (
    Friendship,
    FriendshipStatusEnum,
    RequestDirectionEnum,
    canonical_pair_key,
)
from social_hub.services.base import FriendshipStore

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str):
    """Surfaces Firestore transport failures as StoreUnavailable."""
    try:
        yield
    except google_api_exceptions.GoogleAPICallError as e:
        logger.error(f"Firestore {operation} failed: {e}")
        raise StoreUnavailable() from e


def _to_friendship(doc) -> Friendship:
    data = doc.to_dict()
    return Friendship(
        id=doc.id,
        requester_id=data["requester_id"],
        recipient_id=data["recipient_id"],
        status=FriendshipStatusEnum(data["status"]),
        created_at=data["created_at"],
        updated_at=data.get("updated_at"),
    )


class FirestoreFriendshipStore(FriendshipStore):
    """
    Edges live in 'friendships'. Each active edge also owns a guard document in
    'friendship_pairs' whose id is the canonical pair key; the guard is read and
    written in the same transaction as the edge, so two opposite-direction
    requests racing for one pair cannot both commit.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = firestore_async.client()
        return self._db

    def get_friendships_collection(self):
        return self.db.collection('friendships')

    def get_pairs_collection(self):
        return self.db.collection('friendship_pairs')

    async def create(self, requester_id: str, recipient_id: str) -> Friendship:
        if requester_id == recipient_id:
            raise InvalidSelfRelation()

        pair_ref = self.get_pairs_collection().document(canonical_pair_key(requester_id, recipient_id))
        edge_ref = self.get_friendships_collection().document(str(uuid.uuid4()))

        @firestore.async_transactional
        async def create_in_transaction(transaction):
            pair_doc = await pair_ref.get(transaction=transaction)
            if pair_doc.exists:
                raise DuplicateRelationship()
            transaction.set(edge_ref, {
                "requester_id": requester_id,
                "recipient_id": recipient_id,
                "status": FriendshipStatusEnum.PENDING.value,
                "created_at": firestore.SERVER_TIMESTAMP,
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            transaction.set(pair_ref, {
                "friendship_id": edge_ref.id,
                "created_at": firestore.SERVER_TIMESTAMP,
            })

        with store_errors("create friendship"):
            await create_in_transaction(self.db.transaction())
            # Re-fetch the document to get server-resolved timestamps
            created_doc = await edge_ref.get()
        logger.info(f"Friend request {edge_ref.id} created: {requester_id} -> {recipient_id}")
        return _to_friendship(created_doc)

    async def get(self, friendship_id: str) -> Optional[Friendship]:
        with store_errors("get friendship"):
            doc = await self.get_friendships_collection().document(friendship_id).get()
        if doc.exists:
            return _to_friendship(doc)
        return None

    async def set_status(
        self, friendship_id: str, recipient_id: str, new_status: FriendshipStatusEnum
    ) -> Friendship:
        edge_ref = self.get_friendships_collection().document(friendship_id)
        pairs_collection = self.get_pairs_collection()

        @firestore.async_transactional
        async def answer_in_transaction(transaction):
            doc = await edge_ref.get(transaction=transaction)
            if not doc.exists:
                raise RelationshipNotFound()
            edge = _to_friendship(doc)
            if edge.recipient_id != recipient_id:
                raise NotAuthorized()
            if edge.status == new_status:
                return False
            if edge.status != FriendshipStatusEnum.PENDING or new_status == FriendshipStatusEnum.PENDING:
                raise InvalidTransition()
            transaction.update(edge_ref, {
                "status": new_status.value,
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            if new_status == FriendshipStatusEnum.REJECTED:
                # A rejected pair may be requested again
                transaction.delete(pairs_collection.document(edge.pair_key))
            return True

        with store_errors("answer friendship"):
            changed = await answer_in_transaction(self.db.transaction())
            updated_doc = await edge_ref.get()
        if changed:
            logger.info(f"Friend request {friendship_id} answered: {new_status.value}")
        return _to_friendship(updated_doc)

    async def delete(self, friendship_id: str, caller_id: str) -> None:
        edge_ref = self.get_friendships_collection().document(friendship_id)
        pairs_collection = self.get_pairs_collection()

        @firestore.async_transactional
        async def delete_in_transaction(transaction):
            doc = await edge_ref.get(transaction=transaction)
            if not doc.exists:
                raise RelationshipNotFound()
            edge = _to_friendship(doc)
            if not edge.involves(caller_id):
                raise NotAuthorized("Not part of this friendship.")
            pair_ref = pairs_collection.document(edge.pair_key)
            pair_doc = await pair_ref.get(transaction=transaction)
            transaction.delete(edge_ref)
            if pair_doc.exists and pair_doc.get("friendship_id") == friendship_id:
                transaction.delete(pair_ref)

        with store_errors("delete friendship"):
            await delete_in_transaction(self.db.transaction())
        logger.info(f"Friendship {friendship_id} removed by {caller_id}")

    async def find_between(self, user_a: str, user_b: str) -> Optional[Friendship]:
        with store_errors("find friendship"):
            pair_doc = await self.get_pairs_collection().document(canonical_pair_key(user_a, user_b)).get()
        if not pair_doc.exists:
            return None
        return await self.get(pair_doc.get("friendship_id"))

    async def _query(self, field: str, user_id: str, status: FriendshipStatusEnum) -> List[Friendship]:
        query = self.get_friendships_collection() \
            .where(filter=FieldFilter(field, '==', user_id)) \
            .where(filter=FieldFilter('status', '==', status.value)) \
            .order_by('created_at', direction=firestore.Query.ASCENDING)
        with store_errors(f"query friendships by {field}"):
            return [_to_friendship(doc) async for doc in query.stream()]

    async def list_accepted_edges(self, user_id: str) -> List[Friendship]:
        outgoing = await self._query('requester_id', user_id, FriendshipStatusEnum.ACCEPTED)
        incoming = await self._query('recipient_id', user_id, FriendshipStatusEnum.ACCEPTED)
        return outgoing + incoming

    async def list_pending(self, user_id: str, direction: RequestDirectionEnum) -> List[Friendship]:
        field = 'recipient_id' if direction == RequestDirectionEnum.INCOMING else 'requester_id'
        return await self._query(field, user_id, FriendshipStatusEnum.PENDING)
