from typing import List

from firebase_admin import firestore_async

from social_hub.schemas import ProfileRead
from social_hub.services.base import UserDirectory
from social_hub.services.firestore_services.friendship_store import store_errors

PROFILE_FIELDS = ["username", "display_name", "level", "avatar_url"]


def _to_profile(doc) -> ProfileRead:
    data = doc.to_dict() or {}
    return ProfileRead(
        id=doc.id,
        username=data.get("username") or "",
        display_name=data.get("display_name"),
        level=data.get("level") or 1,
        avatar_url=data.get("avatar_url"),
    )


class FirestoreUserDirectory(UserDirectory):
    """Reads the 'profiles' collection maintained by the learning platform."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = firestore_async.client()
        return self._db

    def get_profiles_collection(self):
        return self.db.collection('profiles')

    async def get_many(self, user_ids: List[str]) -> List[ProfileRead]:
        """
        Retrieves multiple profiles in a single batch, in the order asked for.
        Unknown ids are skipped.
        """
        if not user_ids:
            return []
        refs = [self.get_profiles_collection().document(user_id) for user_id in user_ids]
        with store_errors("get profiles"):
            found = {doc.id: _to_profile(doc) async for doc in self.db.get_all(refs) if doc.exists}
        return [found[user_id] for user_id in user_ids if user_id in found]

    async def search_by_username(self, query: str, limit: int = 10) -> List[ProfileRead]:
        # Firestore has no substring operator, so matching happens while streaming.
        needle = query.strip().lower()
        if not needle:
            return []
        results = []
        profiles_query = self.get_profiles_collection().select(PROFILE_FIELDS).order_by('username')
        with store_errors("search profiles"):
            async for doc in profiles_query.stream():
                username = (doc.to_dict() or {}).get("username") or ""
                if needle in username.lower():
                    results.append(_to_profile(doc))
                    if len(results) >= limit:
                        break
        return results
