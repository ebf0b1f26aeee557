"""In-memory UserDirectory for local development and tests."""

from typing import Dict, List

from social_hub.schemas import ProfileRead
from social_hub.services.base import UserDirectory


class InMemoryUserDirectory(UserDirectory):

    def __init__(self, profiles: List[ProfileRead] = ()):
        self._profiles: Dict[str, ProfileRead] = {}
        for profile in profiles:
            self.add_profile(profile)

    def add_profile(self, profile: ProfileRead):
        self._profiles[profile.id] = profile

    async def get_many(self, user_ids: List[str]) -> List[ProfileRead]:
        return [self._profiles[user_id].model_copy() for user_id in user_ids if user_id in self._profiles]

    async def search_by_username(self, query: str, limit: int = 10) -> List[ProfileRead]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [p for p in self._profiles.values() if needle in p.username.lower()]
        matches.sort(key=lambda p: p.username.lower())
        return [p.model_copy() for p in matches[:limit]]
