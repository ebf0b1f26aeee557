from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from .enums import FriendshipStatusEnum, FriendRequestOutcomeEnum
from .user import ProfileRead

def canonical_pair_key(user_a: str, user_b: str) -> str:
    """
    Order-independent key for a pair of users.
    canonical_pair_key(a, b) == canonical_pair_key(b, a)
    """
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"

# --- Friendship edge ---

class Friendship(BaseModel):
    id: str
    requester_id: str
    recipient_id: str
    status: FriendshipStatusEnum
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.requester_id, self.recipient_id)

    @property
    def is_active(self) -> bool:
        return self.status in (FriendshipStatusEnum.PENDING, FriendshipStatusEnum.ACCEPTED)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.recipient_id)

    def counterpart_of(self, user_id: str) -> str:
        return self.recipient_id if self.requester_id == user_id else self.requester_id

# --- API shapes ---

class FriendRequestCreate(BaseModel):
    recipient_id: str

class FriendRequestResult(BaseModel):
    outcome: FriendRequestOutcomeEnum
    message: str
    friendship: Optional[Friendship] = None

class FriendRead(BaseModel):
    friendship_id: str
    since: Optional[datetime] = None
    profile: ProfileRead

class FriendRequestRead(BaseModel):
    friendship_id: str
    requester_id: str
    recipient_id: str
    created_at: datetime
    counterpart: ProfileRead
