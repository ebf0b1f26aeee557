from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from .enums import ActionOutcomeEnum, NotificationTypeEnum

class NotificationBase(BaseModel):
    recipient_id: str
    # Open set of types; NotificationTypeEnum lists the ones this service acts on
    notification_type: str
    title: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict) # e.g. {"friendship_id": ...} for friend requests

class NotificationCreate(NotificationBase):
    pass

class NotificationRead(NotificationBase):
    id: str
    read: bool = False
    created_at: datetime

    @property
    def friendship_id(self) -> Optional[str]:
        if self.notification_type != NotificationTypeEnum.FRIEND_REQUEST:
            return None
        return self.payload.get("friendship_id")

    @property
    def is_actionable(self) -> bool:
        return not self.read and self.friendship_id is not None

class NotificationAction(BaseModel):
    accept: bool

class ActionResult(BaseModel):
    notification_id: str
    outcome: ActionOutcomeEnum
    accepted: bool

class UnreadCount(BaseModel):
    unread_count: int

class MarkAllReadResult(BaseModel):
    marked_count: int
    unread_count: int
