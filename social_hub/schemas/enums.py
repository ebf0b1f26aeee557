import enum

class FriendshipStatusEnum(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

class RequestDirectionEnum(str, enum.Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"

class FriendRequestOutcomeEnum(str, enum.Enum):
    SENT = "sent"
    ALREADY_PENDING = "already_pending"
    ALREADY_FRIENDS = "already_friends"

class NotificationTypeEnum(str, enum.Enum):
    FRIEND_REQUEST = "friend_request"
    EXAM_RESULT = "exam_result"
    INFO = "info"
    # Other producers may write types not listed here

class ActionOutcomeEnum(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"

class SurfaceEnum(str, enum.Enum):
    PANEL = "panel"
    DRAWER = "drawer"

class DispatcherStateEnum(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LIVE = "live"
    SUSPENDED = "suspended"
