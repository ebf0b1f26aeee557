from .enums import (
    FriendshipStatusEnum,
    RequestDirectionEnum,
    FriendRequestOutcomeEnum,
    NotificationTypeEnum,
    ActionOutcomeEnum,
    SurfaceEnum,
    DispatcherStateEnum,
)
from .user import ProfileRead
from .friendship import (
    canonical_pair_key,
    Friendship,
    FriendRequestCreate,
    FriendRequestResult,
    FriendRead,
    FriendRequestRead,
)
from .notification import (
    NotificationBase,
    NotificationCreate,
    NotificationRead,
    NotificationAction,
    ActionResult,
    UnreadCount,
    MarkAllReadResult,
)
from .websocket import WebSocketMessage
