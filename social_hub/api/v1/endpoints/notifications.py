import asyncio
import json
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from social_hub import schemas
from social_hub.api.v1.deps import get_current_user_id, get_notification_store, get_relationship_service
from social_hub.core import security
from social_hub.core.config import settings
from social_hub.core.exceptions import NotAuthorized, NotificationNotFound, SocialHubError
from social_hub.schemas.enums import SurfaceEnum
from social_hub.services.base import NotificationStore
from social_hub.services.notification_dispatcher import (
    NotificationDispatcher,
    SurfaceOptions,
    act_on_notification,
)
from social_hub.services.relationship_service import RelationshipService

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_owned_notification(
    notification_id: str, current_user_id: str, notification_store: NotificationStore
) -> schemas.NotificationRead:
    notification = await notification_store.get(notification_id)
    if notification is None:
        raise NotificationNotFound()
    if notification.recipient_id != current_user_id:
        raise NotAuthorized("Not authorized to access this notification.")
    return notification


@router.get("/", response_model=List[schemas.NotificationRead])
async def list_notifications(
    since: Optional[datetime] = None,
    limit: int = Query(settings.NOTIFICATION_PANEL_LIMIT, ge=1, le=100),
    current_user_id: str = Depends(get_current_user_id),
    notification_store: NotificationStore = Depends(get_notification_store),
):
    """
    Recent notifications for the current user, newest first.
    """
    return await notification_store.list_recent(current_user_id, since=since, limit=limit)


@router.get("/unread-count", response_model=schemas.UnreadCount)
async def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    notification_store: NotificationStore = Depends(get_notification_store),
):
    return schemas.UnreadCount(unread_count=await notification_store.unread_count(current_user_id))


@router.put("/read-all", response_model=schemas.MarkAllReadResult)
async def mark_all_notifications_read(
    current_user_id: str = Depends(get_current_user_id),
    notification_store: NotificationStore = Depends(get_notification_store),
):
    marked_count = await notification_store.mark_all_read(current_user_id)
    return schemas.MarkAllReadResult(
        marked_count=marked_count,
        unread_count=await notification_store.unread_count(current_user_id),
    )


@router.put("/{notification_id}/read", response_model=schemas.NotificationRead)
async def mark_notification_read(
    notification_id: str,
    current_user_id: str = Depends(get_current_user_id),
    notification_store: NotificationStore = Depends(get_notification_store),
):
    """
    Mark a specific notification as read. Marking it again is a no-op.
    """
    await _get_owned_notification(notification_id, current_user_id, notification_store)
    return await notification_store.mark_read(notification_id)


@router.post("/{notification_id}/act", response_model=schemas.ActionResult)
async def act_on_friend_request_notification(
    notification_id: str,
    action: schemas.NotificationAction,
    current_user_id: str = Depends(get_current_user_id),
    notification_store: NotificationStore = Depends(get_notification_store),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    """
    Accept or decline the friend request a notification carries.
    """
    notification = await _get_owned_notification(notification_id, current_user_id, notification_store)
    return await act_on_notification(
        notification, current_user_id, action.accept, notification_store, relationship_service
    )


def _state_payload(dispatcher: NotificationDispatcher) -> dict:
    return {
        "surface": dispatcher.options.surface.value,
        "notifications": [n.model_dump(mode="json") for n in dispatcher.notifications],
        "unread_count": dispatcher.unread_count,
        "pending_action_ids": [n.id for n in dispatcher.pending_actions()],
    }


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    token: str = Query(...),
    surface: SurfaceEnum = Query(SurfaceEnum.PANEL),
):
    """
    One notification surface. Sends a snapshot on connect, then every new row
    as it arrives; accepts mark_read, mark_all_read and act commands.
    """
    user_id = security.user_id_from_token(token)
    if user_id is None:
        logger.warning("WebSocket (notification): invalid or missing token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid authentication credentials")
        return

    services = websocket.app.state.services
    await websocket.accept()

    async def send(message_type: str, payload: dict):
        await websocket.send_text(schemas.WebSocketMessage(type=message_type, payload=payload).model_dump_json())

    async def alert(notification: schemas.NotificationRead):
        await send("new_notification", {
            "notification": notification.model_dump(mode="json"),
            "unread_count": dispatcher.unread_count,
        })

    dispatcher = NotificationDispatcher(
        user_id,
        services.notification_store,
        services.relationship_service,
        services.hub,
        options=SurfaceOptions.for_surface(surface),
        on_alert=alert,
    )

    async with dispatcher:
        await send("snapshot", _state_payload(dispatcher))
        pump = asyncio.create_task(dispatcher.run())
        try:
            while True:
                await _handle_command(dispatcher, await websocket.receive_text(), send)
        except WebSocketDisconnect:
            logger.info(f"WebSocket (notification) disconnected for user: {user_id}")
        finally:
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)


async def _handle_command(dispatcher: NotificationDispatcher, raw: str, send):
    try:
        command = json.loads(raw)
        command_type = command.get("type")
        payload = command.get("payload") or {}
    except (ValueError, AttributeError):
        await send("error", {"detail": "Malformed command."})
        return

    try:
        if command_type == "mark_read":
            await dispatcher.mark_read(payload["notification_id"])
            await send("state", _state_payload(dispatcher))
        elif command_type == "mark_all_read":
            await dispatcher.mark_all_read()
            await send("state", _state_payload(dispatcher))
        elif command_type == "act":
            result = await dispatcher.act(payload["notification_id"], bool(payload.get("accept")))
            await send("action_result", {"result": result.model_dump(mode="json"), **_state_payload(dispatcher)})
        else:
            await send("error", {"detail": f"Unknown command: {command_type}"})
    except KeyError:
        await send("error", {"detail": "Missing notification_id."})
    except SocialHubError as e:
        await send("error", {"detail": e.detail})
