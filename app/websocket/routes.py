# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# Realtime chat endpoints.
#
# Connect: ws://host/ws/rooms/{room_id}?token={jwt}
#          ws://host/ws/unread?token={jwt}
#
# Server -> client frames (room):
#   - {"type": "history", "room_id": "...", "messages": [...]}
#   - {"type": "eligibility", "allowed": true, "reason": null, "can_accept": false}
#   - {"type": "message", "message": {...}}
#   - {"type": "read", "message_ids": [...]}
#   - {"type": "sent", "message": {...}}
#   - {"type": "error", "code": "...", "detail": "...", "message_id": "...", "content": "..."}
#
# Client -> server frames (room):
#   - {"type": "send", "content": "...", "id": "<optional client uuid>"}
#   - "ping" or {"type": "ping"}
#
# Server -> client frames (unread):
#   - {"type": "unread", "has_unread": true, "count": 3}
# =============================================================================

import asyncio
import json
import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query

from app.auth.dependencies import authenticate_token, resolve_actor
from app.exceptions import (
    AcademyConnectException,
    ChatAccessDeniedError,
    ChatRoomNotFoundError,
)
from app.websocket.manager import (
    RoomSubscription,
    room_manager,
    unread_manager,
)
from core.models.actor import ActorContext
from core.services.message_service import MessageService, validate_content
from core.services.room_service import RoomService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _authenticate(websocket: WebSocket, token: str | None) -> ActorContext | None:
    """Resolve the actor for a handshake, closing the socket on failure."""
    user = authenticate_token(token)
    if user is None:
        logger.warning("WebSocket auth failed: invalid or missing token")
        await websocket.close(code=4001, reason="Invalid token")
        return None

    try:
        return resolve_actor(user)
    except AcademyConnectException as e:
        logger.error(f"WebSocket: could not resolve actor {user.id}: {e.message}")
        await websocket.close(code=4000, reason="Server error")
        return None


def _parse_frame(data: str) -> dict | None:
    if data == "ping":
        return {"type": "ping"}
    try:
        frame = json.loads(data)
    except json.JSONDecodeError:
        return None
    return frame if isinstance(frame, dict) else None


async def _handle_send(subscription: RoomSubscription, frame: dict) -> None:
    """
    Optimistically show the message, then store it.

    The realtime echo of the insert carries the same id and is dropped by
    the feed. On failure the optimistic copy is withdrawn and the content is
    handed back so the client can offer a retry.
    """
    websocket = subscription.websocket
    actor = subscription.actor
    room_id = subscription.room_id
    message_id = str(frame.get("id") or uuid4())
    content = frame.get("content")

    try:
        text = validate_content(content)
    except AcademyConnectException as e:
        await websocket.send_json({
            "type": "error", "code": e.code, "detail": e.message,
            "message_id": message_id, "content": content,
        })
        return

    optimistic = {
        "id": message_id,
        "chat_room_id": room_id,
        "sender_id": actor.user_id,
        "content": text,
        "is_read": False,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    if subscription.feed.append(optimistic):
        await websocket.send_json({"type": "message", "message": optimistic, "pending": True})

    try:
        stored = await asyncio.to_thread(
            MessageService.send_message, actor, room_id, text, message_id
        )
    except AcademyConnectException as e:
        subscription.feed.discard(message_id)
        await websocket.send_json({
            "type": "error", "code": e.code, "detail": e.message,
            "message_id": message_id, "content": text,
        })
        await websocket.send_json(subscription.eligibility_frame())
        return

    await websocket.send_json({"type": "sent", "message": stored})


@router.websocket("/ws/rooms/{room_id}")
async def room_websocket(
    websocket: WebSocket,
    room_id: str,
    token: str | None = Query(default=None, description="JWT token for authentication")
):
    """
    Live view of one chat room.

    The caller must be a participant. On connect the room history is sent
    (and marked read), followed by the caller's send eligibility.

    Close codes:
        4001 invalid token, 4003 not a participant, 4004 room not found,
        4000 server error
    """
    # 1. Authenticate and resolve the actor
    actor = await _authenticate(websocket, token)
    if actor is None:
        return

    # 2. Check participation
    try:
        room = RoomService.get_room(room_id, actor)
    except ChatRoomNotFoundError:
        await websocket.close(code=4004, reason="Room not found")
        return
    except ChatAccessDeniedError:
        logger.warning(f"WebSocket access denied: user {actor.user_id} in room {room_id}")
        await websocket.close(code=4003, reason="Access denied")
        return

    # 3. Load the view
    staff = RoomService.staff_profile(room["academy_id"], room.get("staff_id"))
    subscription = RoomSubscription(websocket, actor, room, staff)
    subscription.feed.load(MessageService.open_room(room_id, actor.user_id))

    await room_manager.connect(subscription)

    try:
        await websocket.send_json({
            "type": "history",
            "room_id": room_id,
            "messages": subscription.feed.messages,
        })
        await websocket.send_json(subscription.eligibility_frame())

        while True:
            data = await websocket.receive_text()
            frame = _parse_frame(data)

            if frame is None:
                logger.debug(f"WebSocket ignored frame: {data[:100]}")
            elif frame.get("type") == "ping":
                if data == "ping":
                    await websocket.send_text("pong")
                else:
                    await websocket.send_json({"type": "pong"})
            elif frame.get("type") == "send":
                await _handle_send(subscription, frame)
            else:
                logger.debug(f"WebSocket unknown frame type: {frame.get('type')}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected from room {room_id}")
    finally:
        room_manager.disconnect(subscription)


@router.websocket("/ws/unread")
async def unread_websocket(
    websocket: WebSocket,
    token: str | None = Query(default=None, description="JWT token for authentication")
):
    """
    Global unread indicator.

    Sends the current status on connect and again after every chat event.
    """
    actor = await _authenticate(websocket, token)
    if actor is None:
        return

    await unread_manager.connect(websocket, actor)

    try:
        await unread_manager.push(websocket, actor)

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info(f"Unread WebSocket disconnected for {actor.user_id}")
    finally:
        unread_manager.disconnect(websocket)


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection statistics.

    Counts only; room ids are not exposed.
    """
    return {
        "total_connections": room_manager.get_connection_count(),
        "room_count": len(room_manager.get_active_rooms()),
        "unread_subscribers": len(unread_manager.connections),
    }
