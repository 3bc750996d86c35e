# =============================================================================
# app/websocket/broadcast.py - Cross-Process Broadcasting
# =============================================================================
# Publishes chat events so every API process can fan them out to its
# WebSocket clients.
#
# Uses Redis pub/sub for cross-process communication:
# - Writers (message service) call publish_*() after a successful write
# - Each FastAPI process subscribes and delivers to its own connections
#
# Events:
#   - message_inserted: a message row was appended to a room
#   - messages_read: is_read flags changed in a room
# =============================================================================

import json
import logging
from typing import Any

from core.models.chat import ChatEventType

logger = logging.getLogger(__name__)

# Redis channel for chat events
CHAT_EVENTS_CHANNEL = "academy_connect:chat:events"


def get_redis_client():
    """Get a Redis client for pub/sub operations."""
    import redis
    from app.config import settings
    return redis.from_url(settings.REDIS_URL)


def publish_event(room_id: str, event_type: str, data: dict[str, Any]) -> bool:
    """
    Publish an event that will be delivered to WebSocket clients.

    Publishing is best effort: a failure is logged and reported through the
    return value, never raised, because the write it follows already
    succeeded.

    Args:
        room_id: The room the event belongs to
        event_type: Event type (message_inserted, messages_read)
        data: Event data to include

    Returns:
        bool: True if published successfully
    """
    try:
        client = get_redis_client()

        message = json.dumps({
            "room_id": room_id,
            "type": event_type,
            **data
        }, default=str)

        client.publish(CHAT_EVENTS_CHANNEL, message)

        logger.debug(f"Published {event_type} event for room {room_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish event: {e}")
        return False


def publish_message_inserted(message: dict[str, Any]) -> bool:
    """
    Publish a message_inserted event.

    Called after a message row is stored.
    """
    return publish_event(
        room_id=message["chat_room_id"],
        event_type=ChatEventType.MESSAGE_INSERTED.value,
        data={"message": message},
    )


def publish_messages_read(
    room_id: str,
    reader_id: str | None = None,
    message_ids: list[str] | None = None,
) -> bool:
    """
    Publish a messages_read event.

    Called after a bulk or single read update. message_ids is None for the
    bulk "everything not sent by reader_id" update.
    """
    return publish_event(
        room_id=room_id,
        event_type=ChatEventType.MESSAGES_READ.value,
        data={"reader_id": reader_id, "message_ids": message_ids},
    )
