# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Provides realtime delivery of chat events.
#
# Usage:
#   # Publish after a successful write (any process)
#   from app.websocket import publish_message_inserted
#
#   publish_message_inserted(message)
#
#   # Deliver to this process's sockets (lifespan listener)
#   from app.websocket.manager import room_manager
#
#   await room_manager.deliver_message(room_id, message)
#
# The connection managers are not re-exported here: the services import the
# publishers from this package, and the managers import the services.
# =============================================================================

from app.websocket.broadcast import (
    publish_event,
    publish_message_inserted,
    publish_messages_read,
    CHAT_EVENTS_CHANNEL,
)

__all__ = [
    "publish_event",
    "publish_message_inserted",
    "publish_messages_read",
    "CHAT_EVENTS_CHANNEL",
]
