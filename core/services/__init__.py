# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .actor_service import ActorService
from .identity_service import IdentityService
from .room_service import RoomService
from .message_service import MessageService
from .unread_service import UnreadService
from .room_feed import RoomFeed

__all__ = [
    "ActorService",
    "IdentityService",
    "RoomService",
    "MessageService",
    "UnreadService",
    "RoomFeed",
]
