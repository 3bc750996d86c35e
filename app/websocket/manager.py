# =============================================================================
# app/websocket/manager.py - WebSocket Connection Managers
# =============================================================================
# Tracks open chat screens and unread badges in this process and delivers
# chat events to them.
#
# Usage:
#   from app.websocket import room_manager, unread_manager
#
#   # Deliver a stored message to every open view of its room
#   needs_receipt = await room_manager.deliver_message(room_id, message)
#
#   # Recompute the unread badge for every connected user
#   await unread_manager.refresh_all()
# =============================================================================

import asyncio
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

from core.models.actor import ActorContext
from core.models.chat import StaffMember
from core.services.room_feed import RoomFeed
from core.services.room_service import RoomService
from core.services.unread_service import UnreadService

logger = logging.getLogger(__name__)


class RoomSubscription:
    """
    One viewer of one room: the socket, who is looking, and what they see.

    The room row and staff profile are captured at connect time; the
    message list keeps changing and the send gate is re-evaluated from it.
    """

    def __init__(
        self,
        websocket: WebSocket,
        actor: ActorContext,
        room: dict[str, Any],
        staff: StaffMember | None = None,
    ):
        self.websocket = websocket
        self.actor = actor
        self.room = room
        self.staff = staff
        self.feed = RoomFeed(room["id"], actor.user_id)

    @property
    def room_id(self) -> str:
        return self.room["id"]

    def eligibility_frame(self) -> dict[str, Any]:
        """Current send gate for this viewer, computed from the feed."""
        detail = RoomService.build_detail(self.room, self.actor, self.feed.messages, self.staff)
        return {
            "type": "eligibility",
            "room_id": self.room_id,
            "allowed": detail.eligibility.allowed,
            "reason": detail.eligibility.reason.value if detail.eligibility.reason else None,
            "can_accept": detail.can_accept,
        }


class RoomConnectionManager:
    """
    Manages room subscriptions organized by room ID.

    A room can have several subscriptions at once (the parent, the assigned
    staff member, the owner, extra browser tabs). Removing a subscription
    stops all further delivery to it.
    """

    def __init__(self):
        # room_id -> set of subscriptions
        self.connections: Dict[str, Set[RoomSubscription]] = {}
        self._total_connections = 0

    async def connect(self, subscription: RoomSubscription) -> None:
        """Accept the socket and start delivering room events to it."""
        await subscription.websocket.accept()

        room_id = subscription.room_id
        if room_id not in self.connections:
            self.connections[room_id] = set()

        self.connections[room_id].add(subscription)
        self._total_connections += 1

        logger.info(
            f"WebSocket connected to room {room_id}. "
            f"Total connections: {self._total_connections}"
        )

    def disconnect(self, subscription: RoomSubscription) -> None:
        """Stop delivering to a subscription. Safe to call twice."""
        room_id = subscription.room_id
        subscriptions = self.connections.get(room_id)
        if subscriptions is None or subscription not in subscriptions:
            return

        subscriptions.discard(subscription)
        self._total_connections -= 1
        if not subscriptions:
            del self.connections[room_id]

        logger.info(
            f"WebSocket disconnected from room {room_id}. "
            f"Total connections: {self._total_connections}"
        )

    async def _send(self, subscription: RoomSubscription, frame: dict[str, Any]) -> bool:
        try:
            await subscription.websocket.send_json(frame)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to WebSocket: {e}")
            self.disconnect(subscription)
            return False

    async def deliver_message(self, room_id: str, message: dict[str, Any]) -> bool:
        """
        Deliver a newly stored message to every view of its room.

        Each view appends with dedup (the sender's own view usually already
        holds it from the optimistic append), then gets a fresh eligibility
        frame because the gate depends on the message list.

        Returns:
            True if at least one viewer other than the sender received it,
            i.e. a read receipt is due
        """
        receipt_due = False

        for subscription in list(self.connections.get(room_id, ())):
            feed = subscription.feed
            if feed.append(message):
                if not await self._send(subscription, {"type": "message", "message": message}):
                    continue
                if feed.needs_receipt(message):
                    receipt_due = True
                    feed.mark_read([message["id"]])

            await self._send(subscription, subscription.eligibility_frame())

        logger.debug(f"Delivered message {message.get('id')} to room {room_id}")
        return receipt_due

    async def deliver_read(
        self,
        room_id: str,
        reader_id: str | None = None,
        message_ids: list[str] | None = None,
    ) -> int:
        """
        Apply a read update to every view of a room.

        Bulk updates (message_ids None) flag everything not sent by the
        reader.

        Returns:
            Number of views whose messages changed
        """
        updated = 0

        for subscription in list(self.connections.get(room_id, ())):
            feed = subscription.feed
            if message_ids is None:
                ids = [m["id"] for m in feed.messages if m.get("sender_id") != reader_id]
            else:
                ids = [i for i in message_ids if i in feed]

            if ids and feed.mark_read(ids):
                await self._send(subscription, {"type": "read", "message_ids": ids})
                updated += 1

        return updated

    def get_connection_count(self, room_id: str | None = None) -> int:
        if room_id:
            return len(self.connections.get(room_id, set()))
        return self._total_connections

    def get_active_rooms(self) -> list[str]:
        return list(self.connections.keys())


class UnreadConnectionManager:
    """
    Sockets showing the global unread indicator.

    Every chat event triggers a full recount for every connected user.
    """

    def __init__(self):
        # websocket -> actor
        self.connections: Dict[WebSocket, ActorContext] = {}

    async def connect(self, websocket: WebSocket, actor: ActorContext) -> None:
        await websocket.accept()
        self.connections[websocket] = actor
        logger.info(f"Unread indicator connected for {actor.user_id}")

    def disconnect(self, websocket: WebSocket) -> None:
        actor = self.connections.pop(websocket, None)
        if actor:
            logger.info(f"Unread indicator disconnected for {actor.user_id}")

    async def push(self, websocket: WebSocket, actor: ActorContext) -> bool:
        """Recount for one user and send the result."""
        status = await asyncio.to_thread(UnreadService.status, actor)
        try:
            await websocket.send_json({"type": "unread", **status.model_dump()})
            return True
        except Exception as e:
            logger.warning(f"Failed to send unread status: {e}")
            self.disconnect(websocket)
            return False

    async def refresh_all(self) -> int:
        """
        Recount and push for every connected user.

        Returns:
            Number of sockets updated
        """
        sent = 0
        for websocket, actor in list(self.connections.items()):
            if await self.push(websocket, actor):
                sent += 1
        return sent


# Global singleton instances
room_manager = RoomConnectionManager()
unread_manager = UnreadConnectionManager()
