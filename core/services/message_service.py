# =============================================================================
# core/services/message_service.py - Message Business Logic
# =============================================================================
# History, read receipts and the append path.
#
# Appending is one logical operation made of independent steps:
#   1. insert the message (idempotent when the client supplies an id)
#   2. touch chat_rooms.updated_at
#   3. publish the realtime event
# Only step 1 decides success. A failed step 2 or 3 leaves the room list
# ordering slightly stale and is logged. A retry with the same message id
# returns the stored row and skips steps 2 and 3; an id already used in
# another room or by another sender is rejected.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import (
    AcceptNotAllowedError,
    InvalidMessageError,
    MessageIdConflictError,
    MessageSendError,
    SendNotAllowedError,
)
from app.websocket.broadcast import publish_message_inserted, publish_messages_read
from core.models.actor import ActorContext
from core.services.room_service import RoomService
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

ACCEPTANCE_TEXT = "Consultation request accepted. You can start chatting now."


def validate_content(content: Any, max_length: int | None = None) -> str:
    """
    Trim and validate message content.

    Raises:
        InvalidMessageError: Empty after trimming or longer than max_length
    """
    limit = max_length or settings.MESSAGE_MAX_LENGTH
    if not isinstance(content, str):
        raise InvalidMessageError("Message content must be text", limit)

    text = content.strip()
    if not text:
        raise InvalidMessageError("Please enter a message", limit)
    if len(text) > limit:
        raise InvalidMessageError(f"Messages must be {limit} characters or fewer", limit)
    return text


class MessageService:
    """
    Service for message reads and writes.

    Example:
        history = MessageService.open_room(room_id, reader_id)
        message = MessageService.send_message(actor, room_id, "Hello")
    """

    # -------------------------------------------------------------------------
    # Read Path
    # -------------------------------------------------------------------------

    @staticmethod
    def fetch_history(room_id: str) -> list[dict[str, Any]]:
        """
        Full history of a room, oldest first.

        Read path: a backend failure yields an empty history.
        """
        try:
            return SupabaseClient.fetch_messages(room_id)
        except SupabaseClientError as e:
            logger.error(f"Failed to fetch history for room {room_id}: {e}")
            return []

    @staticmethod
    def mark_room_read(room_id: str, reader_id: str) -> bool:
        """
        Mark every message in the room not sent by the reader as read.

        Returns:
            True if the bulk update succeeded
        """
        try:
            SupabaseClient.mark_room_read(room_id, reader_id)
        except SupabaseClientError as e:
            logger.warning(f"Failed to mark room {room_id} read: {e}")
            return False

        publish_messages_read(room_id, reader_id=reader_id)
        return True

    @staticmethod
    def mark_message_read(room_id: str, message_id: str) -> bool:
        """Read receipt for a single message."""
        try:
            SupabaseClient.mark_message_read(message_id)
        except SupabaseClientError as e:
            logger.warning(f"Failed to mark message {message_id} read: {e}")
            return False

        publish_messages_read(room_id, message_ids=[message_id])
        return True

    @staticmethod
    def open_room(room_id: str, reader_id: str) -> list[dict[str, Any]]:
        """
        Load a room for viewing: fetch history, then mark it read.

        The returned history still shows the read state from before the
        bulk update, with incoming messages flagged read locally when the
        update succeeded.
        """
        history = MessageService.fetch_history(room_id)
        if MessageService.mark_room_read(room_id, reader_id):
            for message in history:
                if message.get("sender_id") != reader_id:
                    message["is_read"] = True
        return history

    # -------------------------------------------------------------------------
    # Write Path
    # -------------------------------------------------------------------------

    @staticmethod
    def append_message(
        room_id: str,
        sender_id: str,
        content: Any,
        message_id: str | UUID | None = None,
    ) -> dict[str, Any]:
        """
        Append a message to a room.

        Args:
            room_id: The room UUID
            sender_id: Author id
            content: Raw content, trimmed before storing
            message_id: Optional client id making the append idempotent

        Returns:
            The stored message row

        Raises:
            InvalidMessageError: Content failed validation
            MessageIdConflictError: message_id belongs to another room or sender
            MessageSendError: The insert failed
        """
        text = validate_content(content)

        try:
            message, created = SupabaseClient.insert_message(
                room_id, sender_id, text, message_id
            )
        except SupabaseClientError as e:
            if e.code == "MESSAGE_ID_CONFLICT":
                logger.warning(f"Rejected reused message id {message_id} in room {room_id}")
                raise MessageIdConflictError(room_id, str(message_id))
            logger.error(f"Failed to insert message into room {room_id}: {e}")
            raise MessageSendError(room_id)

        if not created:
            logger.info(f"Message {message['id']} already stored in room {room_id}")
            return message

        try:
            SupabaseClient.touch_room(room_id)
        except SupabaseClientError as e:
            logger.warning(f"Message {message['id']} stored but room timestamp not updated: {e}")

        publish_message_inserted(message)
        logger.info(f"Appended message {message['id']} to room {room_id}")
        return message

    @staticmethod
    def send_message(
        actor: ActorContext,
        room_id: str,
        content: Any,
        message_id: str | UUID | None = None,
    ) -> dict[str, Any]:
        """
        Send a message as the actor, enforcing the send gate.

        The gate is evaluated against the room's current history at send
        time.

        Raises:
            ChatRoomNotFoundError, ChatAccessDeniedError
            SendNotAllowedError: Gate is closed for the actor
            InvalidMessageError, MessageSendError
        """
        text = validate_content(content)
        detail = RoomService.get_room_detail(room_id, actor)

        if not detail.eligibility.allowed:
            reason = detail.eligibility.reason.value if detail.eligibility.reason else None
            logger.info(f"Send blocked for {actor.user_id} in room {room_id}: {reason}")
            raise SendNotAllowedError(room_id, reason)

        return MessageService.append_message(room_id, actor.user_id, text, message_id)

    @staticmethod
    def accept_request(actor: ActorContext, room_id: str) -> dict[str, Any]:
        """
        Accept a pending consultation request as the assigned instructor.

        Sends the fixed acceptance message, which opens the gate for the
        parent.

        Raises:
            AcceptNotAllowedError: No pending request for the actor
        """
        detail = RoomService.get_room_detail(room_id, actor)
        if not detail.can_accept:
            raise AcceptNotAllowedError(room_id)

        return MessageService.append_message(room_id, actor.user_id, ACCEPTANCE_TEXT)
