# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for:
# - Profiles and auth users (identity bridge)
# - Roles and academy memberships (actor context)
# - Chat rooms and messages (chat service)
#
# Every call is a single, independently failing request. Nothing here spans
# tables in one transaction; callers decide what a partial failure means.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   messages = SupabaseClient.fetch_messages(room_id)
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from lib.utils import ApplicationError, is_unique_violation

# Set up logging for this module
logger = logging.getLogger(__name__)

ROOM_COLUMNS = "id, academy_id, parent_id, staff_id, updated_at"
ROOM_WITH_ACADEMY_COLUMNS = (
    "id, academy_id, parent_id, staff_id, updated_at, "
    "academies (id, name, profile_image, owner_id)"
)
MESSAGE_COLUMNS = "id, chat_room_id, sender_id, content, is_read, created_at"


class SupabaseClientError(ApplicationError):
    """
    Error during Supabase operations.

    Provides actionable error messages: the code says what failed, the
    suggestion says where to look.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        room = SupabaseClient.find_room(academy_id, parent_id, staff_id=None)
        if room is None:
            room = SupabaseClient.insert_room(academy_id, parent_id, None)
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS), so
        every query below filters by the acting user explicitly.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    @staticmethod
    def _first(response: Any) -> dict[str, Any] | None:
        data = getattr(response, "data", None) if response is not None else None
        if not data:
            return None
        return data[0] if isinstance(data, list) else data

    # -------------------------------------------------------------------------
    # Profiles & Auth Users
    # -------------------------------------------------------------------------

    @classmethod
    def find_profile_by_phone(cls, phone: str) -> dict[str, Any] | None:
        """
        Find a profile whose phone column matches exactly.

        Args:
            phone: Phone number in the exact stored form

        Returns:
            Profile dict with "id", or None if no profile uses this number

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("profiles")
                .select("id")
                .eq("phone", phone)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to look up profile by phone: {e}",
                code="FETCH_PROFILE_FAILED",
                suggestion="Check that the profiles table is reachable with the service key",
            )

    @classmethod
    def fetch_profile(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """Fetch display fields of a profile (user_name, phone, email)."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("profiles")
                .select("user_name, phone, email")
                .eq("id", user_id_str)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch profile: {e}",
                code="FETCH_PROFILE_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def create_auth_user(
        cls,
        email: str,
        user_metadata: dict[str, Any],
    ) -> str:
        """
        Create a pre-confirmed auth user through the admin API.

        Args:
            email: Account email (synthetic for phone-only identities)
            user_metadata: Metadata stored on the auth user

        Returns:
            The new user's id

        Raises:
            SupabaseClientError: code USER_ALREADY_EXISTS when the email is
                taken, CREATE_USER_FAILED for anything else
        """
        client = cls.get_client()

        try:
            response = client.auth.admin.create_user({
                "email": email,
                "email_confirm": True,
                "user_metadata": user_metadata,
            })
        except Exception as e:
            if "already" in str(e).lower():
                raise SupabaseClientError(
                    message=f"Auth user already exists: {e}",
                    code="USER_ALREADY_EXISTS",
                    details={"email": email}
                )
            raise SupabaseClientError(
                message=f"Failed to create auth user: {e}",
                code="CREATE_USER_FAILED",
                details={"email": email}
            )

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise SupabaseClientError(
                message="Auth admin returned no user",
                code="CREATE_USER_FAILED",
                details={"email": email}
            )

        logger.info(f"Created auth user {user.id}")
        return str(user.id)

    # -------------------------------------------------------------------------
    # Roles & Memberships
    # -------------------------------------------------------------------------

    @classmethod
    def upsert_user_role(cls, user_id: str | UUID, role: str) -> None:
        """
        Set the application role of a user (one row per user, last write wins).

        Raises:
            SupabaseClientError: If the upsert fails
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            (
                client.table("user_roles")
                .upsert({"user_id": user_id_str, "role": role}, on_conflict="user_id")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upsert user role: {e}",
                code="UPSERT_ROLE_FAILED",
                details={"user_id": user_id_str, "role": role}
            )

    @classmethod
    def fetch_user_role(cls, user_id: str | UUID) -> str | None:
        """Fetch the application role of a user, or None if unset."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("user_roles")
                .select("role")
                .eq("user_id", user_id_str)
                .limit(1)
                .execute()
            )
            row = cls._first(response)
            return row.get("role") if row else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch user role: {e}",
                code="FETCH_ROLE_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_memberships(cls, user_id: str | UUID) -> list[dict[str, Any]]:
        """Fetch academy_members rows (academy_id, role, status) of a user."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("academy_members")
                .select("academy_id, role, status")
                .eq("user_id", user_id_str)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch academy memberships: {e}",
                code="FETCH_MEMBERSHIPS_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_owned_academy_ids(cls, user_id: str | UUID) -> list[str]:
        """Fetch ids of academies whose owner_id is the user."""
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("academies")
                .select("id")
                .eq("owner_id", user_id_str)
                .execute()
            )
            return [row["id"] for row in (response.data or [])]

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch owned academies: {e}",
                code="FETCH_ACADEMIES_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_academy_chat_staff(cls, academy_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch staff who take chat consultations for an academy.

        Calls the get_academy_chat_staff RPC, which joins memberships with
        staff display profiles.
        """
        client = cls.get_client()
        academy_id_str = cls._normalize_uuid(academy_id)

        try:
            response = client.rpc(
                "get_academy_chat_staff",
                {"p_academy_id": academy_id_str},
            ).execute()
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch academy chat staff: {e}",
                code="FETCH_STAFF_FAILED",
                details={"academy_id": academy_id_str}
            )

    # -------------------------------------------------------------------------
    # Chat Rooms
    # -------------------------------------------------------------------------

    @classmethod
    def find_room(
        cls,
        academy_id: str | UUID,
        parent_id: str | UUID,
        staff_id: str | UUID | None = None,
    ) -> dict[str, Any] | None:
        """
        Find the room for an (academy, parent, staff) key.

        A missing staff_id matches with "is null", so the generic room is
        never confused with a staff-specific one.
        """
        client = cls.get_client()

        try:
            query = (
                client.table("chat_rooms")
                .select(ROOM_COLUMNS)
                .eq("academy_id", cls._normalize_uuid(academy_id))
                .eq("parent_id", cls._normalize_uuid(parent_id))
            )
            if staff_id:
                query = query.eq("staff_id", cls._normalize_uuid(staff_id))
            else:
                query = query.is_("staff_id", "null")

            return cls._first(query.limit(1).execute())

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to look up chat room: {e}",
                code="FETCH_ROOM_FAILED",
                details={"academy_id": str(academy_id), "parent_id": str(parent_id)}
            )

    @classmethod
    def insert_room(
        cls,
        academy_id: str | UUID,
        parent_id: str | UUID,
        staff_id: str | UUID | None = None,
    ) -> dict[str, Any]:
        """
        Insert a new chat room.

        Raises:
            SupabaseClientError: code ROOM_CONFLICT on a unique violation,
                INSERT_ROOM_FAILED otherwise
        """
        client = cls.get_client()

        data = {
            "academy_id": cls._normalize_uuid(academy_id),
            "parent_id": cls._normalize_uuid(parent_id),
            "staff_id": cls._normalize_uuid(staff_id) if staff_id else None,
        }

        try:
            response = client.table("chat_rooms").insert(data).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise SupabaseClientError(
                    message=f"Chat room already exists: {e}",
                    code="ROOM_CONFLICT",
                    details=data
                )
            raise SupabaseClientError(
                message=f"Failed to create chat room: {e}",
                code="INSERT_ROOM_FAILED",
                details=data
            )

        row = cls._first(response)
        if row is None:
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
                details=data
            )
        return row

    @classmethod
    def fetch_room(cls, room_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a room with its academy embedded under "academies".

        Returns:
            Room dict, or None if not found
        """
        client = cls.get_client()
        room_id_str = cls._normalize_uuid(room_id)

        try:
            response = (
                client.table("chat_rooms")
                .select(ROOM_WITH_ACADEMY_COLUMNS)
                .eq("id", room_id_str)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch chat room: {e}",
                code="FETCH_ROOM_FAILED",
                details={"room_id": room_id_str}
            )

    @classmethod
    def fetch_rooms(
        cls,
        parent_id: str | UUID | None = None,
        academy_ids: list[str] | None = None,
        staff_id: str | UUID | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch rooms with academies embedded, newest activity first.

        Exactly one filter is applied: parent_id, staff_id or academy_ids.
        """
        client = cls.get_client()

        try:
            query = client.table("chat_rooms").select(ROOM_WITH_ACADEMY_COLUMNS)
            if parent_id:
                query = query.eq("parent_id", cls._normalize_uuid(parent_id))
            elif staff_id:
                query = query.eq("staff_id", cls._normalize_uuid(staff_id))
            elif academy_ids:
                query = query.in_("academy_id", academy_ids)
            else:
                return []

            response = query.order("updated_at", desc=True).execute()
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch chat rooms: {e}",
                code="FETCH_ROOMS_FAILED",
            )

    @classmethod
    def fetch_room_ids(
        cls,
        parent_id: str | UUID | None = None,
        academy_ids: list[str] | None = None,
    ) -> list[str]:
        """Fetch only room ids for a parent or for a set of academies."""
        client = cls.get_client()

        try:
            query = client.table("chat_rooms").select("id")
            if parent_id:
                query = query.eq("parent_id", cls._normalize_uuid(parent_id))
            elif academy_ids:
                query = query.in_("academy_id", academy_ids)
            else:
                return []

            response = query.execute()
            return [row["id"] for row in (response.data or [])]

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch chat room ids: {e}",
                code="FETCH_ROOMS_FAILED",
            )

    @classmethod
    def touch_room(cls, room_id: str | UUID) -> None:
        """Set chat_rooms.updated_at to now so room lists reorder."""
        client = cls.get_client()
        room_id_str = cls._normalize_uuid(room_id)

        try:
            (
                client.table("chat_rooms")
                .update({"updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", room_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update room timestamp: {e}",
                code="TOUCH_ROOM_FAILED",
                details={"room_id": room_id_str}
            )

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_messages(cls, room_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch the full message history of a room, oldest first.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        room_id_str = cls._normalize_uuid(room_id)

        try:
            response = (
                client.table("messages")
                .select(MESSAGE_COLUMNS)
                .eq("chat_room_id", room_id_str)
                .order("created_at", desc=False)
                .execute()
            )
            messages = response.data or []
            logger.debug(f"Fetched {len(messages)} messages for room {room_id_str}")
            return messages

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch messages: {e}",
                code="FETCH_MESSAGES_FAILED",
                suggestion="Check that the room exists and the messages table is accessible",
                details={"room_id": room_id_str}
            )

    @classmethod
    def fetch_message(cls, message_id: str | UUID) -> dict[str, Any] | None:
        """Fetch one message by id."""
        client = cls.get_client()
        message_id_str = cls._normalize_uuid(message_id)

        try:
            response = (
                client.table("messages")
                .select(MESSAGE_COLUMNS)
                .eq("id", message_id_str)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch message: {e}",
                code="FETCH_MESSAGE_FAILED",
                details={"message_id": message_id_str}
            )

    @classmethod
    def fetch_last_message(cls, room_id: str | UUID) -> dict[str, Any] | None:
        """Fetch the newest message of a room (content, created_at)."""
        client = cls.get_client()
        room_id_str = cls._normalize_uuid(room_id)

        try:
            response = (
                client.table("messages")
                .select("content, created_at")
                .eq("chat_room_id", room_id_str)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
            return cls._first(response)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch last message: {e}",
                code="FETCH_MESSAGES_FAILED",
                details={"room_id": room_id_str}
            )

    @classmethod
    def count_unread(cls, room_ids: list[str], reader_id: str | UUID) -> int:
        """
        Count unread messages in the given rooms not sent by the reader.

        Uses an exact head count so no rows are transferred.
        """
        if not room_ids:
            return 0

        client = cls.get_client()

        try:
            response = (
                client.table("messages")
                .select("id", count="exact", head=True)
                .in_("chat_room_id", room_ids)
                .neq("sender_id", cls._normalize_uuid(reader_id))
                .eq("is_read", False)
                .execute()
            )
            return response.count or 0

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count unread messages: {e}",
                code="COUNT_UNREAD_FAILED",
                details={"room_count": len(room_ids)}
            )

    @classmethod
    def insert_message(
        cls,
        room_id: str | UUID,
        sender_id: str | UUID,
        content: str,
        message_id: str | UUID | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        Insert a message.

        With a message_id the insert is an upsert that ignores duplicates, so
        retrying the same append returns the stored row instead of adding a
        second one. The stored row must belong to the same room and sender.

        Returns:
            Tuple of (stored message row, created)

        Raises:
            SupabaseClientError: If insert fails, or the id is taken by a
                message of another room or sender (MESSAGE_ID_CONFLICT)
        """
        client = cls.get_client()

        data = {
            "chat_room_id": cls._normalize_uuid(room_id),
            "sender_id": cls._normalize_uuid(sender_id),
            "content": content,
        }

        try:
            if message_id:
                data["id"] = cls._normalize_uuid(message_id)
                response = (
                    client.table("messages")
                    .upsert(data, on_conflict="id", ignore_duplicates=True)
                    .execute()
                )
            else:
                response = client.table("messages").insert(data).execute()

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert message: {e}",
                code="INSERT_MESSAGE_FAILED",
                details={"room_id": data["chat_room_id"]}
            )

        row = cls._first(response)
        if row is not None:
            return row, True

        if message_id:
            # Duplicate ignored: the row from the earlier attempt is the result
            row = cls.fetch_message(message_id)
        if row is None:
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
                details={"room_id": data["chat_room_id"]}
            )
        if (
            row.get("chat_room_id") != data["chat_room_id"]
            or row.get("sender_id") != data["sender_id"]
        ):
            raise SupabaseClientError(
                message=f"Message id {data['id']} is already used by another message",
                code="MESSAGE_ID_CONFLICT",
                suggestion="Generate a new message id",
                details={"room_id": data["chat_room_id"]}
            )
        return row, False

    @classmethod
    def mark_room_read(cls, room_id: str | UUID, reader_id: str | UUID) -> None:
        """Mark every message in a room not sent by the reader as read."""
        client = cls.get_client()
        room_id_str = cls._normalize_uuid(room_id)

        try:
            (
                client.table("messages")
                .update({"is_read": True})
                .eq("chat_room_id", room_id_str)
                .neq("sender_id", cls._normalize_uuid(reader_id))
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to mark room read: {e}",
                code="MARK_READ_FAILED",
                details={"room_id": room_id_str}
            )

    @classmethod
    def mark_message_read(cls, message_id: str | UUID) -> None:
        """Mark a single message as read."""
        client = cls.get_client()
        message_id_str = cls._normalize_uuid(message_id)

        try:
            (
                client.table("messages")
                .update({"is_read": True})
                .eq("id", message_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to mark message read: {e}",
                code="MARK_READ_FAILED",
                details={"message_id": message_id_str}
            )
