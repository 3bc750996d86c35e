# =============================================================================
# core/services/room_service.py - Chat Room Business Logic
# =============================================================================
# Handles room lookup/creation, participant checks and room read models.
# Separates HTTP concerns from database/business logic.
#
# Room key: (academy_id, parent_id, staff_id). staff_id = None is the generic
# conversation with the academy and is a key of its own.
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import ChatAccessDeniedError, ChatRoomNotFoundError, RoomCreateError
from app.websocket.broadcast import publish_message_inserted
from core.models.actor import ActorContext, MemberRole
from core.models.chat import (
    AcademySummary,
    OwnerViewMode,
    ParentProfile,
    RoomDetail,
    RoomSummary,
    StaffMember,
)
from core.services.chat_access import can_accept_request, evaluate_send_eligibility
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

DEFAULT_PARENT_NAME = "Parent"
DEFAULT_STAFF_NAME = "Unknown"
DEFAULT_STAFF_LABEL = "Manager"


def consultation_request_text(parent_name: str) -> str:
    """Text of the message that opens an instructor consultation request."""
    return (
        f"{parent_name} sent a chat consultation request to the teacher. "
        "Accept it to decide whether to start the chat."
    )


def _academy_of(room: dict[str, Any]) -> AcademySummary:
    academy = room.get("academies") or {}
    if isinstance(academy, list):
        academy = academy[0] if academy else {}
    return AcademySummary(
        id=academy.get("id") or room["academy_id"],
        name=academy.get("name") or "",
        profile_image=academy.get("profile_image"),
        owner_id=academy.get("owner_id"),
    )


class RoomService:
    """
    Service for chat room operations.

    Provides a clean interface between API routes and database.
    """

    # -------------------------------------------------------------------------
    # Staff
    # -------------------------------------------------------------------------

    @staticmethod
    def _grade_rank(label: str) -> int:
        order = {
            settings.DIRECTOR_GRADE_LABEL: 0,
            settings.VICE_DIRECTOR_GRADE_LABEL: 1,
            settings.INSTRUCTOR_GRADE_LABEL: 2,
        }
        return order.get(label, 3)

    @staticmethod
    def list_academy_staff(academy_id: str) -> list[StaffMember]:
        """
        List staff who take chat consultations, director first.

        Read path: a backend failure yields an empty list.
        """
        try:
            rows = SupabaseClient.fetch_academy_chat_staff(academy_id)
        except SupabaseClientError as e:
            logger.warning(f"Could not fetch chat staff for academy {academy_id}: {e}")
            return []

        staff = [
            StaffMember(
                user_id=row["user_id"],
                display_name=row.get("display_name") or DEFAULT_STAFF_NAME,
                grade_label=row.get("grade_label") or DEFAULT_STAFF_LABEL,
                bio=row.get("bio") or "",
                image_url=row.get("image_url") or None,
            )
            for row in rows
            if row.get("user_id")
        ]
        # sorted() is stable, so equal ranks keep the RPC order
        return sorted(staff, key=lambda s: RoomService._grade_rank(s.grade_label))

    @staticmethod
    def staff_profile(academy_id: str, staff_id: str | None) -> StaffMember | None:
        """Profile of the staff member a room is assigned to, if any."""
        if not staff_id:
            return None
        for member in RoomService.list_academy_staff(academy_id):
            if member.user_id == staff_id:
                return member
        return None

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    @staticmethod
    def is_participant(actor: ActorContext, room: dict[str, Any]) -> bool:
        """
        Whether the actor takes part in the room.

        Parents see their own rooms, staff see rooms assigned to them, and
        academy owners see every room of their academy.
        """
        if room.get("parent_id") == actor.user_id:
            return True
        if room.get("staff_id") and room.get("staff_id") == actor.user_id:
            return True
        academy_id = room.get("academy_id")
        return (
            actor.member_role_in(academy_id) == MemberRole.OWNER.value
            and actor.is_member_of(academy_id)
        )

    @staticmethod
    def get_room(room_id: str, actor: ActorContext) -> dict[str, Any]:
        """
        Get a room the actor takes part in.

        Raises:
            ChatRoomNotFoundError: Room doesn't exist or cannot be read
            ChatAccessDeniedError: Actor is not a participant
        """
        try:
            room = SupabaseClient.fetch_room(room_id)
        except SupabaseClientError as e:
            logger.error(f"Failed to fetch room {room_id}: {e}")
            raise ChatRoomNotFoundError(room_id)

        if not room:
            raise ChatRoomNotFoundError(room_id)
        if not RoomService.is_participant(actor, room):
            raise ChatAccessDeniedError(room_id)
        return room

    @staticmethod
    def build_detail(
        room: dict[str, Any],
        actor: ActorContext,
        messages: list[dict[str, Any]],
        staff: StaffMember | None = None,
        parent_profile: ParentProfile | None = None,
    ) -> RoomDetail:
        """
        Assemble the room read model and evaluate the send gate.

        The gate is computed from the given messages every time; callers
        pass the message list they are about to show or act on.
        """
        academy = _academy_of(room)
        member_role = actor.member_role_in(academy.id) if actor.is_admin else None
        staff_label = staff.grade_label if staff else None

        eligibility = evaluate_send_eligibility(
            user_id=actor.user_id,
            user_role=actor.gate_role,
            room=room,
            member_role=member_role,
            staff_role_label=staff_label,
            messages=messages,
            instructor_label=settings.INSTRUCTOR_GRADE_LABEL,
        )

        return RoomDetail(
            id=room["id"],
            academy_id=academy.id,
            parent_id=room["parent_id"],
            staff_id=room.get("staff_id"),
            academy=academy,
            staff_profile=staff,
            parent_profile=parent_profile,
            current_member_role=member_role,
            eligibility=eligibility,
            can_accept=can_accept_request(
                actor.user_id, room, staff_label, messages, settings.INSTRUCTOR_GRADE_LABEL
            ),
        )

    @staticmethod
    def get_room_detail(
        room_id: str,
        actor: ActorContext,
        messages: list[dict[str, Any]] | None = None,
    ) -> RoomDetail:
        """
        Room screen data for the actor.

        Args:
            room_id: The room UUID
            actor: Current actor
            messages: Message list to evaluate the gate against; fetched when
                not given

        Raises:
            ChatRoomNotFoundError, ChatAccessDeniedError
        """
        room = RoomService.get_room(room_id, actor)

        if messages is None:
            try:
                messages = SupabaseClient.fetch_messages(room_id)
            except SupabaseClientError as e:
                logger.warning(f"Could not fetch messages for room {room_id}: {e}")
                messages = []

        parent_profile = None
        if actor.is_admin:
            try:
                profile = SupabaseClient.fetch_profile(room["parent_id"])
                parent_profile = ParentProfile(**profile) if profile else None
            except SupabaseClientError as e:
                logger.warning(f"Could not fetch parent profile for room {room_id}: {e}")

        staff = RoomService.staff_profile(room["academy_id"], room.get("staff_id"))
        return RoomService.build_detail(room, actor, messages, staff, parent_profile)

    # -------------------------------------------------------------------------
    # Get or Create
    # -------------------------------------------------------------------------

    @staticmethod
    def get_or_create_room(
        actor: ActorContext,
        academy_id: str,
        staff_id: str | None = None,
        requires_acceptance: bool = False,
    ) -> tuple[dict[str, Any], bool]:
        """
        Return the room for (academy, actor as parent, staff), creating it once.

        A concurrent creation of the same key loses on the unique index; the
        loser re-reads and returns the winner's row.

        Args:
            actor: The parent opening the conversation
            academy_id: Academy to contact
            staff_id: Optional staff member the room is pinned to
            requires_acceptance: Seed a request message for the staff member

        Returns:
            Tuple of (room dict, created flag)

        Raises:
            RoomCreateError: If the room can neither be found nor created
        """
        parent_id = actor.user_id

        try:
            existing = SupabaseClient.find_room(academy_id, parent_id, staff_id)
            if existing:
                return existing, False

            try:
                room = SupabaseClient.insert_room(academy_id, parent_id, staff_id)
            except SupabaseClientError as e:
                if e.code != "ROOM_CONFLICT":
                    raise
                logger.info(f"Room for academy {academy_id} created concurrently; re-reading")
                existing = SupabaseClient.find_room(academy_id, parent_id, staff_id)
                if existing:
                    return existing, False
                raise

        except SupabaseClientError as e:
            logger.error(f"Failed to get or create room for academy {academy_id}: {e}")
            raise RoomCreateError(str(academy_id))

        logger.info(f"Created chat room {room['id']} for academy {academy_id}")

        if requires_acceptance and staff_id:
            RoomService._seed_request_message(room, parent_id)

        return room, True

    @staticmethod
    def _seed_request_message(room: dict[str, Any], parent_id: str) -> None:
        """Insert the parent's consultation request; failure leaves the room usable."""
        try:
            profile = SupabaseClient.fetch_profile(parent_id)
            parent_name = (profile or {}).get("user_name") or DEFAULT_PARENT_NAME
            message, _ = SupabaseClient.insert_message(
                room["id"], parent_id, consultation_request_text(parent_name)
            )
            publish_message_inserted(message)
        except SupabaseClientError as e:
            logger.error(f"Failed to create consultation request message in room {room['id']}: {e}")

    # -------------------------------------------------------------------------
    # Room List
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_owner_of(actor: ActorContext, academy: AcademySummary) -> bool:
        return (
            academy.owner_id == actor.user_id
            or actor.member_role_in(academy.id) == MemberRole.OWNER.value
        )

    @staticmethod
    def _visible_rooms(actor: ActorContext) -> list[dict[str, Any]]:
        if not actor.is_admin:
            return SupabaseClient.fetch_rooms(parent_id=actor.user_id)

        owned = [
            m.academy_id for m in actor.memberships
            if m.role == MemberRole.OWNER.value and actor.is_member_of(m.academy_id)
        ]
        rooms = SupabaseClient.fetch_rooms(academy_ids=owned) if owned else []
        seen = {room["id"] for room in rooms}
        for room in SupabaseClient.fetch_rooms(staff_id=actor.user_id):
            if room["id"] not in seen:
                rooms.append(room)
                seen.add(room["id"])

        rooms.sort(key=lambda r: r.get("updated_at") or "", reverse=True)
        return rooms

    @staticmethod
    def _matches_owner_view(
        actor: ActorContext,
        room: RoomSummary,
        owner_view: OwnerViewMode,
    ) -> bool:
        if owner_view == OwnerViewMode.ALL or not actor.is_admin:
            return True

        is_owner = RoomService._is_owner_of(actor, room.academy)
        if owner_view == OwnerViewMode.SELF:
            if not is_owner:
                return True
            return room.staff_id in (actor.user_id, None)

        # OwnerViewMode.OTHERS
        if not is_owner:
            return False
        return room.staff_id is not None and room.staff_id != actor.user_id

    @staticmethod
    def list_rooms(
        actor: ActorContext,
        owner_view: OwnerViewMode = OwnerViewMode.ALL,
    ) -> list[RoomSummary]:
        """
        List the actor's rooms, most recently active first.

        Each entry carries the last message, the unread count and the
        counterpart's profile. Read path: failures yield an empty list or
        default per-room values.
        """
        try:
            rooms = RoomService._visible_rooms(actor)
        except SupabaseClientError as e:
            logger.error(f"Failed to list rooms for {actor.user_id}: {e}")
            return []

        summaries: list[RoomSummary] = []
        for room in rooms:
            academy = _academy_of(room)
            last: dict[str, Any] | None = None
            unread = 0
            parent_profile = None
            staff = None

            try:
                last = SupabaseClient.fetch_last_message(room["id"])
                unread = SupabaseClient.count_unread([room["id"]], actor.user_id)

                if actor.is_admin:
                    profile = SupabaseClient.fetch_profile(room["parent_id"])
                    parent_profile = ParentProfile(**profile) if profile else None
            except SupabaseClientError as e:
                logger.warning(f"Partial data for room {room['id']}: {e}")

            if not actor.is_admin and room.get("staff_id"):
                staff = RoomService.staff_profile(academy.id, room["staff_id"])

            summaries.append(RoomSummary(
                id=room["id"],
                academy_id=academy.id,
                parent_id=room["parent_id"],
                staff_id=room.get("staff_id"),
                academy=academy,
                parent_profile=parent_profile,
                staff_profile=staff,
                last_message=last.get("content") if last else None,
                last_message_at=last.get("created_at") if last else None,
                unread_count=unread,
            ))

        return [s for s in summaries if RoomService._matches_owner_view(actor, s, owner_view)]
