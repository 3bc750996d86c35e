# =============================================================================
# app/routers/chat.py - Parent <-> Academy Chat Endpoints
# =============================================================================
# HTTP side of the chat feature. Realtime delivery lives in app/websocket.
#
# Every route resolves the caller's ActorContext once and hands it to the
# services; none of them re-read the role.
#
# Flow:
# 1. Parent opens a room (POST /rooms) for an academy, optionally pinned to
#    a staff member and optionally as a consultation request
# 2. Both sides load the room (GET /rooms/{id}) and its history
# 3. Messages are sent through POST /rooms/{id}/messages, gated per caller
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.auth import get_current_actor
from core.models.actor import ActorContext
from core.models.chat import (
    ChatMessage,
    MessageCreate,
    OwnerViewMode,
    RoomCreateRequest,
    RoomCreateResponse,
    RoomDetail,
    RoomSummary,
    StaffMember,
    UnreadStatus,
)
from core.services.message_service import MessageService
from core.services.room_service import RoomService
from core.services.unread_service import UnreadService

logger = logging.getLogger(__name__)

router = APIRouter()

RoomId = Annotated[str, Path(description="Chat room UUID")]


# =============================================================================
# Rooms
# =============================================================================

@router.get("/rooms", response_model=list[RoomSummary])
async def list_rooms(
    owner_view: OwnerViewMode = Query(
        default=OwnerViewMode.ALL,
        description="Owner filter: all, self (mine or unassigned), others",
    ),
    actor: ActorContext = Depends(get_current_actor),
) -> list[RoomSummary]:
    """
    List the caller's rooms, most recently active first.

    Parents see their own rooms. Admins see rooms of academies they own and
    rooms assigned to them; owners can narrow that with owner_view.
    """
    return RoomService.list_rooms(actor, owner_view)


@router.post("/rooms", response_model=RoomCreateResponse)
async def open_room(
    request: RoomCreateRequest,
    actor: ActorContext = Depends(get_current_actor),
) -> RoomCreateResponse:
    """
    Get or create the room between the calling parent and an academy.

    Repeating the call with the same academy and staff returns the same
    room with created=false.

    Raises:
        403: Caller is not a parent
        500: Room could not be found or created
    """
    if not actor.is_parent:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only parents can open a conversation with an academy",
        )

    room, created = RoomService.get_or_create_room(
        actor,
        academy_id=str(request.academy_id),
        staff_id=str(request.staff_id) if request.staff_id else None,
        requires_acceptance=request.requires_acceptance,
    )
    return RoomCreateResponse(room_id=room["id"], created=created)


@router.get("/rooms/{room_id}", response_model=RoomDetail)
async def get_room(
    room_id: RoomId,
    actor: ActorContext = Depends(get_current_actor),
) -> RoomDetail:
    """
    Room screen data: academy, counterpart profile, send eligibility and
    whether the caller can accept a pending request.

    Raises:
        403: Caller is not a participant
        404: Room not found
    """
    return RoomService.get_room_detail(room_id, actor)


@router.post("/rooms/{room_id}/accept", response_model=ChatMessage)
async def accept_request(
    room_id: RoomId,
    actor: ActorContext = Depends(get_current_actor),
) -> ChatMessage:
    """
    Accept a pending consultation request as the assigned instructor.

    Raises:
        409: No pending request for the caller
    """
    message = MessageService.accept_request(actor, room_id)
    return ChatMessage(**message)


# =============================================================================
# Messages
# =============================================================================

@router.get("/rooms/{room_id}/messages", response_model=list[ChatMessage])
async def get_messages(
    room_id: RoomId,
    actor: ActorContext = Depends(get_current_actor),
) -> list[ChatMessage]:
    """
    Full history of a room, oldest first. Marks incoming messages read.
    """
    RoomService.get_room(room_id, actor)
    history = MessageService.open_room(room_id, actor.user_id)
    return [ChatMessage(**message) for message in history]


@router.post("/rooms/{room_id}/messages", response_model=ChatMessage)
async def send_message(
    room_id: RoomId,
    request: MessageCreate,
    actor: ActorContext = Depends(get_current_actor),
) -> ChatMessage:
    """
    Send a message.

    Supplying a client-generated id makes retries safe: the same id is
    stored once.

    Raises:
        400: Empty or too long after trimming
        403: Not a participant, or the send gate is closed
        500: Message could not be stored
    """
    message = MessageService.send_message(
        actor,
        room_id,
        request.content,
        str(request.id) if request.id else None,
    )
    return ChatMessage(**message)


# =============================================================================
# Unread Indicator & Staff
# =============================================================================

@router.get("/unread", response_model=UnreadStatus)
async def get_unread(
    actor: ActorContext = Depends(get_current_actor),
) -> UnreadStatus:
    """Whether the caller has any unread incoming message, and how many."""
    return UnreadService.status(actor)


@router.get("/academies/{academy_id}/staff", response_model=list[StaffMember])
async def list_academy_staff(
    academy_id: Annotated[str, Path(description="Academy UUID")],
    actor: ActorContext = Depends(get_current_actor),
) -> list[StaffMember]:
    """
    Staff a parent can contact, director first, then vice director, then
    instructors.
    """
    return RoomService.list_academy_staff(academy_id)
