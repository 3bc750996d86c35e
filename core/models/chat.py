# =============================================================================
# core/models/chat.py - Chat Room & Message Schemas
# =============================================================================
# These models define the API contract for parent <-> academy conversations:
# - ChatRoom: one conversation (academy, parent, optional assigned staff)
# - ChatMessage: append-only message; only is_read changes after insert
# - SendEligibility: result of the send gate
# - RoomDetail / RoomSummary: read models for the room screen and room list
#
# Flow:
# 1. Parent POSTs RoomCreateRequest -> gets the existing or new room id
# 2. Client opens the room -> history + eligibility
# 3. Client sends MessageCreate -> message is appended and fanned out
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class OwnerViewMode(str, Enum):
    """
    Room list filter for academy owners.

    - all: every room visible to the caller
    - self: rooms assigned to the owner or not assigned to anyone
    - others: rooms assigned to other staff members
    """
    ALL = "all"
    SELF = "self"
    OTHERS = "others"


class SendBlockReason(str, Enum):
    """
    Why the send gate is closed.

    - owner_read_only: the academy owner is viewing a room assigned to
      another staff member
    - awaiting_instructor_reply: the assigned instructor has not replied yet
    """
    OWNER_READ_ONLY = "owner_read_only"
    AWAITING_INSTRUCTOR_REPLY = "awaiting_instructor_reply"


class ChatEventType(str, Enum):
    """Realtime events published after writes to the messages table."""
    MESSAGE_INSERTED = "message_inserted"
    MESSAGES_READ = "messages_read"


class ChatMessage(BaseModel):
    """
    A single message row.

    Example:
        {
            "id": "5b0c...",
            "chat_room_id": "9f1e...",
            "sender_id": "a11c...",
            "content": "Is there a trial class this week?",
            "is_read": false,
            "created_at": "2025-03-02T09:15:00+00:00"
        }
    """
    id: str
    chat_room_id: str
    sender_id: str
    content: str
    is_read: bool = False
    created_at: datetime | None = None


class ChatRoom(BaseModel):
    """
    A conversation between one parent and one academy.

    staff_id is None for the generic (unassigned) conversation, which is its
    own key next to the staff-specific rooms.
    """
    id: str
    academy_id: str
    parent_id: str
    staff_id: str | None = None
    updated_at: datetime | None = None


class AcademySummary(BaseModel):
    """Academy fields shown next to a room."""
    id: str
    name: str = ""
    profile_image: str | None = None
    owner_id: str | None = None


class StaffMember(BaseModel):
    """A staff member who can take chat consultations."""
    user_id: str
    display_name: str
    grade_label: str
    bio: str = ""
    image_url: str | None = None


class ParentProfile(BaseModel):
    """Parent contact details, visible to academy staff only."""
    user_name: str | None = None
    phone: str | None = None
    email: str | None = None


class SendEligibility(BaseModel):
    """Outcome of the send gate."""
    allowed: bool
    reason: SendBlockReason | None = None


class RoomDetail(BaseModel):
    """Room screen read model."""
    id: str
    academy_id: str
    parent_id: str
    staff_id: str | None = None
    academy: AcademySummary
    staff_profile: StaffMember | None = None
    parent_profile: ParentProfile | None = None
    current_member_role: str | None = None
    eligibility: SendEligibility = Field(default_factory=lambda: SendEligibility(allowed=True))
    can_accept: bool = False


class RoomSummary(BaseModel):
    """Room list entry."""
    id: str
    academy_id: str
    parent_id: str
    staff_id: str | None = None
    academy: AcademySummary
    parent_profile: ParentProfile | None = None
    staff_profile: StaffMember | None = None
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


class RoomCreateRequest(BaseModel):
    """
    Schema for opening a conversation with an academy.

    Example:
        {
            "academy_id": "c0a8...",
            "staff_id": "7d2e...",
            "requires_acceptance": true
        }
    """
    academy_id: UUID = Field(..., description="Academy to contact")
    staff_id: UUID | None = Field(
        default=None,
        description="Specific staff member; omit for the generic conversation"
    )
    requires_acceptance: bool = Field(
        default=False,
        description="Seed a request message the staff member must accept"
    )


class RoomCreateResponse(BaseModel):
    """Room id returned by get-or-create."""
    room_id: str
    created: bool


class MessageCreate(BaseModel):
    """
    Schema for sending a message.

    The optional id makes the append idempotent: retrying with the same id
    does not create a second row.
    """
    content: str = Field(..., description="Message text, trimmed before storing")
    id: UUID | None = Field(default=None, description="Client-generated message id")


class UnreadStatus(BaseModel):
    """Global unread indicator."""
    has_unread: bool
    count: int = 0
