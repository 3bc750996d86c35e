# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - identity.py: Phone identity bridge schemas
# - actor.py: Current actor (user, role, academy memberships)
# - chat.py: Rooms, messages, send gate results
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Identity Models - Phone identity bridge
# -----------------------------------------------------------------------------
from .identity import (
    AuthRole,
    BridgeRequest,
    BridgeResponse,
    BridgeResult,
    ExternalIdentity,
)

# -----------------------------------------------------------------------------
# Actor Models - Who is calling
# -----------------------------------------------------------------------------
from .actor import (
    AcademyMembership,
    ActorContext,
    GateRole,
    MemberRole,
    MembershipStatus,
)

# -----------------------------------------------------------------------------
# Chat Models - Conversations
# -----------------------------------------------------------------------------
from .chat import (
    AcademySummary,
    ChatEventType,
    ChatMessage,
    ChatRoom,
    MessageCreate,
    OwnerViewMode,
    ParentProfile,
    RoomCreateRequest,
    RoomCreateResponse,
    RoomDetail,
    RoomSummary,
    SendBlockReason,
    SendEligibility,
    StaffMember,
    UnreadStatus,
)

__all__ = [
    # Identity
    "AuthRole",
    "BridgeRequest",
    "BridgeResponse",
    "BridgeResult",
    "ExternalIdentity",
    # Actor
    "AcademyMembership",
    "ActorContext",
    "GateRole",
    "MemberRole",
    "MembershipStatus",
    # Chat
    "AcademySummary",
    "ChatEventType",
    "ChatMessage",
    "ChatRoom",
    "MessageCreate",
    "OwnerViewMode",
    "ParentProfile",
    "RoomCreateRequest",
    "RoomCreateResponse",
    "RoomDetail",
    "RoomSummary",
    "SendBlockReason",
    "SendEligibility",
    "StaffMember",
    "UnreadStatus",
]
