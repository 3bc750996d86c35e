# =============================================================================
# core/services/chat_access.py - Chat Send Gate
# =============================================================================
# Decides whether the current user may post into a room right now.
#
# Rules, first applicable wins (default: allowed):
# 1. Academy owner (admin role, member role "owner") in a room assigned to a
#    staff member: allowed only if the owner is that staff member.
# 2. Parent in a room assigned to an instructor: allowed only after someone
#    other than the parent has written in the room.
#
# The gate is a pure function of its inputs and is evaluated on every call.
# Rule 2 depends on the live message list, so a cached answer goes stale as
# soon as the instructor replies.
# =============================================================================

from collections.abc import Iterable, Mapping
from typing import Any

from core.models.actor import GateRole, MemberRole
from core.models.chat import SendBlockReason, SendEligibility

RoomLike = Mapping[str, Any]


def _sender_of(message: Any) -> str | None:
    if isinstance(message, Mapping):
        return message.get("sender_id")
    return getattr(message, "sender_id", None)


def _field(room: Any, name: str) -> Any:
    if isinstance(room, Mapping):
        return room.get(name)
    return getattr(room, name, None)


def has_non_parent_message(messages: Iterable[Any], parent_id: str | None) -> bool:
    """True when at least one message was written by someone other than the parent."""
    return any(_sender_of(m) != parent_id for m in messages)


def evaluate_send_eligibility(
    user_id: str,
    user_role: GateRole | str,
    room: RoomLike | Any,
    member_role: str | None,
    staff_role_label: str | None,
    messages: Iterable[Any],
    instructor_label: str,
) -> SendEligibility:
    """
    Evaluate the send gate.

    Args:
        user_id: Current user id
        user_role: admin, parent or other
        room: Object or mapping with staff_id and parent_id
        member_role: Current user's role in the room's academy (owner, admin, None)
        staff_role_label: Grade label of the room's assigned staff member
        messages: Messages of the room, any order
        instructor_label: Grade label that marks an instructor

    Returns:
        SendEligibility with the reason when sending is blocked
    """
    role = GateRole(user_role) if not isinstance(user_role, GateRole) else user_role
    staff_id = _field(room, "staff_id")

    if role == GateRole.ADMIN and staff_id and member_role == MemberRole.OWNER.value:
        if staff_id == user_id:
            return SendEligibility(allowed=True)
        return SendEligibility(allowed=False, reason=SendBlockReason.OWNER_READ_ONLY)

    if role == GateRole.PARENT and staff_id and staff_role_label == instructor_label:
        if has_non_parent_message(messages, _field(room, "parent_id")):
            return SendEligibility(allowed=True)
        return SendEligibility(allowed=False, reason=SendBlockReason.AWAITING_INSTRUCTOR_REPLY)

    return SendEligibility(allowed=True)


def can_send(
    user_id: str,
    user_role: GateRole | str,
    room: RoomLike | Any,
    member_role: str | None,
    staff_role_label: str | None,
    messages: Iterable[Any],
    instructor_label: str,
) -> bool:
    """Boolean form of evaluate_send_eligibility()."""
    return evaluate_send_eligibility(
        user_id, user_role, room, member_role, staff_role_label, messages, instructor_label
    ).allowed


def can_accept_request(
    user_id: str,
    room: RoomLike | Any,
    staff_role_label: str | None,
    messages: Iterable[Any],
    instructor_label: str,
) -> bool:
    """
    Whether the caller may accept a pending consultation request.

    True for the room's assigned instructor while only the parent has
    written in the room.
    """
    messages = list(messages)
    return (
        bool(messages)
        and _field(room, "staff_id") == user_id
        and staff_role_label == instructor_label
        and not has_non_parent_message(messages, _field(room, "parent_id"))
    )
