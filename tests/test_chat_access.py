# =============================================================================
# tests/test_chat_access.py - Chat Send Gate Tests
# =============================================================================

import pytest

from core.models.actor import GateRole
from core.models.chat import ChatRoom, SendBlockReason
from core.services.chat_access import (
    can_accept_request,
    can_send,
    evaluate_send_eligibility,
    has_non_parent_message,
)

INSTRUCTOR = "강사"
OWNER, STAFF, PARENT = "owner-1", "staff-1", "parent-1"

ASSIGNED_ROOM = {"id": "room-1", "parent_id": PARENT, "staff_id": STAFF}
GENERIC_ROOM = {"id": "room-2", "parent_id": PARENT, "staff_id": None}


def msg(sender):
    return {"id": f"m-{sender}", "sender_id": sender}


class TestOwnerRule:
    """Rule 1: owners are read-only in rooms assigned to someone else."""

    def test_owner_blocked_in_room_assigned_to_other_staff(self):
        result = evaluate_send_eligibility(
            OWNER, GateRole.ADMIN, ASSIGNED_ROOM, "owner", INSTRUCTOR, [], INSTRUCTOR
        )

        assert result.allowed is False
        assert result.reason == SendBlockReason.OWNER_READ_ONLY

    def test_owner_allowed_in_room_assigned_to_self(self):
        room = {**ASSIGNED_ROOM, "staff_id": OWNER}

        assert can_send(OWNER, "admin", room, "owner", "원장", [], INSTRUCTOR)

    def test_owner_allowed_in_generic_room(self):
        assert can_send(OWNER, "admin", GENERIC_ROOM, "owner", None, [], INSTRUCTOR)

    def test_non_owner_admin_not_restricted(self):
        assert can_send(OWNER, "admin", ASSIGNED_ROOM, "admin", INSTRUCTOR, [], INSTRUCTOR)


class TestParentRule:
    """Rule 2: parents wait for the instructor's first reply."""

    def test_parent_blocked_until_instructor_replies(self):
        history = [msg(PARENT)]

        result = evaluate_send_eligibility(
            PARENT, GateRole.PARENT, ASSIGNED_ROOM, None, INSTRUCTOR, history, INSTRUCTOR
        )
        assert result.allowed is False
        assert result.reason == SendBlockReason.AWAITING_INSTRUCTOR_REPLY

        history.append(msg(STAFF))

        assert can_send(PARENT, "parent", ASSIGNED_ROOM, None, INSTRUCTOR, history, INSTRUCTOR)

    def test_parent_blocked_with_empty_history(self):
        assert not can_send(PARENT, "parent", ASSIGNED_ROOM, None, INSTRUCTOR, [], INSTRUCTOR)

    def test_non_instructor_staff_not_gated(self):
        assert can_send(PARENT, "parent", ASSIGNED_ROOM, None, "부원장", [], INSTRUCTOR)

    def test_generic_room_not_gated(self):
        assert can_send(PARENT, "parent", GENERIC_ROOM, None, None, [], INSTRUCTOR)

    def test_works_with_model_objects(self):
        room = ChatRoom(id="room-1", academy_id="a-1", parent_id=PARENT, staff_id=STAFF)

        assert not can_send(PARENT, "parent", room, None, INSTRUCTOR, [msg(PARENT)], INSTRUCTOR)


class TestOtherRoles:

    @pytest.mark.parametrize("role", ["other", GateRole.OTHER])
    def test_other_roles_allowed(self, role):
        assert can_send("student-1", role, ASSIGNED_ROOM, None, INSTRUCTOR, [], INSTRUCTOR)


class TestAcceptRequest:

    def test_instructor_can_accept_pending_request(self):
        assert can_accept_request(STAFF, ASSIGNED_ROOM, INSTRUCTOR, [msg(PARENT)], INSTRUCTOR)

    def test_not_after_reply(self):
        history = [msg(PARENT), msg(STAFF)]

        assert not can_accept_request(STAFF, ASSIGNED_ROOM, INSTRUCTOR, history, INSTRUCTOR)

    def test_not_without_request(self):
        assert not can_accept_request(STAFF, ASSIGNED_ROOM, INSTRUCTOR, [], INSTRUCTOR)

    def test_only_assigned_instructor(self):
        assert not can_accept_request(OWNER, ASSIGNED_ROOM, INSTRUCTOR, [msg(PARENT)], INSTRUCTOR)


def test_has_non_parent_message():
    assert not has_non_parent_message([msg(PARENT)], PARENT)
    assert has_non_parent_message([msg(PARENT), msg(STAFF)], PARENT)
