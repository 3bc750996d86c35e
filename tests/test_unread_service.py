# =============================================================================
# tests/test_unread_service.py - Unread Indicator Tests
# =============================================================================

from core.services.actor_service import ActorService
from core.services.unread_service import UnreadService


def actor(user_id):
    return ActorService.resolve(user_id)


class TestUnreadService:

    def test_parent_counts_incoming_across_rooms(self, fake_db, academy_setup):
        a = fake_db.add_room(academy_setup.academy_id, academy_setup.parent_id)
        b = fake_db.add_room(
            academy_setup.academy_id, academy_setup.parent_id, academy_setup.instructor_id
        )
        fake_db.add_message(a["id"], academy_setup.owner_id)
        fake_db.add_message(b["id"], academy_setup.instructor_id)
        fake_db.add_message(b["id"], academy_setup.instructor_id, is_read=True)
        fake_db.add_message(b["id"], academy_setup.parent_id)

        status = UnreadService.status(actor(academy_setup.parent_id))

        assert status.has_unread is True
        assert status.count == 2

    def test_admin_counts_all_rooms_of_approved_academies(self, fake_db, academy_setup):
        other_parent = fake_db.add_user(role="parent")
        a = fake_db.add_room(academy_setup.academy_id, academy_setup.parent_id)
        b = fake_db.add_room(academy_setup.academy_id, other_parent, academy_setup.vice_id)
        fake_db.add_message(a["id"], academy_setup.parent_id)
        fake_db.add_message(b["id"], other_parent)

        assert UnreadService.count_unread(actor(academy_setup.owner_id)) == 2
        assert UnreadService.count_unread(actor(academy_setup.instructor_id)) == 2

    def test_pending_membership_not_counted(self, fake_db, academy_setup):
        newcomer = fake_db.add_user(role="admin")
        fake_db.add_member(newcomer, academy_setup.academy_id, status="pending")
        room = fake_db.add_room(academy_setup.academy_id, academy_setup.parent_id)
        fake_db.add_message(room["id"], academy_setup.parent_id)

        status = UnreadService.status(actor(newcomer))

        assert status.has_unread is False
        assert status.count == 0

    def test_nothing_unread(self, fake_db, academy_setup):
        assert UnreadService.status(actor(academy_setup.parent_id)).has_unread is False

    def test_backend_failure_counts_as_zero(self, fake_db, academy_setup):
        room = fake_db.add_room(academy_setup.academy_id, academy_setup.parent_id)
        fake_db.add_message(room["id"], academy_setup.owner_id)
        parent = actor(academy_setup.parent_id)
        fake_db.failures[("messages", "select")] = Exception("timeout")

        assert UnreadService.count_unread(parent) == 0

    def test_has_unread(self, fake_db, academy_setup):
        room = fake_db.add_room(academy_setup.academy_id, academy_setup.parent_id)
        fake_db.add_message(room["id"], academy_setup.parent_id)

        assert UnreadService.has_unread(actor(academy_setup.owner_id)) is True
        assert UnreadService.has_unread(actor(academy_setup.parent_id)) is False
