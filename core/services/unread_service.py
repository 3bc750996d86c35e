# =============================================================================
# core/services/unread_service.py - Global Unread Indicator
# =============================================================================
# Counts unread incoming messages across every room the actor takes part in.
#
# This is a full rescan on every call, not an incremental counter. It is
# triggered by every message event; a per-room counter would be needed if
# conversation volume grows.
# =============================================================================

import logging

from core.models.actor import ActorContext
from core.models.chat import UnreadStatus
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)


class UnreadService:
    """Computes the unread indicator shown on the chat tab."""

    @staticmethod
    def room_ids_for(actor: ActorContext) -> list[str]:
        """
        Rooms counted for the actor.

        Parents: rooms where they are the parent.
        Admins: every room of academies where they hold an approved membership.
        """
        if actor.is_admin:
            academy_ids = actor.approved_academy_ids
            if not academy_ids:
                return []
            return SupabaseClient.fetch_room_ids(academy_ids=academy_ids)
        return SupabaseClient.fetch_room_ids(parent_id=actor.user_id)

    @staticmethod
    def count_unread(actor: ActorContext) -> int:
        """
        Number of unread messages not sent by the actor.

        Read path: any backend failure counts as zero.
        """
        try:
            room_ids = UnreadService.room_ids_for(actor)
            if not room_ids:
                return 0
            return SupabaseClient.count_unread(room_ids, actor.user_id)
        except SupabaseClientError as e:
            logger.warning(f"Failed to count unread messages for {actor.user_id}: {e}")
            return 0

    @staticmethod
    def status(actor: ActorContext) -> UnreadStatus:
        count = UnreadService.count_unread(actor)
        return UnreadStatus(has_unread=count > 0, count=count)

    @staticmethod
    def has_unread(actor: ActorContext) -> bool:
        return UnreadService.count_unread(actor) > 0
