# =============================================================================
# core/services/actor_service.py - Current Actor Resolution
# =============================================================================
# Builds the ActorContext for an authenticated user: application role plus
# academy memberships. Resolved once per request and handed to the chat
# services, which never look the role up again on their own.
# =============================================================================

import logging

from core.models.actor import AcademyMembership, ActorContext, MemberRole, MembershipStatus
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class ActorService:
    """Resolves who the caller is and what they can do."""

    @staticmethod
    def resolve(user_id: str, email: str | None = None) -> ActorContext:
        """
        Build the actor context for a user.

        Academies owned through academies.owner_id count as approved owner
        memberships even when no academy_members row exists for them.

        Raises:
            SupabaseClientError: If the role or memberships cannot be read
        """
        role = SupabaseClient.fetch_user_role(user_id)

        memberships = [
            AcademyMembership(
                academy_id=row["academy_id"],
                role=row.get("role") or MemberRole.ADMIN.value,
                status=row.get("status") or MembershipStatus.PENDING.value,
            )
            for row in SupabaseClient.fetch_memberships(user_id)
        ]

        if role == "admin":
            known = {m.academy_id for m in memberships}
            for academy_id in SupabaseClient.fetch_owned_academy_ids(user_id):
                if academy_id not in known:
                    memberships.append(AcademyMembership(
                        academy_id=academy_id,
                        role=MemberRole.OWNER.value,
                        status=MembershipStatus.APPROVED.value,
                    ))

        logger.debug(f"Resolved actor {user_id}: role={role}, memberships={len(memberships)}")
        return ActorContext(user_id=user_id, email=email, role=role, memberships=memberships)
