# =============================================================================
# core/models/actor.py - Current Actor Context
# =============================================================================
# A single answer to "who is calling and what can they do", resolved once per
# request and passed explicitly to the chat services.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MemberRole(str, Enum):
    """Role of a user inside an academy."""
    OWNER = "owner"
    ADMIN = "admin"


class MembershipStatus(str, Enum):
    """Approval state of an academy membership."""
    PENDING = "pending"
    APPROVED = "approved"


class GateRole(str, Enum):
    """
    Role as seen by the chat send gate.

    Students and users without a role row are both "other".
    """
    ADMIN = "admin"
    PARENT = "parent"
    OTHER = "other"


class AcademyMembership(BaseModel):
    """One academy_members row for the current user."""
    academy_id: str
    role: str
    status: str = MembershipStatus.APPROVED.value


class ActorContext(BaseModel):
    """
    The authenticated user plus their role and academy memberships.

    Example:
        actor = ActorContext(user_id="u-1", role="admin", memberships=[
            AcademyMembership(academy_id="a-1", role="owner", status="approved"),
        ])
        actor.member_role_in("a-1")  # "owner"
    """
    user_id: str
    email: str | None = None
    role: str | None = None
    memberships: list[AcademyMembership] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_parent(self) -> bool:
        return self.role == "parent"

    @property
    def gate_role(self) -> GateRole:
        if self.is_admin:
            return GateRole.ADMIN
        if self.is_parent:
            return GateRole.PARENT
        return GateRole.OTHER

    @property
    def approved_academy_ids(self) -> list[str]:
        return [
            m.academy_id for m in self.memberships
            if m.status == MembershipStatus.APPROVED.value
        ]

    def member_role_in(self, academy_id: str) -> str | None:
        """Role held in the given academy, regardless of approval state."""
        for membership in self.memberships:
            if membership.academy_id == academy_id:
                return membership.role
        return None

    def is_member_of(self, academy_id: str) -> bool:
        return academy_id in self.approved_academy_ids
