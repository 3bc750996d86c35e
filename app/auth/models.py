# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from core.models.actor import AcademyMembership


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database. Role and memberships live on the
    ActorContext resolved from it.
    """
    id: UUID
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class MeResponse(BaseModel):
    """
    Response of GET /auth/me.

    The caller's application role and academy memberships, as the chat
    services see them.
    """
    id: UUID
    email: Optional[str] = None
    role: Optional[str] = None
    memberships: list[AcademyMembership] = []
