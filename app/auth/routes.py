# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for authentication-related operations.
#
# Note: Sessions are created by the phone identity bridge and Supabase Auth.
# These routes report who the caller is after authentication.
# =============================================================================

import logging
from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_actor, get_current_user
from app.auth.models import AuthUser, MeResponse
from core.models.actor import ActorContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me", response_model=MeResponse)
async def get_current_user_info(
    actor: ActorContext = Depends(get_current_actor)
) -> MeResponse:
    """
    Get the current user's role and academy memberships.

    Raises:
        401: If not authenticated
        503: If the role lookup fails
    """
    return MeResponse(
        id=actor.user_id,
        email=actor.email,
        role=actor.role,
        memberships=actor.memberships,
    )


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Useful for checking if a stored token is still valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "valid": True,
        "user_id": str(user.id),
        "email": user.email
    }
