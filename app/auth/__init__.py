# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides JWT-based authentication using Supabase Auth.
#
# Usage:
#   from app.auth import get_current_actor
#
#   @router.get("/protected")
#   async def protected(actor: ActorContext = Depends(get_current_actor)):
#       return {"user_id": actor.user_id}
# =============================================================================

from app.auth.dependencies import (
    authenticate_token,
    decode_access_token,
    get_current_actor,
    get_current_user,
    resolve_actor,
)
from app.auth.models import AuthUser, MeResponse

__all__ = [
    "authenticate_token",
    "decode_access_token",
    "get_current_actor",
    "get_current_user",
    "resolve_actor",
    "AuthUser",
    "MeResponse",
]
