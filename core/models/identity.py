# =============================================================================
# core/models/identity.py - Identity Bridge Schemas
# =============================================================================
# Models exchanged by the phone identity bridge:
# - ExternalIdentity: what the identity provider tells us about a token
# - BridgeRequest: body of POST /firebase-signup and /firebase-login
# - BridgeResponse: success body ({"ok": true})
# - BridgeResult: outcome seen by the bridge HTTP client
# =============================================================================

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AuthRole(str, Enum):
    """
    Application role chosen at signup.

    Stored one row per user in the user_roles table.
    """
    PARENT = "parent"
    STUDENT = "student"
    ADMIN = "admin"

    @classmethod
    def values(cls) -> list[str]:
        return [role.value for role in cls]


class ExternalIdentity(BaseModel):
    """
    Identity resolved from a verified phone-provider token.

    Ephemeral: produced once per verification call and never persisted.
    """
    provider_user_id: str = Field(..., min_length=1)
    phone_number: str | None = None
    email: str | None = None

    model_config = ConfigDict(frozen=True)


class BridgeRequest(BaseModel):
    """
    Request body shared by the signup and login bridge endpoints.

    Fields are parsed leniently; presence and the role whitelist are checked
    by the identity service so that failures map to 400, not 422.
    """
    idToken: object | None = None
    role: object | None = None

    model_config = ConfigDict(extra="ignore")


class BridgeResponse(BaseModel):
    """Successful bridge response."""
    ok: bool = True


class BridgeResult(BaseModel):
    """
    Outcome of posting an id token to the bridge.

    Example:
        BridgeResult(ok=False, error="Phone number is already registered")
    """
    ok: bool
    error: str | None = None
