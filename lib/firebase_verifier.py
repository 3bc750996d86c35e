# =============================================================================
# lib/firebase_verifier.py - Phone Identity Token Verification
# =============================================================================
# Verifies Firebase ID tokens issued after phone (SMS) authentication and
# turns them into an ExternalIdentity.
#
# Two modes (FIREBASE_VERIFY_MODE):
# - lookup: server-to-server call to the Identity Toolkit accounts:lookup
#           endpoint with the project's web API key. The provider checks
#           signature, expiry and issuer.
# - admin:  local verification with the Firebase Admin SDK using the
#           service account credentials.
#
# Either way, an invalid token, a provider error, a network failure or a
# malformed response all come back as None. The caller reports that as
# "invalid or expired token"; nothing is retried.
#
# Usage:
#   from lib.firebase_verifier import verify_id_token
#   identity = await verify_id_token(id_token)
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from app.config import settings
from core.models.identity import ExternalIdentity

logger = logging.getLogger(__name__)

_firebase_app: firebase_admin.App | None = None


def _identity_from_lookup(payload: Any) -> ExternalIdentity | None:
    """Map an accounts:lookup response body to an identity."""
    if not isinstance(payload, dict):
        return None

    users = payload.get("users")
    if not isinstance(users, list) or not users:
        return None

    user = users[0]
    if not isinstance(user, dict):
        return None

    provider_user_id = user.get("localId") or user.get("uid")
    if not provider_user_id:
        return None

    return ExternalIdentity(
        provider_user_id=provider_user_id,
        phone_number=user.get("phoneNumber") or None,
        email=user.get("email") or None,
    )


async def lookup_id_token(
    id_token: str,
    client: httpx.AsyncClient | None = None,
) -> ExternalIdentity | None:
    """
    Verify a token through the Identity Toolkit lookup endpoint.

    Args:
        id_token: Firebase ID token from the client SDK
        client: Optional HTTP client (tests inject a mock transport)

    Returns:
        ExternalIdentity, or None if the token is invalid, expired or the
        lookup could not be completed
    """
    if not settings.FIREBASE_API_KEY:
        logger.error("FIREBASE_API_KEY is not set; cannot verify phone tokens")
        return None

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.FIREBASE_LOOKUP_TIMEOUT)

    try:
        response = await client.post(
            settings.FIREBASE_LOOKUP_URL,
            params={"key": settings.FIREBASE_API_KEY},
            json={"idToken": id_token},
        )
        if not response.is_success:
            logger.warning(
                f"Firebase lookup failed: status={response.status_code} body={response.text[:200]}"
            )
            return None

        identity = _identity_from_lookup(response.json())
        if identity is None:
            logger.warning("Firebase lookup returned no matching account")
        return identity

    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Firebase lookup error: {e}")
        return None
    finally:
        if owns_client:
            await client.aclose()


def _get_firebase_app() -> firebase_admin.App:
    """Initialize the Admin SDK once from the configured service account."""
    global _firebase_app

    if _firebase_app is None:
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "private_key": settings.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        _firebase_app = firebase_admin.initialize_app(cred, name="phone-identity")
        logger.info("Firebase Admin SDK initialized")

    return _firebase_app


def admin_verify_id_token(id_token: str) -> ExternalIdentity | None:
    """
    Verify a token locally with the Firebase Admin SDK.

    Returns:
        ExternalIdentity, or None if verification fails for any reason
    """
    try:
        claims = firebase_auth.verify_id_token(id_token, app=_get_firebase_app())
    except Exception as e:
        logger.warning(f"Firebase Admin token verification failed: {e}")
        return None

    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        return None

    return ExternalIdentity(
        provider_user_id=uid,
        phone_number=claims.get("phone_number") or None,
        email=claims.get("email") or None,
    )


async def verify_id_token(id_token: str) -> ExternalIdentity | None:
    """
    Verify a phone identity token using the configured mode.

    Args:
        id_token: Non-empty token string from the identity provider SDK

    Returns:
        ExternalIdentity or None ("invalid or expired token")
    """
    if not id_token:
        return None

    if settings.FIREBASE_VERIFY_MODE == "admin":
        # The Admin SDK blocks, fetching public certificates on a cold cache
        return await asyncio.to_thread(admin_verify_id_token, id_token)
    return await lookup_id_token(id_token)
