# =============================================================================
# lib/bridge_client.py - Identity Bridge HTTP Client
# =============================================================================
# Client side of the phone identity bridge: posts a verified phone-provider
# token to /firebase-signup or /firebase-login and reports the outcome.
#
# The base URL may be the project URL (https://<ref>.supabase.co) or already
# point at the functions root (https://<ref>.supabase.co/functions/v1).
# An empty base URL means the bridge is disabled and every call succeeds.
#
# Usage:
#   from lib.bridge_client import send_id_token_to_backend
#   result = await send_id_token_to_backend(token, "parent", is_signup=True)
#   if not result.ok:
#       print(result.error)
# =============================================================================

from __future__ import annotations

import logging

import httpx

from app.config import settings
from core.models.identity import BridgeResult

logger = logging.getLogger(__name__)

FUNCTIONS_PATH = "/functions/v1"
SIGNUP_PATH = "firebase-signup"
LOGIN_PATH = "firebase-login"

DEFAULT_ERROR = "Request failed"
CONNECTION_ERROR = "Could not reach the server. Please check your connection."


def build_bridge_url(base_url: str, path: str) -> str:
    """
    Join the bridge base URL and an endpoint path.

    Example:
        build_bridge_url("https://x.supabase.co", "firebase-login")
        # "https://x.supabase.co/functions/v1/firebase-login"
    """
    base = base_url.rstrip("/")
    if FUNCTIONS_PATH in base:
        return f"{base}/{path}"
    return f"{base}{FUNCTIONS_PATH}/{path}"


async def send_id_token_to_backend(
    id_token: str,
    role: str | None = None,
    is_signup: bool = False,
    base_url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> BridgeResult:
    """
    Send a phone-provider id token to the bridge.

    Args:
        id_token: Token from the identity provider SDK
        role: Application role, sent on signup only
        is_signup: Signup endpoint when True, login otherwise
        base_url: Overrides BRIDGE_BASE_URL
        client: Optional HTTP client (tests inject a mock transport)

    Returns:
        BridgeResult with ok=False and a user-facing error on failure
    """
    base = settings.BRIDGE_BASE_URL if base_url is None else base_url
    if not base:
        logger.debug("Bridge base URL not configured; skipping bridge call")
        return BridgeResult(ok=True)

    url = build_bridge_url(base, SIGNUP_PATH if is_signup else LOGIN_PATH)
    body: dict[str, str] = {"idToken": id_token}
    if is_signup and role:
        body["role"] = role

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.FIREBASE_LOOKUP_TIMEOUT)

    try:
        response = await client.post(url, json=body)

        if response.is_success:
            return BridgeResult(ok=True)

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        error = payload.get("error") if isinstance(payload, dict) else None

        logger.info(f"Bridge call to {url} failed with status {response.status_code}")
        return BridgeResult(ok=False, error=error or DEFAULT_ERROR)

    except httpx.HTTPError as e:
        logger.warning(f"Bridge call to {url} failed: {e}")
        return BridgeResult(ok=False, error=CONNECTION_ERROR)
    finally:
        if owns_client:
            await client.aclose()
