# =============================================================================
# app/routers/identity.py - Phone Identity Bridge Endpoints
# =============================================================================
# POST /firebase-signup and POST /firebase-login exchange a verified phone
# token for an account in Supabase Auth.
#
# These endpoints are called directly from browsers and mobile clients, so:
# - every response (errors included) carries permissive CORS headers
# - OPTIONS preflight returns an empty 200
# - errors use the {"error": ..., "code": ...} body, not FastAPI's "detail"
# - the body is parsed by hand so a missing or non-string field is a 400,
#   not a 422
#
# The router is mounted at the root and under /functions/v1 so clients that
# were built against the hosted functions URL keep working.
# =============================================================================

import json
import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from app.exceptions import (
    BRIDGE_CORS_HEADERS,
    BridgeInternalError,
    IdentityBridgeError,
    InvalidBridgeRequestError,
)
from core.models.identity import BridgeRequest, BridgeResponse
from core.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Helpers
# =============================================================================

async def _parse_body(request: Request) -> BridgeRequest:
    """Read the JSON body; anything but a JSON object is a bad request."""
    raw = await request.body()
    try:
        payload = json.loads(raw or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidBridgeRequestError("Request body must be valid JSON")

    if not isinstance(payload, dict):
        raise InvalidBridgeRequestError("Request body must be a JSON object")
    return BridgeRequest.model_validate(payload)


def _ok(result: BridgeResponse) -> JSONResponse:
    return JSONResponse(content=result.model_dump(), headers=BRIDGE_CORS_HEADERS)


def _preflight() -> Response:
    return Response(status_code=200, headers=BRIDGE_CORS_HEADERS)


# =============================================================================
# Endpoints
# =============================================================================

@router.options("/firebase-signup", include_in_schema=False)
async def signup_preflight() -> Response:
    return _preflight()


@router.post("/firebase-signup", response_model=BridgeResponse)
async def firebase_signup(request: Request) -> JSONResponse:
    """
    Register a new account for a verified phone number.

    Body: {"idToken": "<phone provider token>", "role": "parent|student|admin"}

    Returns:
        200 {"ok": true}

    Errors:
        400 missing idToken/role, invalid role, no phone in token
        401 invalid or expired token
        409 phone number already registered
        500 account could not be created
    """
    body = await _parse_body(request)
    try:
        result = await IdentityService.signup(body.idToken, body.role)
    except IdentityBridgeError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected signup failure: {e}")
        raise BridgeInternalError()
    return _ok(result)


@router.options("/firebase-login", include_in_schema=False)
async def login_preflight() -> Response:
    return _preflight()


@router.post("/firebase-login", response_model=BridgeResponse)
async def firebase_login(request: Request) -> JSONResponse:
    """
    Confirm that a verified phone number has an account.

    Body: {"idToken": "<phone provider token>"}

    Returns:
        200 {"ok": true}

    Errors:
        400 missing idToken, no phone in token
        401 invalid or expired token
        404 phone number not registered
        500 lookup failed
    """
    body = await _parse_body(request)
    try:
        result = await IdentityService.login(body.idToken)
    except IdentityBridgeError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected login failure: {e}")
        raise BridgeInternalError()
    return _ok(result)


@router.api_route(
    "/firebase-signup",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
@router.api_route(
    "/firebase-login",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={"error": "Method not allowed"},
        headers=BRIDGE_CORS_HEADERS,
    )
