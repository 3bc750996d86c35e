# =============================================================================
# app/exceptions.py - Custom Exceptions & Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors tell the caller what to do next (sign up, log in, wait for a reply)
# and never carry backend error text across the trust boundary.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

# Preflight and response headers of the identity bridge endpoints
BRIDGE_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


class AcademyConnectException(Exception):
    """
    Base exception for the Academy Connect API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "ACADEMY_CONNECT_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Identity Bridge Exceptions
# =============================================================================

class IdentityBridgeError(AcademyConnectException):
    """
    Base for errors returned by /firebase-signup and /firebase-login.

    Serialized as {"error": ..., "code": ...} with permissive CORS headers.
    """

    @property
    def headers(self) -> dict[str, str]:
        return dict(BRIDGE_CORS_HEADERS)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class InvalidBridgeRequestError(IdentityBridgeError):
    """Raised when idToken or role is missing or malformed."""

    def __init__(self, message: str = "idToken is required"):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            status_code=400,
        )


class InvalidTokenError(IdentityBridgeError):
    """Raised when the phone identity token does not verify."""

    def __init__(self):
        super().__init__(
            message="Invalid or expired token",
            code="INVALID_TOKEN",
            status_code=401,
            suggestion="Request a new verification code and try again",
        )


class PhoneNotFoundInTokenError(IdentityBridgeError):
    """Raised when the verified identity carries no phone number."""

    def __init__(self):
        super().__init__(
            message="No phone number found for this account",
            code="PHONE_MISSING",
            status_code=400,
        )


class PhoneAlreadyRegisteredError(IdentityBridgeError):
    """Raised at signup when the phone number already has an account."""

    def __init__(self):
        super().__init__(
            message="Phone number is already registered",
            code="PHONE_ALREADY_REGISTERED",
            status_code=409,
            suggestion="Log in instead",
        )


class PhoneNotRegisteredError(IdentityBridgeError):
    """Raised at login when no account uses the phone number."""

    def __init__(self):
        super().__init__(
            message="Phone number is not registered",
            code="PHONE_NOT_REGISTERED",
            status_code=404,
            suggestion="Sign up first",
        )


class BridgeInternalError(IdentityBridgeError):
    """Raised for any unexpected failure; detail stays in the server log."""

    def __init__(self):
        super().__init__(
            message="A server error occurred",
            code="INTERNAL_ERROR",
            status_code=500,
        )


# =============================================================================
# Chat Exceptions
# =============================================================================

class ChatRoomNotFoundError(AcademyConnectException):
    """Raised when a room id doesn't exist."""

    def __init__(self, room_id: str):
        super().__init__(
            message=f"Chat room not found: {room_id}",
            code="ROOM_NOT_FOUND",
            status_code=404,
            suggestion="Check that the room id is correct",
            details={"room_id": room_id}
        )


class ChatAccessDeniedError(AcademyConnectException):
    """Raised when the caller is not a participant of the room."""

    def __init__(self, room_id: str):
        super().__init__(
            message="You are not a participant of this chat room",
            code="ROOM_ACCESS_DENIED",
            status_code=403,
            details={"room_id": room_id}
        )


class SendNotAllowedError(AcademyConnectException):
    """Raised when the send gate is closed for the caller."""

    def __init__(self, room_id: str, reason: str | None):
        super().__init__(
            message="You cannot send messages in this chat room right now",
            code="SEND_NOT_ALLOWED",
            status_code=403,
            suggestion=(
                "Wait for the instructor to accept the request"
                if reason == "awaiting_instructor_reply"
                else "Only the assigned staff member can reply in this room"
            ),
            details={"room_id": room_id, "reason": reason}
        )


class InvalidMessageError(AcademyConnectException):
    """Raised when message content is empty or too long."""

    def __init__(self, message: str, max_length: int):
        super().__init__(
            message=message,
            code="INVALID_MESSAGE",
            status_code=400,
            suggestion=f"Messages must be 1 to {max_length} characters after trimming",
            details={"max_length": max_length}
        )


class MessageSendError(AcademyConnectException):
    """Raised when a message could not be stored."""

    def __init__(self, room_id: str):
        super().__init__(
            message="Failed to send message",
            code="MESSAGE_SEND_FAILED",
            status_code=500,
            suggestion="Try again; your message was not lost",
            details={"room_id": room_id}
        )


class MessageIdConflictError(AcademyConnectException):
    """Raised when a client message id is already used by another message."""

    def __init__(self, room_id: str, message_id: str):
        super().__init__(
            message="Message id is already in use",
            code="MESSAGE_ID_CONFLICT",
            status_code=409,
            suggestion="Generate a new id for this message",
            details={"room_id": room_id, "message_id": message_id}
        )


class RoomCreateError(AcademyConnectException):
    """Raised when a room could not be found or created."""

    def __init__(self, academy_id: str):
        super().__init__(
            message="Failed to open a chat room",
            code="ROOM_CREATE_FAILED",
            status_code=500,
            suggestion="Try again later",
            details={"academy_id": academy_id}
        )


class AcceptNotAllowedError(AcademyConnectException):
    """Raised when the caller cannot accept a consultation request."""

    def __init__(self, room_id: str):
        super().__init__(
            message="There is no pending consultation request for you in this room",
            code="ACCEPT_NOT_ALLOWED",
            status_code=409,
            details={"room_id": room_id}
        )


class ActorUnavailableError(AcademyConnectException):
    """Raised when the caller's role and memberships cannot be loaded."""

    def __init__(self):
        super().__init__(
            message="Could not load your account information",
            code="ACTOR_UNAVAILABLE",
            status_code=503,
            suggestion="Try again in a moment",
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def academy_connect_exception_handler(
    request: Request,
    exc: AcademyConnectException
) -> JSONResponse:
    """
    Convert AcademyConnectException to JSON response.

    Returns structured error with:
    - detail / error: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc)
        }
    )
