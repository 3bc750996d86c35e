# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

from typing import Any


# =============================================================================
# Backend Errors
# =============================================================================

def is_unique_violation(error: Exception) -> bool:
    """
    Check whether a backend error is a unique-constraint violation.

    PostgREST surfaces Postgres error 23505 in the error payload; the text
    form is matched as well because the client library does not always keep
    the code attribute.
    """
    code = getattr(error, "code", None)
    if code == "23505":
        return True
    text = str(error).lower()
    return "23505" in text or "duplicate key" in text


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for library-level errors.

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class VerifierError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="VERIFIER_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
