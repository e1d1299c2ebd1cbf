"""
Error taxonomy for the credential & session lifecycle engine.

Every error carries a stable ``error_code`` and a suggested HTTP
``status_code`` so the routing layer can map it without inspecting
messages. Messages are fixed and safe to show to callers; the real cause
(which field collided, which account matched) belongs in server logs only.
"""

from typing import Any, Dict, Optional


class AuthError(Exception):
    """Base class for all authcore errors."""

    status_code: int = 400
    error_code: str = "auth_error"
    default_message: str = "Request could not be completed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        detail: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.detail = detail or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a response-safe dict."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "detail": self.detail,
        }


class ConflictError(AuthError):
    """An email or username is already taken."""

    status_code = 409
    error_code = "conflict"
    default_message = "Registration was not successful; the email or username may already be in use"

    def __init__(self, field: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message, detail={"field": field} if field else None)
        self.field = field


class InvalidCredentialsError(AuthError):
    """Unknown identifier or wrong password (deliberately indistinguishable)."""

    status_code = 401
    error_code = "invalid_credentials"
    default_message = "Invalid account or password"


class EmailNotVerifiedError(AuthError):
    """Correct credentials, but the email address has not been verified."""

    status_code = 403
    error_code = "email_not_verified"
    default_message = "Please verify your email address before logging in"


class VerificationTicketError(AuthError):
    """Verification ticket is unknown, expired or already consumed."""

    status_code = 400
    error_code = "verification_invalid_or_expired"
    default_message = "Verification link is invalid or has expired"


class TokenError(AuthError):
    """Base class for access and refresh token failures."""

    status_code = 401
    error_code = "token_invalid"
    default_message = "Token is invalid"


class TokenInvalidError(TokenError):
    """Token is unknown, rotated away, or fails claim checks."""


class MalformedTokenError(TokenInvalidError):
    """Token cannot be decoded or is missing required claims."""

    default_message = "Token is malformed"


class BadSignatureError(TokenInvalidError):
    """Token signature does not match the public key."""

    default_message = "Token signature is invalid"


class TokenExpiredError(TokenError):
    """Token is past its expiry."""

    error_code = "token_expired"
    default_message = "Token has expired, please log in again"


class TokenRevokedError(TokenError):
    """Refresh token session has been revoked."""

    error_code = "token_revoked"
    default_message = "Token has been revoked, please log in again"


class DeliveryFailedError(AuthError):
    """
    Verification message could not be delivered after all retries.

    ``category`` tells the caller what kind of action makes sense:
    ``unreachable`` / ``timeout`` / ``unavailable`` (try again later) or
    ``rejected`` (check the address).
    """

    status_code = 503
    error_code = "delivery_failed"

    _MESSAGES = {
        "unreachable": "Registration failed: the mail server could not be reached, please try again later",
        "timeout": "Registration failed: sending the verification email timed out, please try again later",
        "unavailable": "Registration failed: the mail service is temporarily unavailable, please try again later",
        "rejected": "Registration failed: the email address was rejected, please check it and try again",
    }

    def __init__(self, category: str = "unknown"):
        message = self._MESSAGES.get(
            category,
            "Registration failed: the verification email could not be sent, please try again later",
        )
        super().__init__(message, detail={"category": category})
        self.category = category


class StorageConflictError(AuthError):
    """A unique index rejected a write (concurrent registration race)."""

    status_code = 409
    error_code = "storage_conflict"
    default_message = "Concurrent modification detected"

    def __init__(self, field: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message, detail={"field": field} if field else None)
        self.field = field


class ConcurrentUpdateError(StorageConflictError):
    """Conditional account update lost against a newer stored version."""

    def __init__(self, account_id: Optional[str] = None):
        super().__init__(field="version")
        self.account_id = account_id


class InternalError(AuthError):
    """Unexpected, non-operational failure."""

    status_code = 500
    error_code = "internal_error"
    default_message = "Internal error, please contact the administrator"


class NotificationError(AuthError):
    """
    Raised by Notifier adapters when a message could not be sent.

    Args:
        reason: ``unreachable``, ``timeout``, ``unavailable``, ``rejected`` or ``unknown``
        retryable: Whether another attempt could succeed
    """

    status_code = 502
    error_code = "notification_failed"
    default_message = "Notification could not be delivered"

    def __init__(self, reason: str = "unknown", retryable: bool = True, message: Optional[str] = None):
        super().__init__(message, detail={"reason": reason, "retryable": retryable})
        self.reason = reason
        self.retryable = retryable


__all__ = [
    "AuthError",
    "ConflictError",
    "InvalidCredentialsError",
    "EmailNotVerifiedError",
    "VerificationTicketError",
    "TokenError",
    "TokenInvalidError",
    "MalformedTokenError",
    "BadSignatureError",
    "TokenExpiredError",
    "TokenRevokedError",
    "DeliveryFailedError",
    "StorageConflictError",
    "ConcurrentUpdateError",
    "InternalError",
    "NotificationError",
]
