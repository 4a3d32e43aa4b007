"""
Error taxonomy for the prize lifecycle.

Every error carries the HTTP status and the machine-readable code the
envelope handler in ``prizedesk.webapp.main`` renders. Services raise these;
routes never translate them by hand.
"""
from __future__ import annotations

from typing import Any, Optional


class PrizeDeskError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An internal server error occurred."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None,
                 errors: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.errors = errors
        super().__init__(self.message)


# ---- 422 ----
class ValidationError(PrizeDeskError):
    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Validation failed."


class InvalidCodeError(ValidationError):
    code = "OTP_INVALID"
    default_message = "Invalid OTP code."

    def __init__(self, remaining_attempts: int, message: Optional[str] = None):
        self.remaining_attempts = remaining_attempts
        super().__init__(message, errors={"remaining_attempts": remaining_attempts})


# ---- 404 ----
class NotFoundError(PrizeDeskError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found."


# ---- 409 ----
class ConflictError(PrizeDeskError):
    status_code = 409
    code = "CONFLICT"
    default_message = "The request conflicts with the current state."


class OutOfStockError(ConflictError):
    code = "OUT_OF_STOCK"
    default_message = "Prize has no remaining quantity."


class AlreadyRedeemedError(ConflictError):
    code = "ALREADY_REDEEMED"
    default_message = "This prize has already been redeemed."


class ExpiredError(ConflictError):
    code = "EXPIRED"
    default_message = "This prize has expired."


class CancelledError(ConflictError):
    code = "CANCELLED"
    default_message = "This prize award has been cancelled."


class PhoneMismatchError(ConflictError):
    code = "PHONE_MISMATCH"
    default_message = "This prize does not belong to you."


class AttemptsExceededError(ConflictError):
    code = "OTP_ATTEMPTS_EXCEEDED"
    default_message = "Maximum attempts exceeded. Please request a new OTP."

    def __init__(self, message: Optional[str] = None):
        self.remaining_attempts = 0
        super().__init__(message, errors={"remaining_attempts": 0})


# ---- 401 / 403 ----
class AuthError(PrizeDeskError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required."


class ForbiddenError(AuthError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You are not allowed to perform this action."


# ---- 500 ----
class TransientError(PrizeDeskError):
    status_code = 500
    code = "TRANSIENT_ERROR"
    default_message = "A temporary storage error occurred. Please retry."


class NotificationError(PrizeDeskError):
    """Raised by the SMS gateway. Caught by the dispatcher, never surfaced to callers."""
    code = "NOTIFICATION_FAILED"
    default_message = "Notification delivery failed."
