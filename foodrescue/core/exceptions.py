"""
Custom exception classes.
Every application error carries an error code; the error handler maps
codes to HTTP statuses.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class for application errors"""

    code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """Store failures"""
    code = "DATABASE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """Write conflict detected by the store"""
    code = "CONCURRENCY_CONFLICT"


class AuthenticationError(BaseApplicationError):
    """Missing or invalid credentials"""
    code = "AUTHENTICATION_REQUIRED"


class InvalidCredentialsError(AuthenticationError):
    code = "INVALID_CREDENTIALS"


class PermissionDeniedError(BaseApplicationError):
    """Caller may not perform the action"""
    code = "PERMISSION_DENIED"


class AccountSuspendedError(PermissionDeniedError):
    code = "ACCOUNT_SUSPENDED"


class ValidationError(BaseApplicationError):
    """Request data failed a business validation"""
    code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    code = "RESOURCE_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"


class OfferNotFoundError(NotFoundError):
    code = "OFFER_NOT_FOUND"


class PickupNotFoundError(NotFoundError):
    code = "PICKUP_NOT_FOUND"


class ConflictError(BaseApplicationError):
    code = "CONFLICT"


class DuplicateEmailError(ConflictError):
    code = "EMAIL_IN_USE"


class InvalidTransitionError(ConflictError):
    """Offer is not in a state that allows the requested action"""
    code = "OFFER_STATUS_CONFLICT"

    def __init__(self, message: str, current_status: str, action: str):
        super().__init__(
            message,
            details={"current_status": current_status, "action": action}
        )
        self.current_status = current_status
        self.action = action


class CancellationWindowClosedError(PermissionDeniedError):
    """Volunteer tried to withdraw too close to the pickup time"""
    code = "CANCELLATION_WINDOW_CLOSED"
