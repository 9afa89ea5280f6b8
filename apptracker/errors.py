"""Error types shared by the store, services and API"""

from typing import Optional


class TrackerError(Exception):
    """Base class for application tracker errors"""
    error_code = "TRACKER_ERROR"


class RecordValidationError(TrackerError, ValueError):
    """A required field was missing or blank; raised before any store call"""
    error_code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Please enter a {field.replace('_', ' ')}")


class StoreOperationError(TrackerError):
    """A create/update/delete/subscribe call against the record store failed"""

    NOT_FOUND = "not-found"
    INVALID_ARGUMENT = "invalid-argument"
    PERMISSION_DENIED = "permission-denied"
    UNAVAILABLE = "unavailable"

    def __init__(self, message: str, code: str = UNAVAILABLE, operation: Optional[str] = None):
        self.code = code
        self.operation = operation
        super().__init__(message)

    @property
    def error_code(self) -> str:
        return self.code.upper().replace("-", "_")


class ReauthRequiredError(StoreOperationError):
    """Account deletion needs a fresh login"""

    def __init__(self, message: str = "Please log out and log back in before deleting your account."):
        super().__init__(message, code="requires-recent-login", operation="delete_account")

    @property
    def error_code(self) -> str:
        return "REAUTH_REQUIRED"


class AuthenticationError(TrackerError):
    """Bad credentials or an unknown/expired session token"""
    error_code = "AUTHENTICATION_ERROR"
