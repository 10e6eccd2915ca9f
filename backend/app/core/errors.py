from enum import Enum
from typing import Optional


class AppError(Exception):
    def __init__(self, message: str, status_code: int = 400, code: str = "error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    RATE_LIMITED = "rate_limited"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    NOT_AUTHENTICATED = "not_authenticated"
    UNKNOWN = "unknown"


_AUTH_STATUS = {
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.EMAIL_NOT_CONFIRMED: 403,
    AuthErrorKind.RATE_LIMITED: 429,
    AuthErrorKind.EMAIL_ALREADY_REGISTERED: 409,
    AuthErrorKind.INVALID_EMAIL: 422,
    AuthErrorKind.WEAK_PASSWORD: 422,
    AuthErrorKind.NOT_AUTHENTICATED: 401,
    AuthErrorKind.UNKNOWN: 400,
}

_AUTH_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid login credentials",
    AuthErrorKind.EMAIL_NOT_CONFIRMED: "Email not confirmed. Please check your email and click the confirmation link.",
    AuthErrorKind.RATE_LIMITED: "Too many attempts. Please try again later.",
    AuthErrorKind.EMAIL_ALREADY_REGISTERED: "Email already registered",
    AuthErrorKind.INVALID_EMAIL: "Invalid email address",
    AuthErrorKind.WEAK_PASSWORD: "Password does not meet the password policy",
    AuthErrorKind.NOT_AUTHENTICATED: "Unauthorized",
    AuthErrorKind.UNKNOWN: "Authentication failed",
}


class AuthError(AppError):
    def __init__(self, kind: AuthErrorKind, message: Optional[str] = None):
        super().__init__(message or _AUTH_MESSAGES[kind], _AUTH_STATUS[kind], kind.value)
        self.kind = kind


class ReconcileError(AppError):
    FETCH_FAILED = "fetch_failed"
    CREATE_FAILED = "create_failed"
    NO_PROFILE = "no_profile"
    UPDATE_FAILED = "update_failed"

    _STATUS = {NO_PROFILE: 404, UPDATE_FAILED: 500}

    def __init__(self, reason: str, message: str = "Profile unavailable"):
        status = self._STATUS.get(reason, 503)
        super().__init__(message, status, reason)
        self.reason = reason


class AggregationError(AppError):
    STEP_NOT_FOUND = "step_not_found"
    STEP_UPDATE_FAILED = "step_update_failed"

    def __init__(self, reason: str, message: Optional[str] = None):
        status = 404 if reason == self.STEP_NOT_FOUND else 500
        super().__init__(message or reason.replace("_", " ").capitalize(), status, reason)
        self.reason = reason


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, 404, "not_found")


class ExternalServiceError(AppError):
    def __init__(self, message: str = "AI error, check your API key"):
        super().__init__(message, 502, "external_service_error")


class StorageError(Exception):
    """Row storage failed for a reason other than a missing or duplicate row."""


class RowNotFound(StorageError):
    pass


class UniqueViolation(StorageError):
    pass
