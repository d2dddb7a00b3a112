"""Notification Error Hierarchy.

Typed errors raised by storage, transport and reporting adapters. The
service boundary catches everything except InvalidPreferencesError, logs
it, and degrades (missed or delayed notification, never a crash).
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Standardized error codes for notification failures."""

    # Caller errors
    INVALID_PREFERENCES = "INVALID_PREFERENCES"
    INVALID_TIME = "INVALID_TIME"

    # Environment
    UNSUPPORTED_ENVIRONMENT = "UNSUPPORTED_ENVIRONMENT"

    # I/O
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    SERVER_MIRROR_FAILED = "SERVER_MIRROR_FAILED"
    TRANSPORT_FAILED = "TRANSPORT_FAILED"
    SUBSCRIPTION_GONE = "SUBSCRIPTION_GONE"
    REPORTING_FAILED = "REPORTING_FAILED"


class NotificationError(Exception):
    """Base exception for the notification core."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or []

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidPreferencesError(NotificationError):
    """Raised when a preference document is malformed."""

    def __init__(
        self,
        message: str = "Invalid notification preferences",
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.INVALID_PREFERENCES,
    ):
        details = [{"field": field, "issue": message}] if field else None
        super().__init__(message, error_code, details)
        self.field = field


class PreferenceStoreError(NotificationError):
    """Raised when the local cache or the server mirror cannot be reached."""

    def __init__(
        self,
        message: str = "Preference storage unavailable",
        error_code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE,
    ):
        super().__init__(message, error_code)


class TransportError(NotificationError):
    """Raised when the push transport rejects or cannot accept a message."""

    def __init__(
        self,
        message: str = "Push transport failed",
        error_code: ErrorCode = ErrorCode.TRANSPORT_FAILED,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, error_code)
        self.status_code = status_code

    @property
    def subscription_gone(self) -> bool:
        return self.status_code in (404, 410)


class UnsupportedEnvironmentError(TransportError):
    """Raised when push delivery is not available in this environment."""

    def __init__(self, message: str = "Push messaging is not supported"):
        super().__init__(message, ErrorCode.UNSUPPORTED_ENVIRONMENT)


class ReportingError(NotificationError):
    """Raised when an engagement or telemetry report cannot be delivered."""

    def __init__(self, message: str = "Engagement report failed"):
        super().__init__(message, ErrorCode.REPORTING_FAILED)
