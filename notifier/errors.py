"""
Error taxonomy for token registration and notification dispatch.
"""

from enum import Enum
from typing import Any


class ProviderErrorReason(str, Enum):
    """Why the push provider refused or failed a message."""

    INVALID_TOKEN = "invalid_token"
    UNREGISTERED = "unregistered"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_ARGUMENT = "invalid_argument"  # Malformed payload
    UNAVAILABLE = "unavailable"  # Transient provider error
    INTERNAL = "internal"
    TIMEOUT = "timeout"
    NOT_CONFIGURED = "not_configured"


# Reasons meaning the token itself is dead and should leave the registry
STALE_TOKEN_REASONS = frozenset({
    ProviderErrorReason.INVALID_TOKEN,
    ProviderErrorReason.UNREGISTERED,
})


class PushError(Exception):
    """Base exception for the notification subsystem."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoDestinationError(PushError):
    """The request names no token, or the identity has no registered tokens."""

    status_code = 400


class InvalidNotificationError(PushError):
    """The notification payload failed validation."""

    status_code = 400


class ProviderError(PushError):
    """The push provider rejected or failed the call."""

    status_code = 500

    def __init__(
        self,
        message: str,
        reason: ProviderErrorReason = ProviderErrorReason.INTERNAL,
        detail: Any = None,
    ):
        super().__init__(message)
        self.reason = reason
        # Raw provider error kept for diagnostic logging only
        self.detail = detail


class StorageError(PushError):
    """Token registry read/write failure."""

    status_code = 503


class NotificationPermissionError(PushError):
    """The user or platform declined notification permission."""

    status_code = 403
