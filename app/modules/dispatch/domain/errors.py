"""Errors and error codes for the dispatch module."""

from modules.dispatch.domain.types import ErrorClass


class DispatchError(Exception):
    """Base class for dispatch errors."""


class RecordNotFoundError(DispatchError):
    """Raised when a notification record id is unknown."""

    def __init__(self, record_id: str):
        super().__init__(f"Notification record '{record_id}' not found")
        self.record_id = record_id


class InvalidTransitionError(DispatchError):
    """Raised when a status change is not allowed from the current status."""


class RecordStoreError(DispatchError):
    """Raised when the notification record store is unreachable."""


class RateLimitStoreError(DispatchError):
    """Raised when the token bucket store is unreachable."""


class BudgetStoreError(DispatchError):
    """Raised when the budget ledger store is unreachable."""


# Delivery error codes
PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
PROVIDER_ERROR = "PROVIDER_ERROR"
RATE_LIMITED = "RATE_LIMITED"
SYNC_TIMEOUT = "SYNC_TIMEOUT"
NO_PROVIDER = "NO_PROVIDER"
INVALID_RECIPIENT = "INVALID_RECIPIENT"
INVALID_PHONE_FORMAT = "INVALID_PHONE_FORMAT"
INVALID_EMAIL = "INVALID_EMAIL"
TOKEN_REVOKED = "TOKEN_REVOKED"
DEVICE_UNREGISTERED = "DEVICE_UNREGISTERED"
UNSUPPORTED_CONTENT = "UNSUPPORTED_CONTENT"
UNAUTHORIZED = "UNAUTHORIZED"
BUDGET_UNAVAILABLE = "BUDGET_UNAVAILABLE"
QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

PERMANENT_ERROR_CODES = frozenset(
    {
        INVALID_RECIPIENT,
        INVALID_PHONE_FORMAT,
        INVALID_EMAIL,
        TOKEN_REVOKED,
        DEVICE_UNREGISTERED,
        UNSUPPORTED_CONTENT,
        UNAUTHORIZED,
        NO_PROVIDER,
    }
)

# Permanent errors that invalidate a stored device credential
CREDENTIAL_ERROR_CODES = frozenset({TOKEN_REVOKED, DEVICE_UNREGISTERED})


def classify_error(error_code: str | None) -> ErrorClass:
    """Map a delivery error code to its retry class.

    Unknown codes are transient so that a new provider failure mode is retried
    (boundedly) rather than dropped.
    """
    if error_code in PERMANENT_ERROR_CODES:
        return ErrorClass.PERMANENT
    return ErrorClass.TRANSIENT
