"""Errors raised by the notification domain and its collaborators."""


class NotificationError(Exception):
    """Base class for notification failures surfaced to callers."""


class NotificationValidationError(NotificationError, ValueError):
    """Raised when identifiers or pagination arguments are malformed."""


class NotificationNotFoundError(NotificationError, LookupError):
    """Raised when a notification does not exist for the requesting recipient.

    Ownership mismatches use this error too, so callers cannot probe for
    notifications that belong to someone else.
    """


class StoreUnavailableError(NotificationError):
    """Raised when the backing store cannot complete an operation."""


__all__ = [
    "NotificationError",
    "NotificationNotFoundError",
    "NotificationValidationError",
    "StoreUnavailableError",
]
