"""Pydantic schemas exposed by the HTTP interface."""

from .notification import (
    ActorRead,
    ConnectionStatsRead,
    NotificationMarkAllReadResponse,
    NotificationMarkReadResponse,
    NotificationPageRead,
    NotificationRead,
    UnreadCountRead,
)

__all__ = [
    "ActorRead",
    "ConnectionStatsRead",
    "NotificationMarkAllReadResponse",
    "NotificationMarkReadResponse",
    "NotificationPageRead",
    "NotificationRead",
    "UnreadCountRead",
]
