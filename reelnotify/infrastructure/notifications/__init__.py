"""Realtime notification helpers for the infrastructure layer."""

from .dispatcher import NotificationDispatcher
from .publisher import (
    NotificationPublisher,
    build_init_message,
    build_notification_message,
    serialize_notification,
)
from .registry import ConnectionRegistry
from .session import ConnectionSession, SessionTransport

__all__ = [
    "ConnectionRegistry",
    "ConnectionSession",
    "NotificationDispatcher",
    "NotificationPublisher",
    "SessionTransport",
    "build_init_message",
    "build_notification_message",
    "serialize_notification",
]
