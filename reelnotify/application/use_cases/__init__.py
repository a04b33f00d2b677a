"""Aggregate application use cases."""

from .notifications import NotificationService, build_notification_service

__all__ = [
    "NotificationService",
    "build_notification_service",
]
