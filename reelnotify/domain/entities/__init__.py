"""Domain entities exposed by the application."""

from .notification import (
    ActorInfo,
    Notification,
    NotificationPage,
    NotificationType,
    NotificationView,
)
from .user import User

__all__ = [
    "ActorInfo",
    "Notification",
    "NotificationPage",
    "NotificationType",
    "NotificationView",
    "User",
]
