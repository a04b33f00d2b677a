"""Public helpers for emitting and reading notifications."""

from .events import notify_comment, notify_follow, notify_like, notify_mention
from .service import NotificationService, build_notification_service

__all__ = [
    "NotificationService",
    "build_notification_service",
    "notify_comment",
    "notify_follow",
    "notify_like",
    "notify_mention",
]
