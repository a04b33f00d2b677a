"""Domain entities describing user notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    """Kinds of activity a recipient can be notified about."""

    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"


@dataclass(frozen=True)
class Notification:
    """Message addressed to ``recipient_id`` about an action by ``actor_id``.

    Only ``read`` ever changes after creation, and only from ``False`` to
    ``True``; the store is responsible for that transition.
    """

    id: int | None
    recipient_id: int
    type: NotificationType
    actor_id: int
    text: str
    video_id: int | None = None
    comment_id: int | None = None
    read: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class ActorInfo:
    """Public profile data of the user who triggered a notification."""

    id: int
    username: str
    display_name: str
    avatar_url: str


@dataclass(frozen=True)
class NotificationView:
    """A notification together with the actor details available for it."""

    notification: Notification
    actor: ActorInfo | None = None


@dataclass
class NotificationPage:
    """One page of a recipient's notifications, newest first."""

    items: list[NotificationView] = field(default_factory=list)
    unread_count: int = 0
    has_more: bool = False
    next_cursor: int | None = None


__all__ = [
    "ActorInfo",
    "Notification",
    "NotificationPage",
    "NotificationType",
    "NotificationView",
]
