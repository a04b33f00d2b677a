"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from reelnotify.domain.entities import NotificationType


class ActorRead(BaseModel):
    """Public details of the user who triggered a notification."""

    id: int
    username: str
    display_name: str
    avatar_url: str


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: int
    recipient_id: int
    type: NotificationType
    actor_id: int
    video_id: int | None = None
    comment_id: int | None = None
    text: str
    read: bool
    created_at: datetime
    actor: ActorRead | None = None


class NotificationPageRead(BaseModel):
    """A page of notifications plus the cursor to request the next one."""

    notifications: list[NotificationRead] = Field(default_factory=list)
    unread_count: int = 0
    has_more: bool = False
    next_cursor: int | None = Field(
        default=None, description="Pass as ``cursor`` to fetch older notifications"
    )


class UnreadCountRead(BaseModel):
    unread_count: int


class NotificationMarkReadResponse(BaseModel):
    id: int
    read: bool = True


class NotificationMarkAllReadResponse(BaseModel):
    updated: int = Field(..., description="Number of notifications switched to read")


class ConnectionStatsRead(BaseModel):
    """Live websocket figures for the current process."""

    connected_users: int
    sessions: int


__all__ = [
    "ActorRead",
    "ConnectionStatsRead",
    "NotificationMarkAllReadResponse",
    "NotificationMarkReadResponse",
    "NotificationPageRead",
    "NotificationRead",
    "UnreadCountRead",
]
