"""Helpers that turn engagement events into notifications."""

from __future__ import annotations

from reelnotify.domain.entities import Notification, NotificationType

from .service import NotificationService

COMMENT_PREVIEW_LENGTH = 50


def notify_like(
    service: NotificationService,
    *,
    video_owner_id: int,
    actor_id: int,
    video_id: int,
) -> Notification | None:
    """Tell the owner of ``video_id`` that ``actor_id`` liked it."""

    return service.notify(
        NotificationType.LIKE,
        recipient_id=video_owner_id,
        actor_id=actor_id,
        video_id=video_id,
        text="liked your video",
    )


def notify_comment(
    service: NotificationService,
    *,
    video_owner_id: int,
    actor_id: int,
    video_id: int,
    comment_id: int,
    comment_text: str,
) -> Notification | None:
    """Tell the owner of ``video_id`` about a new comment, with a short preview."""

    return service.notify(
        NotificationType.COMMENT,
        recipient_id=video_owner_id,
        actor_id=actor_id,
        video_id=video_id,
        comment_id=comment_id,
        text=f"commented: {_preview(comment_text)}",
    )


def notify_follow(
    service: NotificationService, *, followed_user_id: int, follower_id: int
) -> Notification | None:
    return service.notify(
        NotificationType.FOLLOW,
        recipient_id=followed_user_id,
        actor_id=follower_id,
        text="started following you",
    )


def notify_mention(
    service: NotificationService,
    *,
    mentioned_user_id: int,
    actor_id: int,
    video_id: int,
    comment_id: int,
) -> Notification | None:
    return service.notify(
        NotificationType.MENTION,
        recipient_id=mentioned_user_id,
        actor_id=actor_id,
        video_id=video_id,
        comment_id=comment_id,
        text="mentioned you in a comment",
    )


def _preview(text: str) -> str:
    if len(text) > COMMENT_PREVIEW_LENGTH:
        return text[:COMMENT_PREVIEW_LENGTH] + "..."
    return text


__all__ = [
    "notify_comment",
    "notify_follow",
    "notify_like",
    "notify_mention",
]
