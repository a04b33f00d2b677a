"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

from typing import Any

from reelnotify.domain.entities import ActorInfo, Notification, NotificationView
from reelnotify.domain.ports import NotificationBroadcaster


class NotificationPublisher:
    """Serialize notifications and hand them to the broadcaster."""

    def __init__(self, broadcaster: NotificationBroadcaster) -> None:
        self._broadcaster = broadcaster

    def publish(self, view: NotificationView) -> None:
        """Schedule ``view`` to be delivered to its recipient's live sessions."""

        notification = view.notification
        self._broadcaster.broadcast(
            notification.recipient_id, build_notification_message(view)
        )


def serialize_notification(
    notification: Notification, actor: ActorInfo | None = None
) -> dict[str, Any]:
    """Return the JSON-ready representation of ``notification``.

    Related ids and the actor block are left out when absent.
    """

    payload: dict[str, Any] = {
        "id": notification.id,
        "recipient_id": notification.recipient_id,
        "type": notification.type.value,
        "actor_id": notification.actor_id,
    }
    if notification.video_id is not None:
        payload["video_id"] = notification.video_id
    if notification.comment_id is not None:
        payload["comment_id"] = notification.comment_id
    payload["text"] = notification.text
    payload["read"] = notification.read
    payload["created_at"] = (
        notification.created_at.isoformat() if notification.created_at else None
    )
    if actor is not None:
        payload["actor"] = serialize_actor(actor)
    return payload


def serialize_actor(actor: ActorInfo) -> dict[str, Any]:
    return {
        "id": actor.id,
        "username": actor.username,
        "display_name": actor.display_name,
        "avatar_url": actor.avatar_url,
    }


def build_notification_message(view: NotificationView) -> dict[str, Any]:
    """Wrap ``view`` in the envelope pushed over the websocket."""

    return {
        "type": "notification",
        "data": serialize_notification(view.notification, view.actor),
    }


def build_init_message(unread_count: int) -> dict[str, Any]:
    """Return the greeting sent once a websocket session is registered."""

    return {"type": "init", "data": {"unread_count": unread_count}}


__all__ = [
    "NotificationPublisher",
    "build_init_message",
    "build_notification_message",
    "serialize_actor",
    "serialize_notification",
]
