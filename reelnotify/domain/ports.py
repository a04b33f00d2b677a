"""Collaborator contracts the notification use cases depend on."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from reelnotify.domain.entities import ActorInfo, Notification, NotificationType


class NotificationStore(Protocol):
    """Durable record of notifications."""

    def create(self, notification: Notification) -> Notification:
        """Persist ``notification`` assigning its id, timestamp and unread state."""

    def list_for_recipient(
        self, recipient_id: int, *, cursor: int | None, limit: int
    ) -> Sequence[Notification]:
        """Return up to ``limit`` notifications with ids below ``cursor``, newest first."""

    def mark_as_read(self, notification_id: int, *, recipient_id: int) -> bool:
        """Flag a notification as read; ``False`` when it is not the recipient's."""

    def mark_all_as_read(self, recipient_id: int) -> int:
        """Flag every unread notification of ``recipient_id`` as read."""

    def count_unread(self, recipient_id: int) -> int:
        """Return how many notifications of ``recipient_id`` are unread."""

    def exists_recent(
        self,
        *,
        recipient_id: int,
        actor_id: int,
        notification_type: NotificationType,
        video_id: int | None,
        since: datetime,
    ) -> bool:
        """Return ``True`` when a matching notification was created after ``since``."""


class ActorDirectory(Protocol):
    """Lookup of public user profiles used to enrich notifications."""

    def get_actor_info(self, actor_id: int) -> ActorInfo | None:
        """Return the profile of ``actor_id`` or ``None`` when it is unknown."""

    def get_actor_map(self, actor_ids: Iterable[int]) -> Mapping[int, ActorInfo]:
        """Return the known profiles among ``actor_ids`` keyed by id."""


class NotificationBroadcaster(Protocol):
    """Best-effort realtime delivery of payloads to a recipient."""

    def broadcast(self, recipient_id: int, payload: Mapping[str, Any]) -> None:
        """Queue ``payload`` for every live connection of ``recipient_id``."""


__all__ = ["ActorDirectory", "NotificationBroadcaster", "NotificationStore"]
