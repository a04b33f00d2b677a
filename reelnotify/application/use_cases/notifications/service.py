"""Use cases that create, deliver and read notifications."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

from sqlalchemy.orm import Session

from reelnotify.config import Settings, get_settings
from reelnotify.domain.entities import (
    ActorInfo,
    Notification,
    NotificationPage,
    NotificationType,
    NotificationView,
)
from reelnotify.domain.exceptions import (
    NotificationNotFoundError,
    NotificationValidationError,
    StoreUnavailableError,
)
from reelnotify.domain.ports import ActorDirectory, NotificationBroadcaster, NotificationStore
from reelnotify.infrastructure.notifications import NotificationPublisher
from reelnotify.infrastructure.repositories import NotificationRepository, UserRepository
from reelnotify.utils import utcnow

logger = logging.getLogger(__name__)

# Acting on your own content never notifies you.
SELF_SUPPRESSED_TYPES = frozenset({NotificationType.LIKE, NotificationType.COMMENT})

DEFAULT_DUPLICATE_WINDOW = timedelta(hours=24)
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Striped locks pairing the duplicate check with the insert for one event key.
_DEDUP_LOCKS = tuple(threading.Lock() for _ in range(64))


class NotificationService:
    """Turn domain events into persisted, enriched and delivered notifications."""

    def __init__(
        self,
        store: NotificationStore,
        actors: ActorDirectory,
        publisher: NotificationPublisher,
        *,
        duplicate_window: timedelta = DEFAULT_DUPLICATE_WINDOW,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._actors = actors
        self._publisher = publisher
        self._duplicate_window = duplicate_window
        self._page_size = page_size
        self._max_page_size = max_page_size

    def notify(
        self,
        notification_type: NotificationType | str,
        *,
        recipient_id: int,
        actor_id: int,
        text: str,
        video_id: int | None = None,
        comment_id: int | None = None,
    ) -> Notification | None:
        """Create and push a notification for ``recipient_id``.

        Returns ``None`` when the event is suppressed, either because the
        actor is acting on their own content or because an identical
        notification was created inside the duplicate window. Store failures
        while persisting raise :class:`StoreUnavailableError`; enrichment and
        delivery problems never reach the caller.

        The duplicate check and the insert are serialized per event within
        this process. Separate processes sharing a database can still race
        and store two identical notifications.
        """

        kind = _coerce_type(notification_type)
        _require_identifier("recipient_id", recipient_id)
        _require_identifier("actor_id", actor_id)
        _require_identifier("video_id", video_id, optional=True)
        _require_identifier("comment_id", comment_id, optional=True)

        if actor_id == recipient_id and kind in SELF_SUPPRESSED_TYPES:
            logger.debug("Skipping %s notification for self-action of user %s", kind.value, actor_id)
            return None

        with _dedup_lock(kind, recipient_id, actor_id, video_id):
            if self._is_duplicate(
                kind, recipient_id=recipient_id, actor_id=actor_id, video_id=video_id
            ):
                logger.debug(
                    "Skipping duplicate %s notification from %s to %s",
                    kind.value,
                    actor_id,
                    recipient_id,
                )
                return None

            saved = self._store.create(
                Notification(
                    id=None,
                    recipient_id=recipient_id,
                    type=kind,
                    actor_id=actor_id,
                    text=text,
                    video_id=video_id,
                    comment_id=comment_id,
                )
            )

        view = NotificationView(notification=saved, actor=self._lookup_actor(actor_id))
        self._publisher.publish(view)
        return saved

    def list_notifications(
        self,
        recipient_id: int,
        *,
        cursor: int | None = None,
        limit: int | None = None,
    ) -> NotificationPage:
        """Return one page of notifications, newest first.

        ``cursor`` is the id of the last notification already seen; the page
        holds strictly older entries.
        """

        _require_identifier("recipient_id", recipient_id)
        _require_identifier("cursor", cursor, optional=True)
        page_size = self._resolve_page_size(limit)

        records = list(
            self._store.list_for_recipient(recipient_id, cursor=cursor, limit=page_size + 1)
        )
        has_more = len(records) > page_size
        records = records[:page_size]

        actors = self._lookup_actors({record.actor_id for record in records})
        items = [
            NotificationView(notification=record, actor=actors.get(record.actor_id))
            for record in records
        ]

        try:
            unread = self._store.count_unread(recipient_id)
        except StoreUnavailableError:
            logger.warning("Could not count unread notifications for user %s", recipient_id, exc_info=True)
            unread = 0

        return NotificationPage(
            items=items,
            unread_count=unread,
            has_more=has_more,
            next_cursor=records[-1].id if has_more and records else None,
        )

    def mark_read(self, notification_id: int, *, recipient_id: int) -> None:
        """Flag ``notification_id`` as read; applying it twice is harmless."""

        _require_identifier("notification_id", notification_id)
        _require_identifier("recipient_id", recipient_id)
        if not self._store.mark_as_read(notification_id, recipient_id=recipient_id):
            raise NotificationNotFoundError("Notification not found")

    def mark_all_read(self, recipient_id: int) -> int:
        _require_identifier("recipient_id", recipient_id)
        return self._store.mark_all_as_read(recipient_id)

    def unread_count(self, recipient_id: int) -> int:
        _require_identifier("recipient_id", recipient_id)
        return self._store.count_unread(recipient_id)

    def _is_duplicate(
        self,
        kind: NotificationType,
        *,
        recipient_id: int,
        actor_id: int,
        video_id: int | None,
    ) -> bool:
        try:
            return self._store.exists_recent(
                recipient_id=recipient_id,
                actor_id=actor_id,
                notification_type=kind,
                video_id=video_id,
                since=utcnow() - self._duplicate_window,
            )
        except StoreUnavailableError:
            logger.warning("Duplicate check failed for user %s", recipient_id, exc_info=True)
            return False

    def _lookup_actor(self, actor_id: int) -> ActorInfo | None:
        try:
            actor = self._actors.get_actor_info(actor_id)
        except StoreUnavailableError:
            logger.warning("Could not load actor %s for notification", actor_id, exc_info=True)
            return None
        if actor is None:
            logger.warning("Actor %s not found; delivering notification without details", actor_id)
        return actor

    def _lookup_actors(self, actor_ids: set[int]) -> dict[int, ActorInfo]:
        if not actor_ids:
            return {}
        try:
            return dict(self._actors.get_actor_map(actor_ids))
        except StoreUnavailableError:
            logger.warning("Could not load actors for notification list", exc_info=True)
            return {}

    def _resolve_page_size(self, limit: int | None) -> int:
        if limit is None:
            return self._page_size
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise NotificationValidationError("limit must be a positive integer")
        return min(limit, self._max_page_size)


def build_notification_service(
    session: Session,
    broadcaster: NotificationBroadcaster,
    settings: Settings | None = None,
) -> NotificationService:
    """Wire a service over the SQLAlchemy repositories bound to ``session``."""

    settings = settings or get_settings()
    return NotificationService(
        NotificationRepository(session),
        UserRepository(session),
        NotificationPublisher(broadcaster),
        duplicate_window=timedelta(hours=settings.notification_duplicate_window_hours),
        page_size=settings.notification_page_size,
        max_page_size=settings.notification_max_page_size,
    )


def _dedup_lock(
    kind: NotificationType, recipient_id: int, actor_id: int, video_id: int | None
) -> threading.Lock:
    key = hash((kind.value, recipient_id, actor_id, video_id))
    return _DEDUP_LOCKS[key % len(_DEDUP_LOCKS)]


def _coerce_type(value: NotificationType | str) -> NotificationType:
    try:
        return NotificationType(value)
    except ValueError as exc:
        raise NotificationValidationError(f"Unknown notification type: {value!r}") from exc


def _require_identifier(name: str, value: int | None, *, optional: bool = False) -> None:
    if value is None and optional:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise NotificationValidationError(f"{name} must be a positive integer")


__all__ = [
    "DEFAULT_DUPLICATE_WINDOW",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "NotificationService",
    "SELF_SUPPRESSED_TYPES",
    "build_notification_service",
]
