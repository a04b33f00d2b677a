"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reelnotify.domain.entities import Notification, NotificationType
from reelnotify.domain.exceptions import StoreUnavailableError
from reelnotify.infrastructure.models import NotificationModel
from reelnotify.utils import ensure_utc, to_storage_datetime, utcnow


class NotificationRepository:
    """Provide storage operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel(
            recipient_id=notification.recipient_id,
            type=NotificationType(notification.type).value,
            actor_id=notification.actor_id,
            video_id=notification.video_id,
            comment_id=notification.comment_id,
            text=notification.text,
            read=False,
            created_at=to_storage_datetime(utcnow()),
        )
        with self._translate_errors("create notification"):
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def get(self, notification_id: int) -> Notification | None:
        with self._translate_errors("load notification"):
            model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def list_for_recipient(
        self, recipient_id: int, *, cursor: int | None, limit: int
    ) -> Sequence[Notification]:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.recipient_id == recipient_id
        )
        if cursor is not None:
            query = query.filter(NotificationModel.id < cursor)
        query = query.order_by(NotificationModel.id.desc()).limit(limit)
        with self._translate_errors("list notifications"):
            models = query.all()
        return [self._to_entity(model) for model in models]

    def mark_as_read(self, notification_id: int, *, recipient_id: int) -> bool:
        with self._translate_errors("mark notification as read"):
            model = (
                self.session.query(NotificationModel)
                .filter(NotificationModel.id == notification_id)
                .filter(NotificationModel.recipient_id == recipient_id)
                .one_or_none()
            )
            if model is None:
                return False
            if not model.read:
                model.read = True
                self.session.commit()
        return True

    def mark_all_as_read(self, recipient_id: int) -> int:
        with self._translate_errors("mark notifications as read"):
            updated = (
                self.session.query(NotificationModel)
                .filter(NotificationModel.recipient_id == recipient_id)
                .filter(NotificationModel.read.is_(False))
                .update({NotificationModel.read: True}, synchronize_session=False)
            )
            self.session.commit()
        return int(updated or 0)

    def count_unread(self, recipient_id: int) -> int:
        with self._translate_errors("count unread notifications"):
            count = (
                self.session.query(func.count(NotificationModel.id))
                .filter(NotificationModel.recipient_id == recipient_id)
                .filter(NotificationModel.read.is_(False))
                .scalar()
            )
        return int(count or 0)

    def exists_recent(
        self,
        *,
        recipient_id: int,
        actor_id: int,
        notification_type: NotificationType,
        video_id: int | None,
        since: datetime,
    ) -> bool:
        query = (
            self.session.query(NotificationModel.id)
            .filter(NotificationModel.recipient_id == recipient_id)
            .filter(NotificationModel.actor_id == actor_id)
            .filter(NotificationModel.type == NotificationType(notification_type).value)
            .filter(NotificationModel.created_at >= to_storage_datetime(since))
        )
        if video_id is not None:
            query = query.filter(NotificationModel.video_id == video_id)
        with self._translate_errors("check for duplicate notifications"):
            return query.first() is not None

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailableError(f"Could not {action}") from exc

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationType(model.type),
            actor_id=model.actor_id,
            video_id=model.video_id,
            comment_id=model.comment_id,
            text=model.text,
            read=bool(model.read),
            created_at=ensure_utc(model.created_at),
        )


__all__ = ["NotificationRepository"]
