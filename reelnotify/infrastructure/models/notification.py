"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import expression

from reelnotify.infrastructure.database import Base
from reelnotify.utils import to_storage_datetime, utcnow


def _storage_now():
    return to_storage_datetime(utcnow())


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_read", "recipient_id", "read"),
        Index(
            "ix_notification_duplicate_lookup",
            "recipient_id",
            "actor_id",
            "type",
            "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(Integer, nullable=False, index=True)
    type = Column(String(20), nullable=False)
    actor_id = Column(Integer, nullable=False)
    video_id = Column(Integer, nullable=True)
    comment_id = Column(Integer, nullable=True)
    text = Column(Text, nullable=False)
    read = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    created_at = Column(DateTime(), nullable=False, default=_storage_now)


__all__ = ["NotificationModel"]
