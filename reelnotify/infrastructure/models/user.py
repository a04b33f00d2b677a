"""SQLAlchemy model for the user table."""

from sqlalchemy import Column, DateTime, Integer, String, func

from reelnotify.infrastructure.database import Base


class UserModel(Base):
    """Database representation of a platform user profile."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    display_name = Column(String(100), nullable=False, default="")
    avatar_url = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, server_default=func.now())


__all__ = ["UserModel"]
