"""Domain entity representing a user."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Profile attributes the notification service needs about a user."""

    id: int | None
    username: str
    display_name: str
    avatar_url: str
    created_at: datetime | None = None
