"""Persistence layer for user profiles."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reelnotify.domain.entities import ActorInfo, User
from reelnotify.domain.exceptions import StoreUnavailableError
from reelnotify.infrastructure.models import UserModel


class UserRepository:
    """Read and create user profiles; also serves actor lookups."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User | None:
        model = self.session.get(UserModel, user_id)
        return self._to_entity(model) if model else None

    def get_by_username(self, username: str) -> User | None:
        model = (
            self.session.query(UserModel)
            .filter(UserModel.username == username)
            .one_or_none()
        )
        return self._to_entity(model) if model else None

    def create(self, user: User) -> User:
        model = UserModel(
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
        )
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get_map_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        models = self.session.query(UserModel).filter(UserModel.id.in_(ids)).all()
        return {model.id: self._to_entity(model) for model in models}

    def get_actor_info(self, actor_id: int) -> ActorInfo | None:
        try:
            user = self.get(actor_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailableError("Could not load actor profile") from exc
        return self._to_actor(user) if user else None

    def get_actor_map(self, actor_ids: Iterable[int]) -> dict[int, ActorInfo]:
        try:
            users = self.get_map_by_ids(actor_ids)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailableError("Could not load actor profiles") from exc
        return {user_id: self._to_actor(user) for user_id, user in users.items()}

    @staticmethod
    def _to_actor(user: User) -> ActorInfo:
        return ActorInfo(
            id=user.id or 0,
            username=user.username,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
        )

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            username=model.username,
            display_name=model.display_name or "",
            avatar_url=model.avatar_url or "",
            created_at=model.created_at,
        )


__all__ = ["UserRepository"]
