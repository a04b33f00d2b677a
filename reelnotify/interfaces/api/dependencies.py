"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from reelnotify.application.use_cases.notifications import (
    NotificationService,
    build_notification_service,
)
from reelnotify.infrastructure.database import get_db
from reelnotify.infrastructure.notifications import NotificationDispatcher
from reelnotify.infrastructure.repositories import UserRepository
from reelnotify.infrastructure.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_current_user_id(token: str, db: Session) -> int:
    """Return the id of the user identified by ``token``."""

    try:
        user_id = decode_access_token(token)
    except ValueError as exc:
        raise _unauthorized("Invalid credentials") from exc

    if UserRepository(db).get(user_id) is None:
        raise _unauthorized("User not found")
    return user_id


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> int:
    """Return the authenticated user id from the bearer token."""

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing bearer token")
    return resolve_current_user_id(credentials.credentials, db)


def get_notification_dispatcher(connection: HTTPConnection) -> NotificationDispatcher:
    """Return the process-wide dispatcher attached to the application."""

    dispatcher = getattr(connection.app.state, "notification_dispatcher", None)
    if dispatcher is None:  # pragma: no cover - misconfigured application
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime notifications are not available",
        )
    return dispatcher


def get_notification_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> NotificationService:
    """Return a notification service bound to the request's database session."""

    return build_notification_service(db, dispatcher)
