"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.exc import SQLAlchemyError

from reelnotify.application.use_cases.notifications import NotificationService
from reelnotify.config import get_settings
from reelnotify.domain.entities import NotificationPage, NotificationView
from reelnotify.domain.exceptions import (
    NotificationNotFoundError,
    NotificationValidationError,
    StoreUnavailableError,
)
from reelnotify.infrastructure.database import SessionLocal
from reelnotify.infrastructure.notifications import (
    ConnectionSession,
    NotificationDispatcher,
    build_init_message,
)
from reelnotify.infrastructure.repositories import NotificationRepository
from reelnotify.interfaces.api.dependencies import (
    get_current_user_id,
    get_notification_dispatcher,
    get_notification_service,
    resolve_current_user_id,
)
from reelnotify.interfaces.api.schemas import (
    ActorRead,
    ConnectionStatsRead,
    NotificationMarkAllReadResponse,
    NotificationMarkReadResponse,
    NotificationPageRead,
    NotificationRead,
    UnreadCountRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

_STORE_UNAVAILABLE = "Notification store is unavailable"


def _view_to_schema(view: NotificationView) -> NotificationRead:
    notification = view.notification
    actor = view.actor
    return NotificationRead(
        id=notification.id or 0,
        recipient_id=notification.recipient_id,
        type=notification.type,
        actor_id=notification.actor_id,
        video_id=notification.video_id,
        comment_id=notification.comment_id,
        text=notification.text,
        read=notification.read,
        created_at=notification.created_at,
        actor=ActorRead(
            id=actor.id,
            username=actor.username,
            display_name=actor.display_name,
            avatar_url=actor.avatar_url,
        )
        if actor
        else None,
    )


def _page_to_schema(page: NotificationPage) -> NotificationPageRead:
    return NotificationPageRead(
        notifications=[_view_to_schema(view) for view in page.items],
        unread_count=page.unread_count,
        has_more=page.has_more,
        next_cursor=page.next_cursor,
    )


@router.get("/", response_model=NotificationPageRead, response_model_exclude_none=True)
def list_notifications(
    cursor: int | None = Query(default=None, ge=1, description="Id of the last notification seen"),
    limit: int | None = Query(default=None, ge=1, description="Page size, capped at the configured maximum"),
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPageRead:
    """Return the authenticated user's notifications, newest first."""

    try:
        page = service.list_notifications(user_id, cursor=cursor, limit=limit)
    except NotificationValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_STORE_UNAVAILABLE
        ) from exc
    return _page_to_schema(page)


@router.get("/unread-count", response_model=UnreadCountRead)
def get_unread_count(
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountRead:
    try:
        count = service.unread_count(user_id)
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_STORE_UNAVAILABLE
        ) from exc
    return UnreadCountRead(unread_count=count)


@router.put("/read-all", response_model=NotificationMarkAllReadResponse)
def mark_all_notifications_read(
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationMarkAllReadResponse:
    try:
        updated = service.mark_all_read(user_id)
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_STORE_UNAVAILABLE
        ) from exc
    return NotificationMarkAllReadResponse(updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationMarkReadResponse)
def mark_notification_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationMarkReadResponse:
    """Mark one of the user's notifications as read."""

    try:
        service.mark_read(notification_id, recipient_id=user_id)
    except (NotificationNotFoundError, NotificationValidationError) as exc:
        # Foreign and malformed ids look the same as missing ones.
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found"
        ) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_STORE_UNAVAILABLE
        ) from exc
    return NotificationMarkReadResponse(id=notification_id)


@router.get("/connections", response_model=ConnectionStatsRead)
async def get_connection_stats(
    user_id: int = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ConnectionStatsRead:
    """Return how many users are connected and how many sockets the caller holds."""

    return ConnectionStatsRead(
        connected_users=await dispatcher.connected_user_count(),
        sessions=await dispatcher.connection_count(user_id),
    )


@router.websocket("/stream")
async def notifications_stream(
    websocket: WebSocket,
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> None:
    """Websocket endpoint that streams notifications to the authenticated user.

    The first frame is ``{"type": "init", "data": {"unread_count": n}}``. The
    server sends ``{"type": "ping"}`` on a fixed schedule; a client stays
    connected by sending any frame within the heartbeat window, typically
    ``{"type": "pong"}``. Sending ``{"type": "ping"}`` is answered with
    ``{"type": "pong"}``.
    """

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    db = SessionLocal()
    try:
        user_id = resolve_current_user_id(token, db)
        unread = NotificationRepository(db).count_unread(user_id)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    except (StoreUnavailableError, SQLAlchemyError):
        logger.warning("Rejecting notification stream: store unavailable", exc_info=True)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    finally:
        db.close()

    await websocket.accept()

    settings = get_settings()
    session = ConnectionSession(
        user_id,
        websocket,
        queue_size=settings.notification_session_queue_size,
        ping_interval=settings.notification_ping_interval_seconds,
        pong_timeout=settings.notification_pong_timeout_seconds,
        write_timeout=settings.notification_write_timeout_seconds,
        max_message_size=settings.notification_max_message_bytes,
    )
    await session.serve(dispatcher, greeting=json.dumps(build_init_message(unread)))
