"""Integration tests for the notification HTTP and websocket endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from reelnotify.application.use_cases.notifications import (
    build_notification_service,
    notify_comment,
    notify_like,
)
from reelnotify.infrastructure.database import SessionLocal
from reelnotify.infrastructure.security import create_access_token


@pytest.fixture()
def client():
    from main import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def alice(make_user):
    return make_user("alice")


@pytest.fixture()
def bob(make_user):
    return make_user("bob")


def _auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def _emit_like(client: TestClient, *, owner_id: int, actor_id: int, video_id: int):
    """Emit a like from inside the application's event loop."""

    dispatcher = client.app.state.notification_dispatcher

    def _emit():
        db = SessionLocal()
        try:
            service = build_notification_service(db, dispatcher)
            return notify_like(
                service, video_owner_id=owner_id, actor_id=actor_id, video_id=video_id
            )
        finally:
            db.close()

    return client.portal.call(_emit)


def test_requests_without_token_are_rejected(client):
    response = client.get("/notifications/")

    assert response.status_code == 401


def test_requests_with_invalid_token_are_rejected(client):
    response = client.get(
        "/notifications/unread-count", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401


def test_token_for_unknown_user_is_rejected(client):
    response = client.get(
        "/notifications/",
        headers={"Authorization": f"Bearer {create_access_token(4242)}"},
    )

    assert response.status_code == 401


def test_list_notifications_with_pagination(client, alice, bob):
    for video_id in range(1, 4):
        _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=video_id)

    first = client.get("/notifications/", params={"limit": 2}, headers=_auth(bob))
    assert first.status_code == 200
    body = first.json()
    assert body["unread_count"] == 3
    assert body["has_more"] is True
    assert [item["video_id"] for item in body["notifications"]] == [3, 2]
    assert body["notifications"][0]["actor"]["username"] == "alice"
    assert "comment_id" not in body["notifications"][0]

    second = client.get(
        "/notifications/",
        params={"limit": 2, "cursor": body["next_cursor"]},
        headers=_auth(bob),
    )
    assert second.status_code == 200
    body = second.json()
    assert [item["video_id"] for item in body["notifications"]] == [1]
    assert body["has_more"] is False
    assert "next_cursor" not in body


def test_invalid_limit_is_rejected(client, bob):
    response = client.get("/notifications/", params={"limit": 0}, headers=_auth(bob))

    assert response.status_code == 422


def test_mark_read_and_unread_count(client, alice, bob):
    created = _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=1)

    assert client.get("/notifications/unread-count", headers=_auth(bob)).json() == {
        "unread_count": 1
    }

    response = client.put(f"/notifications/{created.id}/read", headers=_auth(bob))
    assert response.status_code == 200
    assert response.json() == {"id": created.id, "read": True}

    repeated = client.put(f"/notifications/{created.id}/read", headers=_auth(bob))
    assert repeated.status_code == 200
    assert client.get("/notifications/unread-count", headers=_auth(bob)).json() == {
        "unread_count": 0
    }


def test_mark_read_of_foreign_notification_is_not_found(client, alice, bob):
    created = _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=1)

    response = client.put(f"/notifications/{created.id}/read", headers=_auth(alice))

    assert response.status_code == 404
    assert client.get("/notifications/unread-count", headers=_auth(bob)).json() == {
        "unread_count": 1
    }


def test_mark_all_read(client, alice, bob):
    for video_id in range(1, 3):
        _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=video_id)

    response = client.put("/notifications/read-all", headers=_auth(bob))

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert client.get("/notifications/unread-count", headers=_auth(bob)).json() == {
        "unread_count": 0
    }


def test_stream_requires_a_token(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/stream"):
            pass

    assert excinfo.value.code == 1008


def test_stream_rejects_an_invalid_token(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/stream?token=garbage"):
            pass

    assert excinfo.value.code == 1008


def test_stream_greets_and_pushes_notifications(client, alice, bob):
    _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=1)
    token = create_access_token(bob.id)

    with client.websocket_connect(f"/notifications/stream?token={token}") as websocket:
        assert websocket.receive_json() == {"type": "init", "data": {"unread_count": 1}}

        stats = client.get("/notifications/connections", headers=_auth(bob)).json()
        assert stats == {"connected_users": 1, "sessions": 1}

        created = _emit_like(client, owner_id=bob.id, actor_id=alice.id, video_id=2)
        message = websocket.receive_json()

    assert message["type"] == "notification"
    assert message["data"]["id"] == created.id
    assert message["data"]["recipient_id"] == bob.id
    assert message["data"]["actor"]["username"] == "alice"


def test_stream_pushes_comment_preview(client, alice, bob):
    token = create_access_token(bob.id)
    dispatcher = client.app.state.notification_dispatcher

    def _emit():
        db = SessionLocal()
        try:
            service = build_notification_service(db, dispatcher)
            notify_comment(
                service,
                video_owner_id=bob.id,
                actor_id=alice.id,
                video_id=9,
                comment_id=4,
                comment_text="x" * 80,
            )
        finally:
            db.close()

    with client.websocket_connect(f"/notifications/stream?token={token}") as websocket:
        websocket.receive_json()
        client.portal.call(_emit)
        message = websocket.receive_json()

    assert message["data"]["text"] == "commented: " + "x" * 50 + "..."
    assert message["data"]["comment_id"] == 4


def test_stream_answers_client_ping(client, bob):
    token = create_access_token(bob.id)

    with client.websocket_connect(f"/notifications/stream?token={token}") as websocket:
        websocket.receive_json()
        websocket.send_json({"type": "ping"})

        assert websocket.receive_json() == {"type": "pong"}
