"""Shared fixtures for the notification test-suite."""

from __future__ import annotations

import json
import os
import pathlib
import sys
import tempfile
from contextlib import asynccontextmanager

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DB_DIR = pathlib.Path(tempfile.mkdtemp(prefix="reelnotify-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_DIR / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret-key"

import anyio
import pytest

from reelnotify.domain.entities import User


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_database():
    """Start every test from empty tables."""

    from reelnotify.infrastructure import database

    database.initialize_database()
    database.Base.metadata.drop_all(bind=database.engine)
    database.Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture()
def db_session():
    from reelnotify.infrastructure.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session):
    """Return a factory persisting users with predictable profiles."""

    from reelnotify.infrastructure.repositories import UserRepository

    repository = UserRepository(db_session)

    def _make(username: str) -> User:
        return repository.create(
            User(
                id=None,
                username=username,
                display_name=username.title(),
                avatar_url=f"https://cdn.example.com/{username}.png",
            )
        )

    return _make


class FakeTransport:
    """In-memory stand-in for a websocket."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self.fail_writes = False
        self.write_gate: anyio.Event | None = None
        self._inbound_send, self._inbound_receive = anyio.create_memory_object_stream(100)

    async def receive(self):
        try:
            return await self._inbound_receive.receive()
        except anyio.EndOfStream:
            return {"type": "websocket.disconnect", "code": 1000}

    async def send_text(self, data: str) -> None:
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.fail_writes:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_codes.append(code)

    def push_text(self, text: str) -> None:
        self._inbound_send.send_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self) -> None:
        self._inbound_send.send_nowait({"type": "websocket.disconnect", "code": 1000})

    def messages(self) -> list[dict]:
        """Every JSON message written so far, with coalesced frames split apart."""

        return [json.loads(line) for frame in self.sent for line in frame.split("\n")]

    def notifications(self) -> list[dict]:
        return [message for message in self.messages() if message.get("type") == "notification"]


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.calls: list[tuple[int, dict]] = []

    def broadcast(self, recipient_id, payload) -> None:
        self.calls.append((recipient_id, payload))


@pytest.fixture()
def fake_transport():
    return FakeTransport


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@asynccontextmanager
async def _running(dispatcher):
    async with anyio.create_task_group() as task_group:
        task_group.start_soon(dispatcher.run)
        yield dispatcher
        task_group.cancel_scope.cancel()


@pytest.fixture()
def running_dispatcher():
    """Return an async context manager that runs a dispatcher's loop."""

    return _running


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)


@pytest.fixture()
def wait_until():
    return _wait_until
