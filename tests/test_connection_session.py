"""Tests for the per-connection writer and reader pumps."""

from __future__ import annotations

import json

import anyio
import pytest

from reelnotify.infrastructure.notifications import ConnectionSession, NotificationDispatcher
from reelnotify.infrastructure.notifications.session import PING_FRAME, PONG_FRAME

pytestmark = pytest.mark.anyio


async def test_greeting_is_the_first_frame(fake_transport, running_dispatcher, wait_until):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport)
    greeting = json.dumps({"type": "init", "data": {"unread_count": 3}})

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(lambda: session.serve(dispatcher, greeting=greeting))
        await wait_until(lambda: transport.sent)
        dispatcher.broadcast(1, {"type": "notification", "data": {"id": 1}})
        await wait_until(lambda: transport.notifications())
        transport.disconnect()

    assert transport.messages()[0] == {"type": "init", "data": {"unread_count": 3}}


async def test_queued_messages_are_coalesced(fake_transport, running_dispatcher, wait_until):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport)
    for body in ("one", "two", "three"):
        assert session.offer(json.dumps({"body": body}))

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(session.serve, dispatcher)
        await wait_until(lambda: transport.sent)
        transport.disconnect()

    assert transport.sent[0].split("\n") == [
        json.dumps({"body": "one"}),
        json.dumps({"body": "two"}),
        json.dumps({"body": "three"}),
    ]


async def test_heartbeat_is_sent_on_schedule(fake_transport, running_dispatcher, wait_until):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport, ping_interval=0.05, pong_timeout=1)

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(session.serve, dispatcher)
        await wait_until(lambda: transport.sent.count(PING_FRAME) >= 2)
        transport.disconnect()


async def test_silent_peer_is_disconnected(fake_transport, running_dispatcher):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport, ping_interval=0.05, pong_timeout=0.2)

    async with running_dispatcher(dispatcher):
        with anyio.fail_after(2):
            await session.serve(dispatcher)
        assert await dispatcher.connection_count(1) == 0

    assert transport.close_codes == [1001]


async def test_inbound_frames_keep_the_session_alive(
    fake_transport, running_dispatcher, wait_until
):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport, ping_interval=0.05, pong_timeout=0.2)

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(session.serve, dispatcher)
        for _ in range(6):
            await anyio.sleep(0.1)
            transport.push_text('{"type": "pong"}')
        assert await dispatcher.connection_count(1) == 1
        assert transport.close_codes == []
        transport.disconnect()


async def test_oversized_frame_closes_the_session(fake_transport, running_dispatcher):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport, max_message_size=16)
    transport.push_text("x" * 17)

    async with running_dispatcher(dispatcher):
        with anyio.fail_after(2):
            await session.serve(dispatcher)
        assert await dispatcher.connection_count(1) == 0

    assert transport.close_codes == [1009]


async def test_peer_disconnect_unregisters_once(fake_transport, running_dispatcher):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport)
    transport.disconnect()

    async with running_dispatcher(dispatcher):
        with anyio.fail_after(2):
            await session.serve(dispatcher)
        assert await dispatcher.connected_user_count() == 0

    assert transport.close_codes == [1000]
    assert session.outbound_closed


async def test_write_failure_ends_the_session(fake_transport, running_dispatcher):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    transport.fail_writes = True
    session = ConnectionSession(1, transport)
    session.offer(json.dumps({"type": "notification", "data": {"id": 1}}))

    async with running_dispatcher(dispatcher):
        with anyio.fail_after(2):
            await session.serve(dispatcher)
        assert await dispatcher.connection_count(1) == 0

    assert transport.sent == []
    assert transport.close_codes == [1000]


async def test_stalled_write_times_out(fake_transport, running_dispatcher):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    transport.write_gate = anyio.Event()
    session = ConnectionSession(1, transport, write_timeout=0.1)
    session.offer(json.dumps({"type": "notification", "data": {"id": 1}}))

    async with running_dispatcher(dispatcher):
        with anyio.fail_after(2):
            await session.serve(dispatcher)
        assert await dispatcher.connection_count(1) == 0


async def test_evicted_session_flushes_then_stops(fake_transport, running_dispatcher, wait_until):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    transport.write_gate = anyio.Event()
    session = ConnectionSession(1, transport, queue_size=1)

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(session.serve, dispatcher)
        while await dispatcher.connection_count(1) < 1:
            await anyio.sleep(0.01)

        dispatcher.broadcast(1, {"type": "notification", "data": {"id": 1}})
        await dispatcher.connection_count(1)
        # The writer picks up the first message and blocks on the gate.
        await wait_until(lambda: session.pending == 0)
        dispatcher.broadcast(1, {"type": "notification", "data": {"id": 2}})
        dispatcher.broadcast(1, {"type": "notification", "data": {"id": 3}})
        assert await dispatcher.connection_count(1) == 0
        assert session.outbound_closed

        transport.write_gate.set()

    assert [message["data"]["id"] for message in transport.notifications()] == [1, 2]
    assert transport.close_codes == [1000]


async def test_client_ping_is_answered_with_pong(fake_transport, running_dispatcher, wait_until):
    dispatcher = NotificationDispatcher()
    transport = fake_transport()
    session = ConnectionSession(1, transport)

    async with running_dispatcher(dispatcher), anyio.create_task_group() as task_group:
        task_group.start_soon(session.serve, dispatcher)
        transport.push_text('{"type": "hello"}')
        transport.push_text("not json")
        transport.push_text('{"type": "ping"}')
        await wait_until(lambda: PONG_FRAME in transport.sent)
        transport.disconnect()

    assert transport.sent.count(PONG_FRAME) == 1
    assert transport.close_codes == [1000]
