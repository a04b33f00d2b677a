"""Dispatch loop serializing session bookkeeping and notification fan-out."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

import anyio
from anyio import from_thread
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .registry import ConnectionRegistry
from .session import ConnectionSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterRequest:
    session: ConnectionSession


@dataclass(frozen=True)
class UnregisterRequest:
    session: ConnectionSession


@dataclass(frozen=True)
class BroadcastRequest:
    recipient_id: int
    message: str


@dataclass
class StatsRequest:
    """Ask the loop for a count; ``recipient_id=None`` counts connected users."""

    recipient_id: int | None
    done: anyio.Event = field(default_factory=anyio.Event)
    result: int = 0


ControlEvent = Union[RegisterRequest, UnregisterRequest, BroadcastRequest, StatsRequest]


class NotificationDispatcher:
    """Single consumer of every registry mutation and broadcast.

    Sessions, publishers and stats readers only ever talk to the dispatcher
    through its control stream; :meth:`run` applies the events one at a time,
    so the registry needs no locking. A session whose outbound queue is full
    when a broadcast arrives is evicted instead of being waited on.

    Producers are never dropped when the control stream is full. Worker
    threads wait for room; code running on the event loop parks its events in
    an ordered backlog that a sender task feeds into the stream.
    """

    def __init__(self, *, control_buffer_size: int = 256) -> None:
        self._registry = ConnectionRegistry()
        self._control_send: MemoryObjectSendStream[ControlEvent]
        self._control_receive: MemoryObjectReceiveStream[ControlEvent]
        self._control_send, self._control_receive = anyio.create_memory_object_stream(
            max_buffer_size=control_buffer_size
        )
        self._backlog: deque[ControlEvent] = deque()
        self._task_group: TaskGroup | None = None
        self._flushing = False

    async def run(self) -> None:
        """Consume control events until the surrounding scope is cancelled."""

        logger.info("Notification dispatcher started")
        try:
            async with anyio.create_task_group() as task_group:
                self._task_group = task_group
                self._schedule_flush()
                async for event in self._control_receive:
                    self._handle(event)
        finally:
            self._task_group = None
            self._control_receive.close()
            if self._backlog:
                logger.warning(
                    "Dropping %d undelivered dispatcher event(s)", len(self._backlog)
                )
                self._backlog.clear()
            dropped = self._registry.drain()
            for session in dropped:
                session.close_outbound()
            logger.info(
                "Notification dispatcher stopped; dropped %d live session(s)", len(dropped)
            )

    async def register(self, session: ConnectionSession) -> None:
        if not await self._put(RegisterRequest(session)):
            raise RuntimeError("Notification dispatcher is not running")

    async def unregister(self, session: ConnectionSession) -> None:
        # After shutdown the registry is already drained.
        await self._put(UnregisterRequest(session))

    def broadcast(self, recipient_id: int, payload: Mapping[str, Any]) -> None:
        """Queue ``payload`` for every live session of ``recipient_id``.

        Never raises. Called from an anyio worker thread it blocks until the
        control stream has room; called on the event loop it returns at once
        and the event is forwarded in order by the sender task. Serialization
        problems and a missing event loop are logged and the payload is
        dropped.
        """

        try:
            message = json.dumps(payload, default=str)
        except (TypeError, ValueError):
            logger.exception("Could not serialize notification for user %s", recipient_id)
            return

        request = BroadcastRequest(recipient_id=recipient_id, message=message)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            try:
                from_thread.run(self._put, request)
            except RuntimeError:
                logger.warning(
                    "No event loop reachable; notification for user %s not delivered",
                    recipient_id,
                )
        else:
            self._submit(request)

    async def connection_count(self, recipient_id: int) -> int:
        """Return the number of live sessions of ``recipient_id``."""

        return await self._query(StatsRequest(recipient_id=recipient_id))

    async def connected_user_count(self) -> int:
        """Return the number of recipients with at least one live session."""

        return await self._query(StatsRequest(recipient_id=None))

    async def _query(self, request: StatsRequest) -> int:
        if not await self._put(request):
            return 0
        await request.done.wait()
        return request.result

    async def _put(self, event: ControlEvent) -> bool:
        """Send ``event`` behind anything already waiting in the backlog."""

        if self._backlog:
            self._backlog.append(event)
            self._schedule_flush()
            return True
        try:
            await self._control_send.send(event)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("Notification dispatcher stopped; ignoring %r", event)
            return False
        return True

    def _submit(self, event: ControlEvent) -> None:
        if not self._backlog:
            try:
                self._control_send.send_nowait(event)
            except anyio.WouldBlock:
                pass
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                logger.warning("Notification dispatcher stopped; dropping %r", event)
                return
            else:
                return

        self._backlog.append(event)
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._flushing or not self._backlog or self._task_group is None:
            return
        self._flushing = True
        self._task_group.start_soon(self._flush_backlog)

    async def _flush_backlog(self) -> None:
        try:
            while self._backlog:
                await self._control_send.send(self._backlog[0])
                self._backlog.popleft()
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.warning(
                "Notification dispatcher stopped; dropping %d queued event(s)",
                len(self._backlog),
            )
            self._backlog.clear()
        finally:
            self._flushing = False

    def _handle(self, event: ControlEvent) -> None:
        if isinstance(event, BroadcastRequest):
            self._on_broadcast(event)
        elif isinstance(event, RegisterRequest):
            self._on_register(event.session)
        elif isinstance(event, UnregisterRequest):
            self._on_unregister(event.session)
        elif isinstance(event, StatsRequest):
            self._on_stats(event)
        else:  # pragma: no cover - guarded by the ControlEvent union
            logger.error("Ignoring unknown dispatcher event %r", event)

    def _on_register(self, session: ConnectionSession) -> None:
        count = self._registry.register(session)
        logger.info(
            "Notification session %s registered for user %s (%d open)",
            session.id,
            session.recipient_id,
            count,
        )

    def _on_unregister(self, session: ConnectionSession) -> None:
        if not self._registry.unregister(session):
            return
        session.close_outbound()
        logger.info(
            "Notification session %s unregistered for user %s (%d open)",
            session.id,
            session.recipient_id,
            self._registry.connection_count(session.recipient_id),
        )

    def _on_broadcast(self, request: BroadcastRequest) -> None:
        sessions = self._registry.sessions_for(request.recipient_id)
        if not sessions:
            logger.debug("No live sessions for user %s", request.recipient_id)
            return

        for session in sessions:
            if session.offer(request.message):
                continue
            saturated = session.accepting
            self._registry.unregister(session)
            session.close_outbound()
            if saturated:
                logger.warning(
                    "Evicted notification session %s for user %s: outbound queue saturated",
                    session.id,
                    session.recipient_id,
                )
            else:
                logger.debug(
                    "Dropped notification session %s for user %s: already closing",
                    session.id,
                    session.recipient_id,
                )

    def _on_stats(self, request: StatsRequest) -> None:
        if request.recipient_id is None:
            request.result = self._registry.recipient_count()
        else:
            request.result = self._registry.connection_count(request.recipient_id)
        request.done.set()


__all__ = [
    "BroadcastRequest",
    "NotificationDispatcher",
    "RegisterRequest",
    "StatsRequest",
    "UnregisterRequest",
]
