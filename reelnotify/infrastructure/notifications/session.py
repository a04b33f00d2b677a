"""Per-connection bridge between a websocket and the dispatch loop."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from fastapi import status

if TYPE_CHECKING:
    from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

PING_FRAME = '{"type": "ping"}'
PONG_FRAME = '{"type": "pong"}'


class SessionTransport(Protocol):
    """Subset of :class:`starlette.websockets.WebSocket` used by a session."""

    async def receive(self) -> Mapping[str, Any]: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionSession:
    """One live websocket of a recipient.

    The session owns a bounded outbound queue fed by the dispatch loop and two
    pumps: the writer flushes queued messages and emits heartbeats, the reader
    watches for peer liveness and disconnects. When either pump stops, the
    other is cancelled and the session unregisters itself.

    Any inbound frame proves the peer is alive. A client ``{"type": "ping"}``
    is also answered with ``{"type": "pong"}``. ``max_message_size`` is a
    protocol limit checked on frames the server has already read; the memory
    bound per frame is the server's websocket size limit.
    """

    def __init__(
        self,
        recipient_id: int,
        transport: SessionTransport,
        *,
        queue_size: int = 256,
        ping_interval: float = 54.0,
        pong_timeout: float = 60.0,
        write_timeout: float = 10.0,
        max_message_size: int = 512,
    ) -> None:
        self.id = uuid4().hex
        self.recipient_id = recipient_id
        self._transport = transport
        self._ping_interval = ping_interval
        self._pong_timeout = pong_timeout
        self._write_timeout = write_timeout
        self._max_message_size = max_message_size
        self._close_code = status.WS_1000_NORMAL_CLOSURE
        self._outbound_closed = False
        self._writer_stopped = False
        self._outbound_send: MemoryObjectSendStream[str]
        self._outbound_receive: MemoryObjectReceiveStream[str]
        self._outbound_send, self._outbound_receive = anyio.create_memory_object_stream(
            max_buffer_size=queue_size
        )

    def __repr__(self) -> str:
        return f"<ConnectionSession id={self.id} recipient_id={self.recipient_id}>"

    @property
    def pending(self) -> int:
        """Number of messages waiting to be written."""

        return self._outbound_send.statistics().current_buffer_used

    @property
    def outbound_closed(self) -> bool:
        return self._outbound_closed

    @property
    def accepting(self) -> bool:
        """``False`` once the queue is closed or its writer has stopped."""

        return not (self._outbound_closed or self._writer_stopped)

    def offer(self, message: str) -> bool:
        """Queue ``message`` without waiting; ``False`` if the queue is full or closed."""

        try:
            self._outbound_send.send_nowait(message)
        except (anyio.WouldBlock, anyio.ClosedResourceError, anyio.BrokenResourceError):
            return False
        return True

    def close_outbound(self) -> None:
        """Close the outbound queue so the writer finishes after flushing it."""

        self._outbound_closed = True
        self._outbound_send.close()

    async def serve(
        self, dispatcher: NotificationDispatcher, *, greeting: str | None = None
    ) -> None:
        """Register with ``dispatcher`` and pump messages until the connection ends."""

        await dispatcher.register(self)
        if greeting is not None:
            self.offer(greeting)
        try:
            async with anyio.create_task_group() as task_group:
                scope = task_group.cancel_scope
                task_group.start_soon(self._run_pump, "writer", self._write_pump, scope)
                task_group.start_soon(self._run_pump, "reader", self._read_pump, scope)
        finally:
            with anyio.move_on_after(self._write_timeout, shield=True):
                await dispatcher.unregister(self)
                await self._close_transport()
            logger.info(
                "Notification session %s closed for user %s", self.id, self.recipient_id
            )

    async def _run_pump(
        self,
        name: str,
        pump: Callable[[], Awaitable[None]],
        scope: anyio.CancelScope,
    ) -> None:
        try:
            await pump()
        except Exception:
            logger.warning(
                "Notification session %s %s pump failed", self.id, name, exc_info=True
            )
        finally:
            scope.cancel()

    async def _write_pump(self) -> None:
        receive = self._outbound_receive
        next_ping = anyio.current_time() + self._ping_interval
        try:
            async with receive:
                while True:
                    message: str | None = None
                    with anyio.move_on_after(max(next_ping - anyio.current_time(), 0)):
                        try:
                            message = await receive.receive()
                        except anyio.EndOfStream:
                            logger.debug("Outbound queue of session %s closed", self.id)
                            return

                    if message is None:
                        await self._write(PING_FRAME)
                        next_ping = anyio.current_time() + self._ping_interval
                        continue

                    await self._write(self._coalesce(message))
        finally:
            self._writer_stopped = True

    def _coalesce(self, first: str) -> str:
        batch = [first]
        while True:
            try:
                batch.append(self._outbound_receive.receive_nowait())
            except (anyio.WouldBlock, anyio.EndOfStream):
                break
        return "\n".join(batch)

    async def _write(self, frame: str) -> None:
        with anyio.fail_after(self._write_timeout):
            await self._transport.send_text(frame)

    async def _read_pump(self) -> None:
        while True:
            try:
                with anyio.fail_after(self._pong_timeout):
                    message = await self._transport.receive()
            except TimeoutError:
                logger.info(
                    "Session %s missed its heartbeat window of %ss",
                    self.id,
                    self._pong_timeout,
                )
                self._close_code = status.WS_1001_GOING_AWAY
                return

            if message.get("type") == "websocket.disconnect":
                logger.debug(
                    "Peer closed session %s with code %s", self.id, message.get("code")
                )
                return

            if _frame_size(message) > self._max_message_size:
                logger.warning(
                    "Session %s sent a frame larger than %s bytes",
                    self.id,
                    self._max_message_size,
                )
                self._close_code = status.WS_1009_MESSAGE_TOO_BIG
                return

            if _is_client_ping(message):
                self.offer(PONG_FRAME)

    async def _close_transport(self) -> None:
        try:
            await self._transport.close(code=self._close_code)
        except Exception:  # pragma: no cover - socket already gone
            logger.debug("Transport of session %s was already closed", self.id)


def _is_client_ping(message: Mapping[str, Any]) -> bool:
    text = message.get("text")
    if not text:
        return False
    try:
        decoded = json.loads(text)
    except ValueError:
        return False
    return isinstance(decoded, dict) and decoded.get("type") == "ping"


def _frame_size(message: Mapping[str, Any]) -> int:
    text = message.get("text")
    if text is not None:
        return len(text.encode("utf-8"))
    data = message.get("bytes")
    return len(data) if data is not None else 0


__all__ = ["ConnectionSession", "PING_FRAME", "PONG_FRAME", "SessionTransport"]
