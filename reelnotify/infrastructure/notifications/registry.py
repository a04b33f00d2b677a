"""Bookkeeping of live notification sessions grouped by recipient."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .session import ConnectionSession


class ConnectionRegistry:
    """Map each recipient to the set of its live sessions.

    The registry does no locking of its own: it must only be touched by the
    dispatch loop, which serializes every mutation and lookup.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, set[ConnectionSession]] = {}

    def register(self, session: ConnectionSession) -> int:
        """Add ``session`` under its recipient and return that recipient's count."""

        sessions = self._sessions.setdefault(session.recipient_id, set())
        sessions.add(session)
        return len(sessions)

    def unregister(self, session: ConnectionSession) -> bool:
        """Remove ``session``; return ``False`` when it was not registered."""

        sessions = self._sessions.get(session.recipient_id)
        if sessions is None or session not in sessions:
            return False
        sessions.discard(session)
        if not sessions:
            del self._sessions[session.recipient_id]
        return True

    def sessions_for(self, recipient_id: int) -> tuple[ConnectionSession, ...]:
        """Return a snapshot of the sessions currently held for ``recipient_id``."""

        return tuple(self._sessions.get(recipient_id, ()))

    def connection_count(self, recipient_id: int) -> int:
        return len(self._sessions.get(recipient_id, ()))

    def recipient_count(self) -> int:
        return len(self._sessions)

    def drain(self) -> list[ConnectionSession]:
        """Remove and return every registered session."""

        sessions = [session for group in self._sessions.values() for session in group]
        self._sessions.clear()
        return sessions

    def __contains__(self, session: object) -> bool:
        recipient_id = getattr(session, "recipient_id", None)
        return session in self._sessions.get(recipient_id, ())

    def __len__(self) -> int:
        return sum(len(group) for group in self._sessions.values())


__all__ = ["ConnectionRegistry"]
