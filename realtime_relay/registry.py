from threading import Lock
from typing import TYPE_CHECKING

from realtime_relay.logging import logger
from realtime_relay.schemas.session import SessionInfo
from realtime_relay.utils.metrics import MetricsCollector

if TYPE_CHECKING:
    from realtime_relay.session import RelaySession


class SessionRegistry:
    """
    Registry of live relay sessions.

    Maps session ids to sessions from acceptance until the session reaches
    CLOSED. The lock is held only for the single dict operation, never
    across an await, so sessions register and deregister independently.
    Enumeration is for diagnostics only; forwarding never looks sessions up.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, "RelaySession"] = {}
        self._lock = Lock()

    def register(self, session: "RelaySession") -> None:
        """
        Adds a session under its id.

        Raises:
            ValueError: If a session with the same id is already registered.
        """
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session {session.id} is already registered")
            self._sessions[session.id] = session
            count = len(self._sessions)

        MetricsCollector.set_active_sessions(count)
        logger.debug(f"Session {session.id} registered ({count} active)")

    def unregister(self, session_id: str) -> "RelaySession | None":
        """
        Removes a session by id.

        Returns:
            The removed session, or None if the id was not registered.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
            count = len(self._sessions)

        if session is None:
            return None

        MetricsCollector.set_active_sessions(count)
        logger.debug(f"Session {session_id} unregistered ({count} active)")
        return session

    def get(self, session_id: str) -> "RelaySession | None":
        with self._lock:
            return self._sessions.get(session_id)

    def sessions(self) -> list["RelaySession"]:
        """Snapshot of registered sessions."""
        with self._lock:
            return list(self._sessions.values())

    def snapshot(self) -> list[SessionInfo]:
        """Diagnostics view of every registered session, oldest first."""
        infos = [session.info() for session in self.sessions()]
        return sorted(infos, key=lambda info: info.created_at)

    def stale(self, max_age_seconds: float) -> list[SessionInfo]:
        """Sessions registered for longer than ``max_age_seconds``."""
        return [
            info for info in self.snapshot() if info.age_seconds > max_age_seconds
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
