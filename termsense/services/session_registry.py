"""SessionRegistry - in-memory store of monitored sessions.

Owns the per-session records and a single subscriber slot per session.
State inside a record is only written by ActivityStateDetector; the
registry itself just guards insert/lookup/delete so sessions on different
threads can be registered and removed concurrently.
"""

import logging
import threading
from collections.abc import Callable

from termsense.models.activity import StateChange
from termsense.models.session import Session

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[StateChange], None]


class SessionRegistry:
    """Central store for all monitored sessions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._subscribers: dict[str, StateChangeCallback] = {}

    def create(self, session_id: str, working_directory: str = "") -> Session:
        """Register a new session in the initial idle state.

        Args:
            session_id: Identifier assigned by the pane owner.
            working_directory: Initial working directory of the pane.

        Returns:
            The created Session.

        Raises:
            ValueError: If session_id is empty.
        """
        if not session_id or not isinstance(session_id, str):
            raise ValueError("session_id is required")

        session = Session(id=session_id, working_directory=working_directory or "")
        with self._lock:
            if session_id in self._sessions:
                logger.warning(f"[SessionRegistry] Replacing existing session {session_id[:8]}")
                self._subscribers.pop(session_id, None)
            self._sessions[session_id] = session
        return session

    def destroy(self, session_id: str) -> bool:
        """Remove a session and its subscriber.

        Returns:
            True if the session existed.
        """
        with self._lock:
            self._subscribers.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> list[Session]:
        """Snapshot of all sessions in registration order."""
        with self._lock:
            return list(self._sessions.values())

    def update_working_directory(self, session_id: str, path: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.working_directory = path
            return True

    def set_subscriber(self, session_id: str, callback: StateChangeCallback) -> bool:
        """Install the state-change subscriber for a session.

        Replaces any previous subscriber. Returns False for unknown sessions.
        """
        with self._lock:
            if session_id not in self._sessions:
                return False
            self._subscribers[session_id] = callback
            return True

    def get_subscriber(self, session_id: str) -> StateChangeCallback | None:
        with self._lock:
            return self._subscribers.get(session_id)

    def clear_subscriber(self, session_id: str) -> None:
        with self._lock:
            self._subscribers.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
