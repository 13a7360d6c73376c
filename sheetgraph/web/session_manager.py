"""Session management for the HTTP server."""

import logging
import time
import uuid

from ..core.constants import SESSION_ID_LENGTH, SESSION_TTL_SECONDS
from ..core.exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


class HTTPSessionManager:
    """Tracks sessions and their last activity."""

    def __init__(self, session_ttl: int = SESSION_TTL_SECONDS):
        self.session_ttl = session_ttl
        self._sessions: dict[str, dict] = {}

    def register(self) -> dict:
        """
        Register a new session.
        Returns {"session_id": str, "start_ts": float}.
        """
        session_id = uuid.uuid4().hex[:SESSION_ID_LENGTH]
        ts = time.time()

        self._sessions[session_id] = {
            "start_ts": ts,
            "last_activity": ts,
        }

        logger.info(f"Session registered: {session_id}")
        return {"session_id": session_id, "start_ts": ts}

    def touch(self, session_id: str):
        """Record activity on a session. Raises SessionNotFoundError if not found."""
        if not self.is_valid(session_id):
            raise SessionNotFoundError(session_id)
        self._sessions[session_id]["last_activity"] = time.time()

    def is_valid(self, session_id: str) -> bool:
        """Check if session exists and is not expired."""
        if session_id not in self._sessions:
            return False

        age = time.time() - self._sessions[session_id]["last_activity"]
        return age <= self.session_ttl

    def cleanup_expired(self) -> list[str]:
        """Remove expired sessions. Returns the removed session ids."""
        current_time = time.time()
        expired = [
            sid for sid, data in self._sessions.items()
            if current_time - data["last_activity"] > self.session_ttl
        ]

        for sid in expired:
            del self._sessions[sid]
            logger.info(f"Session expired: {sid}")

        return expired

    def count(self) -> int:
        """Return number of active sessions."""
        return len(self._sessions)
