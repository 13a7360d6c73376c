"""WebSocket connection manager for analysis progress updates."""

import logging
from fastapi import WebSocket

from ..core.analysis import ProgressLine

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections, one per session."""

    def __init__(self):
        # Map: session_id -> WebSocket
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, session_id: str):
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self.active_connections[session_id] = websocket
        logger.info(f"WebSocket connected: {session_id}")

    def disconnect(self, session_id: str):
        """Remove a WebSocket connection."""
        if session_id in self.active_connections:
            del self.active_connections[session_id]
            logger.info(f"WebSocket disconnected: {session_id}")

    async def send_personal(self, session_id: str, message: dict):
        """Send message to a specific session."""
        if session_id in self.active_connections:
            try:
                await self.active_connections[session_id].send_json(message)
            except Exception as e:
                logger.error(f"Error sending to {session_id}: {e}")
                self.disconnect(session_id)

    async def send_progress(self, session_id: str, line: ProgressLine):
        """Forward one analysis progress line to a session."""
        await self.send_personal(session_id, {
            "type": "progress",
            "message": line.message,
            "level": line.level,
        })

    def count(self) -> int:
        """Return number of active connections."""
        return len(self.active_connections)
