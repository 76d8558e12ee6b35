# =============================================================================
# app/websocket/manager.py - WebSocket Connection Manager
# =============================================================================
# Manages WebSocket connections per user and handles broadcasting.
#
# Usage:
#   from app.websocket import websocket_manager
#
#   # Connect a client
#   await websocket_manager.connect(user_id, websocket)
#
#   # Push an event to every open tab of a user
#   await websocket_manager.broadcast(user_id, {"type": "notification_created", ...})
#
#   # Disconnect a client
#   websocket_manager.disconnect(user_id, websocket)
# =============================================================================

import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections organized by user ID.

    A user can have several connected clients (tabs, devices). Events for
    that user are sent to all of them. Connections that fail on send are
    dropped, and users with no connections left are removed.
    """

    def __init__(self):
        # user_id -> set of WebSocket connections
        self.connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """
        Accept a new WebSocket connection and track it.
        """
        await websocket.accept()
        self.connections.setdefault(user_id, set()).add(websocket)

        logger.info(
            f"WebSocket connected for user {user_id}. "
            f"Total connections: {self.get_connection_count()}"
        )

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        """
        Remove a WebSocket connection from tracking.

        Safe to call more than once for the same connection.
        """
        sockets = self.connections.get(user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self.connections[user_id]

        logger.info(
            f"WebSocket disconnected for user {user_id}. "
            f"Total connections: {self.get_connection_count()}"
        )

    async def broadcast(self, user_id: str, message: dict) -> int:
        """
        Send a message to all connections of a user.

        Returns:
            int: Number of clients the message was sent to
        """
        sockets = self.connections.get(user_id)
        if not sockets:
            logger.debug(f"No connections for user {user_id}, skipping broadcast")
            return 0

        dead_connections: Set[WebSocket] = set()
        sent_count = 0

        # Copy: a failed send may trigger disconnect() from the route handler
        for websocket in list(sockets):
            try:
                await websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to WebSocket: {e}")
                dead_connections.add(websocket)

        for ws in dead_connections:
            self.disconnect(user_id, ws)

        if dead_connections:
            logger.info(f"Cleaned up {len(dead_connections)} dead connections")

        logger.debug(
            f"Broadcast to user {user_id}: "
            f"type={message.get('type')}, sent to {sent_count} clients"
        )

        return sent_count

    def get_connection_count(self, user_id: str | None = None) -> int:
        """
        Number of open connections, for one user or overall.
        """
        if user_id:
            return len(self.connections.get(user_id, set()))
        return sum(len(sockets) for sockets in self.connections.values())

    def get_connected_users(self) -> list[str]:
        """User IDs with at least one open connection."""
        return list(self.connections.keys())


# Global singleton instance
websocket_manager = ConnectionManager()
