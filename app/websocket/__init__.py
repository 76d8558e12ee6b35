# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Provides real-time notification delivery.
#
# Usage:
#   # Send an event to all connections of a user (from FastAPI)
#   from app.websocket import websocket_manager
#
#   await websocket_manager.broadcast(user_id, {
#       "type": "notification_created",
#       "notification": {...}
#   })
#
#   # Publish events from any process
#   from app.websocket.broadcast import publish_notification_created
#
#   publish_notification_created(user_id, notification_row)
# =============================================================================

from app.websocket.manager import websocket_manager
from app.websocket.broadcast import (
    publish_event,
    publish_notification_created,
    WEBSOCKET_CHANNEL,
)

__all__ = [
    "websocket_manager",
    "publish_event",
    "publish_notification_created",
    "WEBSOCKET_CHANNEL",
]
