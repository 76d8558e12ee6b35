# =============================================================================
# app/websocket/broadcast.py - Cross-Process Broadcasting
# =============================================================================
# Lets any process (API workers, Celery workers) publish realtime events
# that the API process forwards to connected WebSocket clients.
#
# Uses Redis pub/sub for cross-process communication:
# - Producers call publish_event() to send events
# - FastAPI subscribes and broadcasts to WebSocket clients
#
# Events:
#   - notification_created: A notification row was inserted for a user
# =============================================================================

import json
import logging
from typing import Any

import redis

from app.config import settings

logger = logging.getLogger(__name__)

# Redis channel for realtime events
WEBSOCKET_CHANNEL = "motorhub:realtime:events"


def get_redis_client() -> redis.Redis:
    """Get a Redis client for pub/sub operations."""
    return redis.from_url(settings.REDIS_URL)


def publish_event(user_id: str, event_type: str, data: dict[str, Any]) -> bool:
    """
    Publish an event for one user's WebSocket clients.

    Returns:
        bool: True if published successfully
    """
    try:
        client = get_redis_client()

        message = json.dumps({
            "user_id": user_id,
            "type": event_type,
            **data
        }, default=str)

        client.publish(WEBSOCKET_CHANNEL, message)

        logger.debug(f"Published {event_type} event for user {user_id}")
        return True

    except (redis.RedisError, TypeError, ValueError) as e:
        logger.error(f"Failed to publish event: {e}")
        return False


def publish_notification_created(user_id: str, notification: dict[str, Any]) -> bool:
    """
    Publish a notification_created event.

    Called after a notification row is inserted.
    """
    return publish_event(
        user_id=user_id,
        event_type="notification_created",
        data={"notification": notification},
    )
