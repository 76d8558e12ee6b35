# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# WebSocket endpoint for real-time notifications.
#
# Connect: ws://host/ws/notifications?token={jwt}
#
# Events:
#   - {"type": "connected", "user_id": "..."}
#   - {"type": "notification_created", "notification": {...}}
# =============================================================================

import logging
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, Query
from fastapi.concurrency import run_in_threadpool

from app.auth.dependencies import verify_access_token
from app.websocket.manager import websocket_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT token for authentication")
):
    """
    Stream the authenticated user's new notifications.

    Authentication is required via the `token` query parameter.
    Send "ping" to receive "pong" as a keepalive.

    Example event:
        {
            "type": "notification_created",
            "notification": {"id": "...", "type": "post_like", "title": "New like", ...}
        }
    """
    try:
        user = await run_in_threadpool(verify_access_token, token)
    except HTTPException as e:
        logger.warning(f"WebSocket auth failed: {e.detail}")
        await websocket.close(code=4001, reason="Invalid token")
        return

    user_id = str(user.id)
    await websocket_manager.connect(user_id, websocket)

    try:
        await websocket.send_json({
            "type": "connected",
            "user_id": user_id,
            "message": "Connected to notifications"
        })

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
            else:
                logger.debug(f"WebSocket received: {data[:100]}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected for user {user_id}")
    finally:
        websocket_manager.disconnect(user_id, websocket)


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection statistics.
    """
    return {
        "total_connections": websocket_manager.get_connection_count(),
        "connected_users": len(websocket_manager.get_connected_users()),
    }
