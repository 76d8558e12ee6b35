# =============================================================================
# app/routers/push.py - Push Notification Endpoints
# =============================================================================
# - /subscribe: device registration for the signed-in user
# - /send: internal single-user (POST) and batch (PUT) delivery
# - /webhook: Supabase database webhook on notifications inserts
#
# /send and /webhook are server-to-server: they need CRON_SECRET in the
# X-Internal-Secret header or an admin bearer token.
# =============================================================================

import logging

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from app.auth import get_current_user, require_internal_or_admin, AuthUser
from core.models.notification import (
    PushBatchRequest,
    PushSendRequest,
    PushSubscribeRequest,
    PushUnsubscribeRequest,
    WebhookPayload,
)
from core.services.notification_service import NotificationService
from core.services.push_service import PushService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Subscriptions
# =============================================================================

@router.post("/subscribe")
async def subscribe(
    body: PushSubscribeRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Save (or refresh) this device's FCM token."""
    return PushService.subscribe(user.id, body.subscription)


@router.delete("/subscribe")
async def unsubscribe(
    body: PushUnsubscribeRequest | None = Body(default=None),
    user: AuthUser = Depends(get_current_user),
):
    """Remove this device's token, or every device when no token is sent."""
    token = body.fcm_token if body else None
    removed = PushService.unsubscribe(user.id, token)
    return {"success": True, "removed": removed}


# =============================================================================
# Delivery (internal)
# =============================================================================

@router.post("/send", dependencies=[Depends(require_internal_or_admin)])
async def send_push(body: PushSendRequest):
    """
    Deliver a notification to every device of one user.

    Answers 500 only when every device failed.
    """
    result = PushService.send_to_user(body.user_id, body.notification)
    status_code = 500 if not result.success and result.failed else 200
    return JSONResponse(status_code=status_code, content=result.to_response())


@router.put("/send", dependencies=[Depends(require_internal_or_admin)])
async def send_push_batch(body: PushBatchRequest):
    """Deliver one notification to several users."""
    result = PushService.send_to_users(body.user_ids, body.notification)
    return result.to_response()


@router.post("/webhook", dependencies=[Depends(require_internal_or_admin)])
async def notification_webhook(body: WebhookPayload):
    """
    Queue push delivery for a newly inserted notification row.
    """
    record = body.record
    if body.type != "INSERT" or not record or not record.get("user_id"):
        return {"success": True, "message": "Not a new notification"}

    queued = NotificationService.queue_push(record)
    logger.info(f"Webhook queued push for notification {record.get('id')}: {queued}")
    return {"success": True, "queued": queued}
