# =============================================================================
# app/routers/notifications.py - Notification Endpoints
# =============================================================================
# User endpoints (list, read, preferences) plus the cron trigger for
# reminder batches, which authenticates with CRON_SECRET in the body.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from app.auth import get_current_user, AuthUser
from app.auth.dependencies import secret_matches
from app.exceptions import UnauthorizedError
from core.models.notification import NotificationPreferences, ReminderRequest, ReminderType
from core.services.notification_service import DEFAULT_LIST_LIMIT, NotificationService

router = APIRouter()


# =============================================================================
# Reminders (cron)
# =============================================================================
# Declared before /{notification_id} routes so "reminders" isn't taken as an id

@router.get("/reminders")
async def reminders_info():
    """Describe the reminder trigger."""
    return {
        "message": "Reminder notifications API",
        "available_types": [t.value for t in ReminderType],
        "usage": "POST with { type: 'event_reminders', secret: 'your-secret' }",
    }


@router.post("/reminders")
async def trigger_reminders(body: ReminderRequest):
    """
    Run reminder RPCs. Called by a cron job.

    Raises:
        401: Wrong secret
        400: Unknown reminder type
    """
    if not secret_matches(body.secret):
        raise UnauthorizedError("Unauthorized")
    return {"success": True, **NotificationService.run_reminders(body.type)}


# =============================================================================
# Preferences
# =============================================================================

@router.get("/preferences")
async def get_preferences(user: AuthUser = Depends(get_current_user)):
    """The user's push preferences; missing keys mean enabled."""
    return {"data": NotificationService.get_preferences(user.id)}


@router.put("/preferences")
async def update_preferences(
    body: NotificationPreferences,
    user: AuthUser = Depends(get_current_user),
):
    """Merge the sent flags into the stored preferences."""
    merged = NotificationService.update_preferences(user.id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": merged}


# =============================================================================
# Notifications
# =============================================================================

@router.get("")
async def list_notifications(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, le=200)] = DEFAULT_LIST_LIMIT,
):
    """Latest notifications plus the unread count."""
    return NotificationService.list_for_user(user.id, limit=limit)


@router.post("/read-all")
async def mark_all_read(user: AuthUser = Depends(get_current_user)):
    """Mark every notification as read."""
    return {"success": True, "updated": NotificationService.mark_all_read(user.id)}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str = Path(..., description="Notification ID"),
    user: AuthUser = Depends(get_current_user),
):
    """Mark one notification as read."""
    return {"success": True, "data": NotificationService.mark_read(user.id, notification_id)}
