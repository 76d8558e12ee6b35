# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background delivery for notifications.
#
# Tasks:
# - dispatch_push_notification: Push one notification to a user's devices
# - send_reminders: Run reminder RPCs (scheduled hourly by celery beat)
# =============================================================================

import logging
from typing import Any

from celery import shared_task
from pydantic import ValidationError

logger = logging.getLogger(__name__)

# First retry after 30s, then 60s, 120s, ...
RETRY_BASE_SECONDS = 30


def retry_countdown(retries: int) -> int:
    """Exponential backoff for the given retry count (0-based)."""
    return RETRY_BASE_SECONDS * (2 ** retries)


def _retry_or_give_up(task, user_id: str, reason: str) -> dict[str, Any]:
    """
    Schedule another attempt, or log and return a failure once the retry
    budget is used up.
    """
    retries = task.request.retries
    if retries < task.max_retries:
        countdown = retry_countdown(retries)
        logger.warning(
            f"Push to user {user_id} failed ({reason}); retry {retries + 1}/{task.max_retries} in {countdown}s"
        )
        raise task.retry(countdown=countdown)

    logger.error(f"Push to user {user_id} abandoned after {retries} retries: {reason}")
    return {"success": False, "error": reason, "retries": retries}


# =============================================================================
# Push Delivery
# =============================================================================

@shared_task(bind=True, name="workers.tasks.dispatch_push_notification")
def dispatch_push_notification(
    self,
    user_id: str,
    notification: dict[str, Any],
) -> dict[str, Any]:
    """
    Deliver a notification to every device of one user.

    Queued by NotificationService after a notification row is written.
    Retries with exponential backoff when the subscription lookup fails or
    every device send failed; after the last retry it logs and returns a
    failure instead of raising.

    Args:
        user_id: Recipient user UUID
        notification: {title, message, type, data, url}

    Returns:
        PushResult as a dict
    """
    from core.models.notification import PushNotification
    from core.services.push_service import PushService
    from lib.supabase_client import SupabaseClientError

    try:
        payload = PushNotification(**notification)
    except ValidationError as e:
        logger.error(f"Dropping malformed push for user {user_id}: {e}")
        return {"success": False, "error": "Invalid notification payload"}

    try:
        result = PushService.send_to_user(user_id, payload)
    except SupabaseClientError as e:
        return _retry_or_give_up(self, user_id, str(e))

    if not result.success and result.failed:
        return _retry_or_give_up(self, user_id, result.message or "all sends failed")

    return result.to_response()


# =============================================================================
# Reminders
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_reminders")
def send_reminders(self, reminder_type: str = "all") -> dict[str, Any]:
    """
    Run reminder RPCs (event, service booking, abandoned cart).

    Args:
        reminder_type: One of the ReminderType values

    Returns:
        {"type", "notifications_sent", "result", "timestamp"}
    """
    from core.services.notification_service import NotificationService

    logger.info(f"Running scheduled reminders: {reminder_type}")
    return NotificationService.run_reminders(reminder_type)
