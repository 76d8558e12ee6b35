# =============================================================================
# core/services/notification_service.py - Notification Rows and Rules
# =============================================================================
# Owns everything about a notification except the push transport:
# - Which preference flag silences which notification type
# - Which in-app page a notification opens
# - Creating rows, then fanning out to realtime and the push queue
# - Listing / marking read / preference updates
# - Cron-triggered reminder batches (Postgres RPCs)
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import NotFoundError, ValidationFailedError
from core.models.notification import NotificationType, PreferenceKey, ReminderType
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import compact, normalize_uuid, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


# =============================================================================
# Preference Rules
# =============================================================================

T = NotificationType

PREFERENCE_FOR_TYPE: dict[str, PreferenceKey] = {
    T.POST_LIKE.value: PreferenceKey.LIKES,
    T.POST_COMMENT.value: PreferenceKey.COMMENTS,
    T.NEW_POST.value: PreferenceKey.NEW_POSTS,
    T.NEW_FOLLOWER.value: PreferenceKey.FOLLOWERS,
    T.ORDER_CREATED.value: PreferenceKey.ORDERS,
    T.PAYMENT_SUCCESS.value: PreferenceKey.ORDERS,
    T.PAYMENT_FAILED.value: PreferenceKey.ORDERS,
    T.ORDER_STATUS.value: PreferenceKey.ORDER_STATUS,
    T.EVENT_REGISTRATION_CONFIRMED.value: PreferenceKey.EVENTS,
    T.EVENT_REGISTRATION_PENDING.value: PreferenceKey.EVENTS,
    T.EVENT_REGISTRATION_REJECTED.value: PreferenceKey.EVENTS,
    T.EVENT_CREATED.value: PreferenceKey.EVENTS,
    T.EVENT_UPDATED.value: PreferenceKey.EVENTS,
    T.EVENT_CANCELLED.value: PreferenceKey.EVENTS,
    T.EVENT_REMINDER.value: PreferenceKey.EVENTS,
    T.SERVICE_BOOKING_CONFIRMED.value: PreferenceKey.SERVICES,
    T.SERVICE_BOOKING_PENDING.value: PreferenceKey.SERVICES,
    T.SERVICE_BOOKING_REJECTED.value: PreferenceKey.SERVICES,
    T.VENDOR_NEW_BOOKING.value: PreferenceKey.SERVICES,
    T.SERVICE_BOOKING_REMINDER.value: PreferenceKey.SERVICES,
    T.PRODUCT_RESTOCK.value: PreferenceKey.PRODUCTS,
    T.PRICE_DROP.value: PreferenceKey.PRODUCTS,
    T.NEW_PRODUCT.value: PreferenceKey.PRODUCTS,
    T.PROFILE_UPDATED.value: PreferenceKey.SECURITY,
    T.PASSWORD_CHANGED.value: PreferenceKey.SECURITY,
    T.NEW_DEVICE_LOGIN.value: PreferenceKey.SECURITY,
    T.SUSPICIOUS_ACTIVITY.value: PreferenceKey.SECURITY,
    T.SPECIAL_OFFER.value: PreferenceKey.PROMOTIONAL,
    T.ABANDONED_CART.value: PreferenceKey.PROMOTIONAL,
    T.MAINTENANCE_NOTICE.value: PreferenceKey.PROMOTIONAL,
    T.FEATURE_UPDATE.value: PreferenceKey.PROMOTIONAL,
}


def should_send(notification_type: str | None, preferences: dict[str, Any] | None) -> bool:
    """
    Decide whether a push for this type may be delivered.

    Only an explicit False on the mapped preference key suppresses it.
    Missing preferences, missing keys, unmapped types and test sends
    all go through.
    """
    if not notification_type or notification_type == T.TEST.value:
        return True
    if not isinstance(preferences, dict):
        return True
    key = PREFERENCE_FOR_TYPE.get(notification_type)
    if key is None:
        return True
    return preferences.get(key.value) is not False


# =============================================================================
# Deep Links
# =============================================================================

_POST_TYPES = {T.POST_LIKE.value, T.POST_COMMENT.value, T.NEW_POST.value}
_ORDER_TYPES = {
    T.ORDER_CREATED.value, T.ORDER_STATUS.value, T.VENDOR_NEW_ORDER.value,
    T.PAYMENT_SUCCESS.value, T.PAYMENT_FAILED.value,
}
_EVENT_TYPES = {
    T.EVENT_REGISTRATION_CONFIRMED.value, T.EVENT_REGISTRATION_PENDING.value,
    T.EVENT_REGISTRATION_REJECTED.value, T.EVENT_CREATED.value,
    T.EVENT_UPDATED.value, T.EVENT_CANCELLED.value, T.EVENT_REMINDER.value,
}
_SERVICE_TYPES = {
    T.SERVICE_BOOKING_CONFIRMED.value, T.SERVICE_BOOKING_PENDING.value,
    T.SERVICE_BOOKING_REJECTED.value, T.VENDOR_NEW_BOOKING.value,
    T.SERVICE_BOOKING_REMINDER.value,
}
_PRODUCT_TYPES = {T.PRODUCT_RESTOCK.value, T.PRICE_DROP.value, T.NEW_PRODUCT.value}


def resolve_url(notification_type: str | None, data: dict[str, Any] | None) -> str:
    """Map a notification to the in-app page it should open."""
    data = data if isinstance(data, dict) else {}

    if notification_type in _POST_TYPES:
        return f"/social/post/{data.get('post_id') or ''}"
    if notification_type == T.NEW_FOLLOWER.value:
        return f"/profile/{data.get('follower_id') or ''}"
    if notification_type in _ORDER_TYPES:
        order_id = data.get("order_id")
        return f"/shop/orders/{order_id}" if order_id else "/shop/orders"
    if notification_type in _EVENT_TYPES:
        event_id = data.get("event_id")
        return f"/events/{event_id}" if event_id else "/events"
    if notification_type in _SERVICE_TYPES:
        service_id = data.get("service_id")
        return f"/myServiceBookings?service={service_id}" if service_id else "/myServiceBookings"
    if notification_type in _PRODUCT_TYPES:
        return f"/shop/product/{data.get('product_id') or ''}"
    if notification_type == T.ABANDONED_CART.value:
        return "/shop/cart"
    return data.get("url") or "/"


# =============================================================================
# Reminder RPCs
# =============================================================================

REMINDER_RPCS: dict[str, str] = {
    ReminderType.EVENT_REMINDERS.value: "send_event_reminders",
    ReminderType.SERVICE_BOOKING_REMINDERS.value: "send_service_booking_reminders",
    ReminderType.ABANDONED_CART.value: "send_abandoned_cart_reminders",
}


def _notifications_sent(rpc_data: Any) -> int:
    """RPCs return [{"notifications_sent": n}]."""
    if isinstance(rpc_data, list) and rpc_data and isinstance(rpc_data[0], dict):
        return int(rpc_data[0].get("notifications_sent") or 0)
    if isinstance(rpc_data, dict):
        return int(rpc_data.get("notifications_sent") or 0)
    return 0


class NotificationService:
    """
    Service for notification rows, preferences and reminders.
    """

    # -------------------------------------------------------------------------
    # Create + fan-out
    # -------------------------------------------------------------------------

    @staticmethod
    def create(
        user_id: UUID | str,
        notification_type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        push: bool = True,
    ) -> dict[str, Any]:
        """
        Insert a notification row, publish it to realtime and queue a push.

        Realtime and push failures are logged, never raised: the row is
        the source of truth and clients can always re-fetch it.

        Raises:
            SupabaseClientError: If the insert fails
        """
        client = SupabaseClient.get_client()
        row = {
            "user_id": normalize_uuid(user_id),
            "type": notification_type,
            "title": title,
            "message": message,
            "data": data or {},
            "read": False,
        }

        try:
            response = client.table("notifications").insert(row).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create notification: {e}",
                code="CREATE_NOTIFICATION_FAILED",
                details={"user_id": row["user_id"], "type": notification_type},
            )

        notification = response.data[0] if response.data else row
        logger.info(f"Created {notification_type} notification for user {row['user_id']}")

        NotificationService._publish(notification)
        if push:
            NotificationService.queue_push(notification)
        return notification

    @staticmethod
    def _publish(notification: dict[str, Any]) -> None:
        from app.websocket.broadcast import publish_notification_created

        publish_notification_created(str(notification["user_id"]), notification)

    @staticmethod
    def queue_push(notification: dict[str, Any]) -> bool:
        """
        Queue push delivery for a notification row.

        Returns:
            True if the task was queued
        """
        payload = {
            "title": notification.get("title"),
            "message": notification.get("message"),
            "type": notification.get("type"),
            "data": notification.get("data"),
            "url": resolve_url(notification.get("type"), notification.get("data")),
        }
        try:
            from workers.tasks import dispatch_push_notification

            dispatch_push_notification.delay(str(notification["user_id"]), payload)
            return True
        except Exception as e:
            logger.error(f"Failed to queue push for user {notification.get('user_id')}: {e}")
            return False

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @staticmethod
    def list_for_user(user_id: UUID | str, limit: int = DEFAULT_LIST_LIMIT) -> dict[str, Any]:
        """Latest notifications with `read` defaulted to False."""
        client = SupabaseClient.get_client()
        response = (
            client.table("notifications")
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        notifications = [{**n, "read": bool(n.get("read"))} for n in (response.data or [])]
        return {
            "data": notifications,
            "unread_count": sum(1 for n in notifications if not n["read"]),
        }

    @staticmethod
    def mark_read(user_id: UUID | str, notification_id: str) -> dict[str, Any]:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotFoundError: If the user has no such notification
        """
        client = SupabaseClient.get_client()
        response = (
            client.table("notifications")
            .update({"read": True})
            .eq("id", notification_id)
            .eq("user_id", normalize_uuid(user_id))
            .execute()
        )
        if not response.data:
            raise NotFoundError("Notification", notification_id)
        return response.data[0]

    @staticmethod
    def mark_all_read(user_id: UUID | str) -> int:
        """Mark every unread notification of the user as read."""
        client = SupabaseClient.get_client()
        response = (
            client.table("notifications")
            .update({"read": True})
            .eq("user_id", normalize_uuid(user_id))
            .eq("read", False)
            .execute()
        )
        return len(response.data or [])

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    @staticmethod
    def get_preferences(user_id: UUID | str) -> dict[str, Any]:
        """Stored preferences, or {} (everything enabled)."""
        return SupabaseClient.fetch_notification_preferences(user_id) or {}

    @staticmethod
    def update_preferences(user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Merge `changes` over the stored preferences.

        Keys with None values are ignored so partial updates never reset
        flags the client didn't send.
        """
        merged = {**NotificationService.get_preferences(user_id), **compact(changes)}
        client = SupabaseClient.get_client()
        client.table("profiles").update(
            {"notification_preferences": merged}
        ).eq("id", normalize_uuid(user_id)).execute()
        logger.info(f"Updated notification preferences for user {user_id}")
        return merged

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    @staticmethod
    def run_reminders(reminder_type: str) -> dict[str, Any]:
        """
        Run one reminder RPC, or all of them.

        Returns:
            {"type", "notifications_sent", "result", "timestamp"}

        Raises:
            ValidationFailedError: If the reminder type is unknown
        """
        valid = [t.value for t in ReminderType]
        if reminder_type not in valid:
            raise ValidationFailedError(
                f"Invalid reminder type. Use: {', '.join(valid)}",
                errors={"type": reminder_type},
            )

        client = SupabaseClient.get_client()

        if reminder_type == ReminderType.ALL.value:
            result = {
                name: _notifications_sent(client.rpc(rpc).execute().data)
                for name, rpc in REMINDER_RPCS.items()
            }
            sent = sum(result.values())
        else:
            result = client.rpc(REMINDER_RPCS[reminder_type]).execute().data
            sent = _notifications_sent(result)

        logger.info(f"Reminders '{reminder_type}' sent {sent} notifications")
        return {
            "type": reminder_type,
            "notifications_sent": sent,
            "result": result,
            "timestamp": utc_now().isoformat(),
        }
