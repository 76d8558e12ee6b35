# =============================================================================
# core/services/push_service.py - Push Subscriptions and Delivery
# =============================================================================
# Device registration (push_subscriptions rows) and delivery through FCM.
#
# Delivery to several devices is best-effort: each token is sent on its
# own, invalid tokens are deleted, and the outcome is summarised as
# sent / failed / total instead of failing the whole request.
# =============================================================================

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any
from uuid import UUID

from app.exceptions import ValidationFailedError
from core.models.notification import PushNotification, PushResult
from core.services.notification_service import should_send
from lib.fcm import FcmClient, FcmError, build_data_payload, get_fcm_client
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "push_subscriptions"

# Upper bound on concurrent FCM requests for one fan-out
MAX_SEND_WORKERS = 8

MSG_NOT_CONFIGURED = "Push notifications not configured"
MSG_DISABLED = "Notification type disabled by user preferences"
MSG_NO_SUBSCRIPTIONS = "No subscriptions found"
MSG_NO_TOKENS = "No valid FCM tokens found in subscriptions"
MSG_NO_VALID_AFTER_FILTER = "No valid subscriptions after preference filtering"
MSG_ALL_FAILED = "Failed to send notifications. Check server logs for details."


def extract_token(subscription: Any) -> str | None:
    """
    Pull the FCM token out of a stored subscription.

    Accepts {"token": ...}, {"fcmToken": ...} or a bare string.
    """
    if isinstance(subscription, str):
        return subscription or None
    if isinstance(subscription, dict):
        token = subscription.get("token") or subscription.get("fcmToken")
        if isinstance(token, str) and token:
            return token
    return None


def _short(token: str) -> str:
    return f"{token[:20]}..."


class PushService:
    """
    Service for push subscriptions and FCM delivery.
    """

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    @staticmethod
    def subscribe(user_id: UUID | str, subscription: dict[str, Any] | str) -> dict[str, Any]:
        """
        Save a device token for the user, updating the row if it exists.

        Returns:
            {"success", "message", "id"}

        Raises:
            ValidationFailedError: If no token can be found in the subscription
        """
        token = extract_token(subscription)
        if not token:
            raise ValidationFailedError(
                "FCM token is required",
                suggestion="Send the token as subscription.token or subscription.fcmToken",
            )

        client = SupabaseClient.get_client()
        user_id = normalize_uuid(user_id)
        stored = subscription if isinstance(subscription, dict) else {"token": token}

        existing = (
            client.table(SUBSCRIPTIONS_TABLE)
            .select("id, subscription")
            .eq("user_id", user_id)
            .execute()
        )
        for row in existing.data or []:
            if extract_token(row.get("subscription")) == token:
                client.table(SUBSCRIPTIONS_TABLE).update(
                    {"subscription": stored}
                ).eq("id", row["id"]).execute()
                logger.info(f"Updated push subscription {row['id']} for user {user_id}")
                return {"success": True, "message": "Subscription updated", "id": row["id"]}

        response = (
            client.table(SUBSCRIPTIONS_TABLE)
            .insert({"user_id": user_id, "subscription": stored})
            .execute()
        )
        new_id = response.data[0]["id"] if response.data else None
        logger.info(f"Saved push subscription for user {user_id} ({_short(token)})")
        return {"success": True, "message": "Subscription saved", "id": new_id}

    @staticmethod
    def unsubscribe(user_id: UUID | str, token: str | None = None) -> int:
        """
        Remove one device (by token) or every device of the user.

        Returns:
            Number of rows deleted
        """
        client = SupabaseClient.get_client()
        user_id = normalize_uuid(user_id)

        if not token:
            response = client.table(SUBSCRIPTIONS_TABLE).delete().eq("user_id", user_id).execute()
            return len(response.data or [])

        existing = (
            client.table(SUBSCRIPTIONS_TABLE)
            .select("id, subscription")
            .eq("user_id", user_id)
            .execute()
        )
        ids = [r["id"] for r in (existing.data or []) if extract_token(r.get("subscription")) == token]
        if ids:
            client.table(SUBSCRIPTIONS_TABLE).delete().in_("id", ids).execute()
        return len(ids)

    @staticmethod
    def _delete_subscription(subscription_id: Any) -> None:
        try:
            client = SupabaseClient.get_client()
            client.table(SUBSCRIPTIONS_TABLE).delete().eq("id", subscription_id).execute()
            logger.info(f"Removed invalid push subscription {subscription_id}")
        except Exception as e:
            logger.error(f"Failed to remove push subscription {subscription_id}: {e}")

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    @staticmethod
    def _dispatch(
        fcm: FcmClient,
        subscriptions: list[dict[str, Any]],
        notification: PushNotification,
    ) -> PushResult:
        """Send one message per subscription, pruning dead tokens."""
        data = build_data_payload(
            notification.type,
            notification.title,
            notification.message,
            notification.url,
            notification.data,
        )
        link = notification.url or "/"

        def send_one(sub: dict[str, Any]) -> dict[str, Any]:
            outcome = {"id": sub.get("id")}
            if sub.get("user_id"):
                outcome["user_id"] = sub["user_id"]
            token = extract_token(sub.get("subscription"))
            if not token:
                return {**outcome, "success": False, "error": "No token found"}
            try:
                fcm.send(token, data, link=link)
                return {**outcome, "success": True}
            except FcmError as e:
                logger.warning(f"Push to {_short(token)} failed: {e.message}")
                if e.token_invalid:
                    PushService._delete_subscription(sub.get("id"))
                return {**outcome, "success": False, "error": e.message}

        workers = max(1, min(MAX_SEND_WORKERS, len(subscriptions)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(send_one, subscriptions))

        sent = sum(1 for o in outcomes if o["success"])
        errors = [o for o in outcomes if not o["success"]]
        total = len(subscriptions)

        if sent == 0 and errors:
            return PushResult(
                success=False,
                sent=0,
                failed=len(errors),
                total=total,
                errors=errors,
                message=MSG_ALL_FAILED,
            )
        return PushResult(
            success=True,
            sent=sent,
            failed=len(errors),
            total=total,
            errors=errors or None,
        )

    @staticmethod
    def send_to_user(user_id: UUID | str, notification: PushNotification) -> PushResult:
        """
        Deliver a notification to every device of one user.

        Raises:
            SupabaseClientError: If subscriptions can't be read
        """
        fcm = get_fcm_client()
        if fcm is None:
            return PushResult(success=True, message=MSG_NOT_CONFIGURED)

        user_id = normalize_uuid(user_id)

        if notification.type != "test":
            preferences = SupabaseClient.fetch_notification_preferences(user_id)
            if not should_send(notification.type, preferences):
                return PushResult(success=True, message=MSG_DISABLED)

        client = SupabaseClient.get_client()
        try:
            response = (
                client.table(SUBSCRIPTIONS_TABLE)
                .select("id, subscription")
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch push subscriptions: {e}",
                code="FETCH_SUBSCRIPTIONS_FAILED",
                details={"user_id": user_id},
            )

        subscriptions = response.data or []
        if not subscriptions:
            return PushResult(success=True, message=MSG_NO_SUBSCRIPTIONS)

        if not any(extract_token(s.get("subscription")) for s in subscriptions):
            return PushResult(
                success=False,
                message=MSG_NO_TOKENS,
                error="Please ensure push notifications are enabled and subscription is saved correctly",
            )

        result = PushService._dispatch(fcm, subscriptions, notification)
        logger.info(f"Push to user {user_id}: sent {result.sent}/{result.total}")
        return result

    @staticmethod
    def send_to_users(user_ids: list[str], notification: PushNotification) -> PushResult:
        """
        Deliver one notification to several users.

        Uses one subscription query and one preference query, then applies
        the same preference rule as single-user delivery.
        """
        fcm = get_fcm_client()
        if fcm is None:
            return PushResult(success=True, message=MSG_NOT_CONFIGURED)

        ids = [normalize_uuid(u) for u in user_ids]
        client = SupabaseClient.get_client()
        try:
            response = (
                client.table(SUBSCRIPTIONS_TABLE)
                .select("id, user_id, subscription")
                .in_("user_id", ids)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch push subscriptions: {e}",
                code="FETCH_SUBSCRIPTIONS_FAILED",
                details={"user_count": len(ids)},
            )

        subscriptions = response.data or []
        if not subscriptions:
            return PushResult(success=True, message=MSG_NO_SUBSCRIPTIONS)

        if notification.type != "test":
            preferences = SupabaseClient.fetch_preferences_map(ids)
            subscriptions = [
                s for s in subscriptions
                if should_send(notification.type, preferences.get(str(s.get("user_id"))))
            ]
            if not subscriptions:
                return PushResult(success=True, message=MSG_NO_VALID_AFTER_FILTER)

        result = PushService._dispatch(fcm, subscriptions, notification)
        logger.info(f"Batch push to {len(ids)} users: sent {result.sent}/{result.total}")
        return result
