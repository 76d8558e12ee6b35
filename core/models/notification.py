# =============================================================================
# core/models/notification.py - Notification Schemas
# =============================================================================
# These models define the API contract for notifications and push delivery:
# - NotificationType: every notification kind the platform emits
# - PreferenceKey: user-settable push preference flags
# - PushNotification / PushSendRequest: payloads for /api/push/*
# - NotificationPreferences: the profile's notification_preferences JSON
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Every notification kind stored in the notifications table."""

    # Social
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"
    NEW_POST = "new_post"
    NEW_FOLLOWER = "new_follower"

    # Orders
    ORDER_CREATED = "order_created"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    ORDER_STATUS = "order_status"
    VENDOR_NEW_ORDER = "vendor_new_order"

    # Events
    EVENT_REGISTRATION_CONFIRMED = "event_registration_confirmed"
    EVENT_REGISTRATION_PENDING = "event_registration_pending"
    EVENT_REGISTRATION_REJECTED = "event_registration_rejected"
    EVENT_CREATED = "event_created"
    EVENT_UPDATED = "event_updated"
    EVENT_CANCELLED = "event_cancelled"
    EVENT_REMINDER = "event_reminder"

    # Services
    SERVICE_BOOKING_CONFIRMED = "service_booking_confirmed"
    SERVICE_BOOKING_PENDING = "service_booking_pending"
    SERVICE_BOOKING_REJECTED = "service_booking_rejected"
    VENDOR_NEW_BOOKING = "vendor_new_booking"
    SERVICE_BOOKING_REMINDER = "service_booking_reminder"

    # Products
    PRODUCT_RESTOCK = "product_restock"
    PRICE_DROP = "price_drop"
    NEW_PRODUCT = "new_product"

    # Security
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    NEW_DEVICE_LOGIN = "new_device_login"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"

    # Promotional
    SPECIAL_OFFER = "special_offer"
    ABANDONED_CART = "abandoned_cart"
    MAINTENANCE_NOTICE = "maintenance_notice"
    FEATURE_UPDATE = "feature_update"

    # Vendor onboarding
    VENDOR_APPROVED = "vendor_approved"
    VENDOR_REJECTED = "vendor_rejected"

    # Manual test sends bypass preferences
    TEST = "test"


class PreferenceKey(str, Enum):
    """Boolean flags inside profiles.notification_preferences."""

    LIKES = "push_likes"
    COMMENTS = "push_comments"
    NEW_POSTS = "push_new_posts"
    FOLLOWERS = "push_followers"
    ORDERS = "push_orders"
    ORDER_STATUS = "push_order_status"
    EVENTS = "push_events"
    SERVICES = "push_services"
    PRODUCTS = "push_products"
    SECURITY = "push_security"
    PROMOTIONAL = "push_promotional"


class ReminderType(str, Enum):
    """Reminder batches that can be triggered by cron."""
    EVENT_REMINDERS = "event_reminders"
    SERVICE_BOOKING_REMINDERS = "service_booking_reminders"
    ABANDONED_CART = "abandoned_cart"
    ALL = "all"


class NotificationPreferences(BaseModel):
    """
    Partial update for notification_preferences.

    Only keys that are sent are merged into the stored JSON.
    """
    push_likes: bool | None = None
    push_comments: bool | None = None
    push_new_posts: bool | None = None
    push_followers: bool | None = None
    push_orders: bool | None = None
    push_order_status: bool | None = None
    push_events: bool | None = None
    push_services: bool | None = None
    push_products: bool | None = None
    push_security: bool | None = None
    push_promotional: bool | None = None


class PushNotification(BaseModel):
    """Notification content as sent to /api/push/send."""
    title: str | None = None
    message: str | None = None
    type: str = Field(default="general", description="NotificationType value")
    data: dict[str, Any] | None = None
    url: str | None = None


class PushSendRequest(BaseModel):
    """Single-user push request."""
    user_id: str
    notification: PushNotification


class PushBatchRequest(BaseModel):
    """Multi-user push request."""
    user_ids: list[str] = Field(..., min_length=1)
    notification: PushNotification


class PushSubscribeRequest(BaseModel):
    """
    Device registration.

    `subscription` is either the bare FCM token or an object carrying
    it under `token` or `fcmToken`.
    """
    subscription: dict[str, Any] | str


class PushUnsubscribeRequest(BaseModel):
    """Remove one device (by token) or every device of the user."""
    fcm_token: str | None = None


class ReminderRequest(BaseModel):
    """Cron trigger body for reminder batches."""
    type: str
    secret: str | None = None


class WebhookPayload(BaseModel):
    """Supabase database webhook body for the notifications table."""
    type: str = "INSERT"
    table: str | None = None
    record: dict[str, Any] | None = None


class PushResult(BaseModel):
    """Outcome of one push fan-out."""
    success: bool
    sent: int = 0
    failed: int = 0
    total: int = 0
    message: str | None = None
    errors: list[dict[str, Any]] | None = None
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Response dict without empty optional keys."""
        return self.model_dump(exclude_none=True)
