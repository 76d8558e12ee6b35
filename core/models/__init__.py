# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - home.py: Homepage section shapes (stats, activity, countdowns)
# - social.py: Comments, saved posts and likes
# - notification.py: Notification types, preferences and push payloads
# - vendor.py: Vendor registration and update requests
# - sim_racing.py: Teams and league registrations
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Home Models - Homepage sections
# -----------------------------------------------------------------------------
from .home import (
    ActivitySummary,
    Countdown,
    HomeStats,
    LiveActivity,
    UserInteractions,
)

# -----------------------------------------------------------------------------
# Social Models - Comments, saves, likes
# -----------------------------------------------------------------------------
from .social import (
    CommentCreate,
    CommentThread,
    LikeToggleResponse,
    SavedPostCreate,
)

# -----------------------------------------------------------------------------
# Notification Models - Rows, preferences, push
# -----------------------------------------------------------------------------
from .notification import (
    NotificationPreferences,
    NotificationType,
    PreferenceKey,
    PushBatchRequest,
    PushNotification,
    PushResult,
    PushSendRequest,
    PushSubscribeRequest,
    PushUnsubscribeRequest,
    ReminderRequest,
    ReminderType,
    WebhookPayload,
)

# -----------------------------------------------------------------------------
# Vendor Models - Onboarding workflow
# -----------------------------------------------------------------------------
from .vendor import (
    RegistrationStatus,
    ReviewDecision,
    VendorBusinessDetails,
    VendorCategory,
    VendorRegistrationCreate,
    VendorStatusUpdate,
    VendorUpdateRequestCreate,
)

# -----------------------------------------------------------------------------
# Sim Racing Models - Teams and leagues
# -----------------------------------------------------------------------------
from .sim_racing import (
    LeagueRegistrationCreate,
    RegistrationType,
    TeamCreate,
)

__all__ = [
    # Home
    "ActivitySummary",
    "Countdown",
    "HomeStats",
    "LiveActivity",
    "UserInteractions",
    # Social
    "CommentCreate",
    "CommentThread",
    "LikeToggleResponse",
    "SavedPostCreate",
    # Notification
    "NotificationPreferences",
    "NotificationType",
    "PreferenceKey",
    "PushBatchRequest",
    "PushNotification",
    "PushResult",
    "PushSendRequest",
    "PushSubscribeRequest",
    "PushUnsubscribeRequest",
    "ReminderRequest",
    "ReminderType",
    "WebhookPayload",
    # Vendor
    "RegistrationStatus",
    "ReviewDecision",
    "VendorBusinessDetails",
    "VendorCategory",
    "VendorRegistrationCreate",
    "VendorStatusUpdate",
    "VendorUpdateRequestCreate",
    # Sim Racing
    "LeagueRegistrationCreate",
    "RegistrationType",
    "TeamCreate",
]
