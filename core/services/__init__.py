# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .home_service import HomeService
from .notification_service import NotificationService, resolve_url, should_send
from .push_service import PushService
from .comment_service import CommentService
from .saved_post_service import SavedPostService
from .like_service import LikeService
from .storage_service import StorageService
from .vendor_service import VendorService
from .sim_racing_service import SimRacingService

__all__ = [
    "HomeService",
    "NotificationService",
    "resolve_url",
    "should_send",
    "PushService",
    "CommentService",
    "SavedPostService",
    "LikeService",
    "StorageService",
    "VendorService",
    "SimRacingService",
]
