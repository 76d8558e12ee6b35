# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - home.py: Home page sections (public and personalised)
# - comments.py: Post comments and reply threads
# - saved_posts.py: Saved post toggling and listing
# - social.py: Post likes
# - notifications.py: In-app notifications, preferences, reminder cron
# - push.py: FCM subscriptions, delivery and the insert webhook
# - vendors.py: Vendor registration steps and update requests
# - admin.py: Vendor review
# - sim_racing.py: Teams, league registration, standings
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import home
from . import comments
from . import saved_posts
from . import social
from . import notifications
from . import push
from . import vendors
from . import admin
from . import sim_racing

__all__ = [
    "health",
    "home",
    "comments",
    "saved_posts",
    "social",
    "notifications",
    "push",
    "vendors",
    "admin",
    "sim_racing",
]
