# =============================================================================
# core/models/home.py - Homepage Section Schemas
# =============================================================================
# Computed shapes returned by /api/home/*. Row lists (services, events,
# products, posts) are passed through as Supabase returns them.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field


class Countdown(BaseModel):
    """Time left until an event starts. `total` is in milliseconds."""
    days: int
    hours: int
    minutes: int
    seconds: int
    total: int


class HomeStats(BaseModel):
    """Community counters shown on the homepage."""
    memberCount: int = 0
    todayViews: int = 0
    todayOrders: int = 0
    activeVendors: int = 0


class LiveActivity(BaseModel):
    """What happened on the platform in the last 24 hours."""
    recentPurchases: list[dict[str, Any]] = Field(default_factory=list)
    newEvents: list[dict[str, Any]] = Field(default_factory=list)
    popularPosts: list[dict[str, Any]] = Field(default_factory=list)


class ActivitySummary(BaseModel):
    """Per-user counters for the personalised dashboard."""
    viewsThisWeek: int = 0
    cartItems: int = 0
    upcomingEvents: int = 0
    recentOrders: int = 0


class UserInteractions(BaseModel):
    """Personalised homepage block for a signed-in user."""
    recentViews: list[dict[str, Any]] = Field(default_factory=list)
    recentSearches: list[str] = Field(default_factory=list)
    recentCartAdds: list[dict[str, Any]] = Field(default_factory=list)
    topCategories: list[str] = Field(default_factory=list)
    activitySummary: ActivitySummary = Field(default_factory=ActivitySummary)
