# =============================================================================
# core/services/home_service.py - Homepage Sections
# =============================================================================
# Read-only queries behind /api/home/*. Public sections (services, events,
# vendors, stats, activity) need no user; personalised sections are driven
# by the user's rows in user_interactions.
#
# Ranking and filtering helpers are pure functions so they can be tested
# without a database.
# =============================================================================

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable
from uuid import UUID

from core.models.home import (
    ActivitySummary,
    Countdown,
    HomeStats,
    LiveActivity,
    UserInteractions,
)
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

SERVICES_LIMIT = 8
EVENTS_LIMIT = 5
VENDORS_LIMIT = 4
RECOMMENDATIONS_LIMIT = 10
DEALS_LIMIT = 8
WISHLIST_LIMIT = 8
FOLLOWING_LIMIT = 6
RECENT_ITEMS_LIMIT = 8
TOP_CATEGORY_COUNT = 3
PRODUCTS_PER_CATEGORY = 10

POST_WITH_AUTHOR = "*, profile:user_id(id, username, full_name, avatar_url)"

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


# =============================================================================
# Pure helpers
# =============================================================================

def top_categories(interactions: Iterable[dict[str, Any]], limit: int = TOP_CATEGORY_COUNT) -> list[str]:
    """
    Rank product categories by how often the user viewed them.

    Ties keep first-seen order.
    """
    counts: Counter = Counter()
    for row in interactions:
        metadata = row.get("metadata") or {}
        category = metadata.get("category") if isinstance(metadata, dict) else None
        if category:
            counts[category] += 1
    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [category for category, _ in ranked[:limit]]


def is_discounted(product: dict[str, Any]) -> bool:
    """A product counts as a deal if any discount signal is present."""
    if (product.get("discount_percentage") or 0) > 0:
        return True
    if product.get("status") == "on_sale":
        return True
    original = product.get("original_price")
    price = product.get("price")
    return bool(original) and price is not None and price < original


def countdown(start: datetime, now: datetime) -> Countdown:
    """Split the time until `start` into days/hours/minutes/seconds."""
    total = int((start - now).total_seconds() * MS_PER_SECOND)
    return Countdown(
        days=total // MS_PER_DAY,
        hours=(total % MS_PER_DAY) // MS_PER_HOUR,
        minutes=(total % MS_PER_HOUR) // MS_PER_MINUTE,
        seconds=(total % MS_PER_MINUTE) // MS_PER_SECOND,
        total=total,
    )


def start_of_day(now: datetime) -> datetime:
    """Midnight UTC of the given day."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def unique_in_order(values: Iterable[Any], limit: int) -> list[Any]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
        if len(seen) >= limit:
            break
    return seen


# =============================================================================
# Service
# =============================================================================

class HomeService:
    """
    Queries for homepage sections.

    Every method returns plain data; the router wraps it in the
    {"success", "data"} envelope and handles failures.
    """

    # -------------------------------------------------------------------------
    # Public sections
    # -------------------------------------------------------------------------

    @staticmethod
    def list_services() -> list[dict[str, Any]]:
        """Active (or status-less) services, newest first."""
        client = SupabaseClient.get_client()
        response = (
            client.table("services")
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        services = [
            s for s in (response.data or [])
            if s.get("status") == "active" or not s.get("status")
        ]
        return services[:SERVICES_LIMIT]

    @staticmethod
    def list_upcoming_events(now: datetime | None = None) -> list[dict[str, Any]]:
        """Next published events, each with a countdown."""
        now = now or utc_now()
        client = SupabaseClient.get_client()
        response = (
            client.table("events")
            .select("*")
            .gte("start_date", now.isoformat())
            .eq("status", "published")
            .order("start_date")
            .limit(EVENTS_LIMIT)
            .execute()
        )

        events = []
        for event in response.data or []:
            start = parse_timestamp(event.get("start_date"))
            if start is None:
                continue
            events.append({**event, "countdown": countdown(start, now).model_dump()})
        return events

    @staticmethod
    def list_featured_vendors() -> list[dict[str, Any]]:
        """Newest verified vendors."""
        client = SupabaseClient.get_client()
        response = (
            client.table("profiles")
            .select("*")
            .eq("is_vendor", True)
            .eq("is_verified", True)
            .order("created_at", desc=True)
            .limit(VENDORS_LIMIT)
            .execute()
        )
        return response.data or []

    @staticmethod
    def get_stats(now: datetime | None = None) -> HomeStats:
        """Community counters; 'today' starts at 00:00 UTC."""
        today = start_of_day(now or utc_now()).isoformat()
        return HomeStats(
            memberCount=SupabaseClient.count("profiles"),
            todayViews=SupabaseClient.count(
                "user_interactions",
                eq={"interaction_type": "view"},
                gte={"created_at": today},
            ),
            todayOrders=SupabaseClient.count("orders", gte={"created_at": today}),
            activeVendors=SupabaseClient.count("profiles", eq={"is_vendor": True}),
        )

    @staticmethod
    def get_live_activity(now: datetime | None = None) -> LiveActivity:
        """Purchases, new events and popular posts from the last 24 hours."""
        since = ((now or utc_now()) - timedelta(days=1)).isoformat()
        client = SupabaseClient.get_client()

        purchases = (
            client.table("orders")
            .select("*, order_items(product:products(id, name)), profiles:user_id(id, username, full_name)")
            .gte("created_at", since)
            .order("created_at", desc=True)
            .limit(5)
            .execute()
        )
        new_events = (
            client.table("events")
            .select("*")
            .gte("created_at", since)
            .order("created_at", desc=True)
            .limit(3)
            .execute()
        )
        popular_posts = (
            client.table("posts")
            .select(POST_WITH_AUTHOR)
            .gte("created_at", since)
            .order("likes_count", desc=True)
            .limit(3)
            .execute()
        )

        return LiveActivity(
            recentPurchases=purchases.data or [],
            newEvents=new_events.data or [],
            popularPosts=popular_posts.data or [],
        )

    # -------------------------------------------------------------------------
    # Personalised sections
    # -------------------------------------------------------------------------

    @staticmethod
    def _product_views(user_id: str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table("user_interactions")
            .select("item_id, metadata, created_at")
            .eq("user_id", user_id)
            .eq("interaction_type", "view")
            .eq("item_type", "product")
            .execute()
        )
        return response.data or []

    @staticmethod
    def _products_in_categories(categories: list[str]) -> list[dict[str, Any]]:
        """Newest products of each category, category by category."""
        client = SupabaseClient.get_client()
        products = []
        for category in categories:
            response = (
                client.table("products")
                .select("*")
                .eq("category", category)
                .order("created_at", desc=True)
                .limit(PRODUCTS_PER_CATEGORY)
                .execute()
            )
            products.extend(response.data or [])
        return products

    @staticmethod
    def _products_by_ids(product_ids: list[str]) -> list[dict[str, Any]]:
        """Product rows in the order of `product_ids`, missing ones dropped."""
        if not product_ids:
            return []
        client = SupabaseClient.get_client()
        response = client.table("products").select("*").in_("id", product_ids).execute()
        by_id = {str(p["id"]): p for p in (response.data or [])}
        return [by_id[str(pid)] for pid in product_ids if str(pid) in by_id]

    @staticmethod
    def get_recommendations(user_id: UUID | str) -> list[dict[str, Any]]:
        """Unseen products from the user's most viewed categories."""
        views = HomeService._product_views(normalize_uuid(user_id))
        categories = top_categories(views)
        if not categories:
            return []

        viewed_ids = {str(v["item_id"]) for v in views if v.get("item_id")}
        products = HomeService._products_in_categories(categories)
        unseen = [p for p in products if str(p.get("id")) not in viewed_ids]
        return unseen[:RECOMMENDATIONS_LIMIT]

    @staticmethod
    def get_deals(user_id: UUID | str) -> list[dict[str, Any]]:
        """Discounted products in the user's top categories, biggest discount first."""
        views = HomeService._product_views(normalize_uuid(user_id))
        categories = top_categories(views)
        if not categories:
            return []

        products = HomeService._products_in_categories(categories)
        deals = [p for p in products if is_discounted(p)]
        deals.sort(key=lambda p: p.get("discount_percentage") or 0, reverse=True)
        return deals[:DEALS_LIMIT]

    @staticmethod
    def get_wishlist(user_id: UUID | str) -> list[dict[str, Any]]:
        """Latest wishlisted products."""
        client = SupabaseClient.get_client()
        response = (
            client.table("wishlist")
            .select("*, product:products(*)")
            .eq("user_id", normalize_uuid(user_id))
            .eq("item_type", "product")
            .order("created_at", desc=True)
            .limit(WISHLIST_LIMIT)
            .execute()
        )
        return [item["product"] for item in (response.data or []) if item.get("product")]

    @staticmethod
    def get_following_activity(user_id: UUID | str) -> list[dict[str, Any]]:
        """Latest posts by users this user follows."""
        client = SupabaseClient.get_client()
        follows = (
            client.table("follows")
            .select("following_id")
            .eq("user_id", normalize_uuid(user_id))
            .execute()
        )
        followed_ids = [f["following_id"] for f in (follows.data or []) if f.get("following_id")]
        if not followed_ids:
            return []

        posts = (
            client.table("posts")
            .select(POST_WITH_AUTHOR)
            .in_("user_id", followed_ids)
            .order("created_at", desc=True)
            .limit(FOLLOWING_LIMIT)
            .execute()
        )
        return posts.data or []

    @staticmethod
    def get_user_interactions(user_id: UUID | str, now: datetime | None = None) -> UserInteractions:
        """Recent views, searches, cart adds, top categories and counters."""
        now = now or utc_now()
        user_id = normalize_uuid(user_id)
        client = SupabaseClient.get_client()

        def recent(interaction_type: str, item_type: str | None, limit: int) -> list[dict[str, Any]]:
            query = (
                client.table("user_interactions")
                .select("item_id, metadata, created_at")
                .eq("user_id", user_id)
                .eq("interaction_type", interaction_type)
            )
            if item_type:
                query = query.eq("item_type", item_type)
            return query.order("created_at", desc=True).limit(limit).execute().data or []

        views = recent("view", "product", RECENT_ITEMS_LIMIT)
        searches = recent("search", None, RECENT_ITEMS_LIMIT)
        cart_adds = recent("add_to_cart", "product", RECENT_ITEMS_LIMIT)

        view_ids = unique_in_order((v.get("item_id") for v in views), RECENT_ITEMS_LIMIT)
        cart_ids = unique_in_order((c.get("item_id") for c in cart_adds), RECENT_ITEMS_LIMIT)
        queries = [(s.get("metadata") or {}).get("query") for s in searches]

        return UserInteractions(
            recentViews=HomeService._products_by_ids(view_ids),
            recentSearches=unique_in_order(queries, RECENT_ITEMS_LIMIT),
            recentCartAdds=HomeService._products_by_ids(cart_ids),
            topCategories=top_categories(HomeService._product_views(user_id)),
            activitySummary=HomeService._activity_summary(user_id, now),
        )

    @staticmethod
    def _activity_summary(user_id: str, now: datetime) -> ActivitySummary:
        client = SupabaseClient.get_client()

        registrations = (
            client.table("event_registrations")
            .select("event_id")
            .eq("user_id", user_id)
            .execute()
        )
        event_ids = [r["event_id"] for r in (registrations.data or []) if r.get("event_id")]
        upcoming = 0
        if event_ids:
            events = (
                client.table("events")
                .select("id", count="exact")
                .in_("id", event_ids)
                .gte("start_date", now.isoformat())
                .execute()
            )
            upcoming = events.count or 0

        return ActivitySummary(
            viewsThisWeek=SupabaseClient.count(
                "user_interactions",
                eq={"user_id": user_id, "interaction_type": "view"},
                gte={"created_at": (now - timedelta(days=7)).isoformat()},
            ),
            cartItems=SupabaseClient.count("cart_items", eq={"user_id": user_id}),
            upcomingEvents=upcoming,
            recentOrders=SupabaseClient.count(
                "orders",
                eq={"user_id": user_id},
                gte={"created_at": (now - timedelta(days=30)).isoformat()},
            ),
        )
