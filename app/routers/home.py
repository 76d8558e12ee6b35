# =============================================================================
# app/routers/home.py - Homepage Section Endpoints
# =============================================================================
# Every endpoint answers {"success": bool, "data": ...}. On failure the
# status is 500 and `data` is the empty shape of the section, so the
# homepage can always render.
#
# Public sections are cacheable for HOME_CACHE_SECONDS; personalised
# sections require a signed-in user.
# =============================================================================

import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.auth import get_current_user, AuthUser
from app.config import settings
from core.models.home import HomeStats, LiveActivity, UserInteractions
from core.services.home_service import HomeService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Envelope helpers
# =============================================================================

def _cache_headers() -> dict[str, str]:
    return {"Cache-Control": f"public, max-age={settings.HOME_CACHE_SECONDS}"}


def section_response(
    name: str,
    load: Callable[[], Any],
    empty: Any,
    public: bool = False,
) -> JSONResponse:
    """Run a section query and wrap the result (or failure) in the envelope."""
    try:
        data = load()
    except Exception as e:
        logger.error(f"Failed to fetch {name}: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": f"Failed to fetch {name}",
                "data": jsonable_encoder(empty),
            },
        )

    return JSONResponse(
        content={"success": True, "data": jsonable_encoder(data)},
        headers=_cache_headers() if public else None,
    )


# =============================================================================
# Public sections
# =============================================================================

@router.get("/services")
async def home_services():
    """Up to 8 active services, newest first."""
    return section_response("services", HomeService.list_services, [], public=True)


@router.get("/events")
async def home_events():
    """Up to 5 upcoming published events with a countdown."""
    return section_response("events", HomeService.list_upcoming_events, [], public=True)


@router.get("/vendors")
async def home_vendors():
    """Up to 4 newest verified vendors."""
    return section_response("vendors", HomeService.list_featured_vendors, [], public=True)


@router.get("/stats")
async def home_stats():
    """Member, view, order and vendor counters."""
    return section_response("stats", HomeService.get_stats, HomeStats(), public=True)


@router.get("/activity")
async def home_activity():
    """Purchases, new events and popular posts from the last 24 hours."""
    return section_response("activity", HomeService.get_live_activity, LiveActivity(), public=True)


# =============================================================================
# Personalised sections
# =============================================================================

@router.get("/recommendations")
async def home_recommendations(user: AuthUser = Depends(get_current_user)):
    """Unseen products from the user's most viewed categories."""
    return section_response("recommendations", lambda: HomeService.get_recommendations(user.id), [])


@router.get("/deals")
async def home_deals(user: AuthUser = Depends(get_current_user)):
    """Discounted products in the user's favourite categories."""
    return section_response("deals", lambda: HomeService.get_deals(user.id), [])


@router.get("/wishlist")
async def home_wishlist(user: AuthUser = Depends(get_current_user)):
    """Latest wishlisted products."""
    return section_response("wishlist", lambda: HomeService.get_wishlist(user.id), [])


@router.get("/following-activity")
async def home_following_activity(user: AuthUser = Depends(get_current_user)):
    """Latest posts from followed users."""
    return section_response(
        "following activity", lambda: HomeService.get_following_activity(user.id), []
    )


@router.get("/user-interactions")
async def home_user_interactions(user: AuthUser = Depends(get_current_user)):
    """Recent activity and counters for the signed-in user."""
    return section_response(
        "user interactions",
        lambda: HomeService.get_user_interactions(user.id),
        UserInteractions(),
    )
