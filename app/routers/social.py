# =============================================================================
# app/routers/social.py - Social Feed Endpoints
# =============================================================================
# Like toggling for posts. The response is the authoritative state the
# client reconciles its optimistic update against.
# =============================================================================

from fastapi import APIRouter, Depends, Path

from app.auth import get_current_user, AuthUser
from core.models.social import LikeToggleResponse
from core.services.like_service import LikeService

router = APIRouter()


@router.post("/posts/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: str = Path(..., description="Post ID"),
    user: AuthUser = Depends(get_current_user),
):
    """
    Like the post, or remove the like if it is already liked.

    Returns the new `liked` state and the post's current like count.
    """
    return LikeService.toggle(user.id, post_id)
