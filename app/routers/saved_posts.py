# =============================================================================
# app/routers/saved_posts.py - Saved Post Endpoints
# =============================================================================
# Endpoints act on the signed-in user's own saved posts; the presence
# check also answers signed-out callers.
# =============================================================================

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.auth import get_current_user, get_current_user_optional, AuthUser
from app.routers.comments import no_store, require_post_id
from core.models.social import SavedPostCreate
from core.services.saved_post_service import SavedPostService

router = APIRouter()


@router.get("")
async def is_post_saved(
    post_id: str | None = Query(default=None, alias="postId"),
    user: Optional[AuthUser] = Depends(get_current_user_optional),
):
    """Whether the user has saved the post; always false when signed out."""
    post_id = require_post_id(post_id)
    if user is None:
        return no_store({"isSaved": False})
    return no_store({"isSaved": SavedPostService.is_saved(user.id, post_id)})


@router.get("/list")
async def list_saved_posts(user: AuthUser = Depends(get_current_user)):
    """The user's saved posts, newest first."""
    return no_store({"data": SavedPostService.list_saved(user.id)})


@router.post("")
async def save_post(
    body: SavedPostCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Save a post. Saving twice returns the existing row with
    `isAlreadySaved: true`.
    """
    return no_store(SavedPostService.save(user.id, body.post_id))


@router.delete("")
async def unsave_post(
    post_id: str | None = Query(default=None, alias="postId"),
    user: AuthUser = Depends(get_current_user),
):
    """Remove a saved post. Removing a post that isn't saved is not an error."""
    removed = SavedPostService.unsave(user.id, require_post_id(post_id))
    return no_store({"success": True, "removed": removed})
