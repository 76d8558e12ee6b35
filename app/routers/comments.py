# =============================================================================
# app/routers/comments.py - Post Comment Endpoints
# =============================================================================
# Comments change constantly, so every response disables caching.
# =============================================================================

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.auth import get_current_user, AuthUser
from app.exceptions import ValidationFailedError
from core.models.social import CommentCreate
from core.services.comment_service import CommentService

router = APIRouter()

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


def no_store(content: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(content), status_code=status_code, headers=NO_STORE_HEADERS)


def parse_limit(raw: str | None) -> int | None:
    """Positive integer limit, or None when absent or unusable."""
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def require_post_id(post_id: str | None) -> str:
    if not post_id:
        raise ValidationFailedError("postId is required", errors={"postId": "missing"})
    return post_id


@router.get("")
async def list_comments(
    post_id: str | None = Query(default=None, alias="postId"),
    limit: str | None = Query(default=None),
    order_by: str = Query(default="desc", alias="orderBy"),
):
    """
    Comments of a post with author profiles.

    `orderBy` is "asc" or "desc" (default). Non-numeric or non-positive
    `limit` values are ignored.
    """
    result = CommentService.list_comments(
        require_post_id(post_id),
        limit=parse_limit(limit),
        ascending=order_by == "asc",
    )
    return no_store(result)


@router.get("/thread")
async def comment_thread(
    post_id: str | None = Query(default=None, alias="postId"),
):
    """Top-level comments, oldest first, each with its replies."""
    return no_store({"data": CommentService.get_thread(require_post_id(post_id))})


@router.post("")
async def create_comment(
    body: CommentCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Add a comment or reply as the signed-in user.

    Replying to a reply attaches the new comment to the top-level comment.
    """
    comment = CommentService.create_comment(
        user.id,
        post_id=body.post_id,
        content=body.content,
        parent_id=body.parent_id,
    )
    return no_store({"data": comment})
