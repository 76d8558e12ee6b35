# =============================================================================
# core/models/social.py - Social Feed Schemas
# =============================================================================
# Request models for comments, saved posts and likes.
# Rows are returned to clients as the dicts Supabase gives us, so only the
# inputs and the few computed shapes are modelled here.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CommentCreate(BaseModel):
    """
    Body of POST /api/comments.

    The author comes from the verified token, never from the body.

    Example:
        {"post_id": "a1b2...", "content": "Clean build!", "parent_id": null}
    """
    post_id: str = Field(..., min_length=1)
    content: str = Field(..., max_length=2000)
    parent_id: str | None = Field(
        default=None,
        description="Comment being replied to; replies are kept one level deep"
    )

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        return value.strip()

    @field_validator("parent_id")
    @classmethod
    def empty_parent_is_none(cls, value: str | None) -> str | None:
        return value or None


class SavedPostCreate(BaseModel):
    """Body of POST /api/saved-posts."""
    post_id: str = Field(..., min_length=1)


class LikeToggleResponse(BaseModel):
    """Authoritative like state after a toggle."""
    post_id: str
    liked: bool
    likes_count: int = Field(default=0, ge=0)


class CommentThread(BaseModel):
    """A top-level comment with its direct replies."""
    comment: dict[str, Any]
    replies: list[dict[str, Any]] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {**self.comment, "replies": self.replies}
