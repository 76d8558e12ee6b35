# =============================================================================
# core/services/comment_service.py - Post Comments
# =============================================================================
# Comments are threaded one level deep: a reply always points at a
# top-level comment. Replying to a reply re-targets the new comment at
# that reply's root, so stored depth never exceeds one.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import NotFoundError, ValidationFailedError
from core.models.notification import NotificationType
from core.models.social import CommentThread
from core.services.notification_service import NotificationService
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_no_rows_error
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

COMMENT_WITH_AUTHOR = "*, profile:user_id(id, username, avatar_url, full_name)"

# Guards against cycles in legacy parent chains
MAX_PARENT_HOPS = 32


def find_root_id(comment_id: str, parents: dict[str, str | None]) -> str | None:
    """
    Follow parent links to the top-level comment.

    Returns None when the chain hits a comment that isn't in `parents`.
    """
    current = comment_id
    for _ in range(MAX_PARENT_HOPS):
        if current not in parents:
            return None
        parent = parents[current]
        if not parent:
            return current
        current = parent
    return None


def build_thread(comments: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Group a post's comments into top-level comments with their replies.

    Both levels are ordered oldest first. Replies whose root can't be
    found are shown as top-level comments.
    """
    ordered = sorted(comments, key=lambda c: str(c.get("created_at") or ""))
    parents = {str(c["id"]): (str(c["parent_id"]) if c.get("parent_id") else None) for c in ordered}

    threads: dict[str, CommentThread] = {}
    orphans: list[dict[str, Any]] = []
    for comment in ordered:
        cid = str(comment["id"])
        if parents[cid] is None:
            threads[cid] = CommentThread(comment=comment)

    for comment in ordered:
        cid = str(comment["id"])
        if parents[cid] is None:
            continue
        root = find_root_id(cid, parents)
        if root and root in threads:
            threads[root].replies.append(comment)
        else:
            orphans.append(comment)

    for orphan in orphans:
        threads[str(orphan["id"])] = CommentThread(comment=orphan)

    top_level = sorted(threads.values(), key=lambda t: str(t.comment.get("created_at") or ""))
    return [t.to_dict() for t in top_level]


class CommentService:
    """
    Service for reading and writing post comments.
    """

    @staticmethod
    def list_comments(
        post_id: str,
        limit: int | None = None,
        ascending: bool = False,
    ) -> dict[str, Any]:
        """
        Comments of a post with their author profile.

        Returns:
            {"data": [...], "count": total comments on the post}
        """
        client = SupabaseClient.get_client()
        query = (
            client.table("comments")
            .select(COMMENT_WITH_AUTHOR, count="exact")
            .eq("post_id", post_id)
            .order("created_at", desc=not ascending)
        )
        if limit and limit > 0:
            query = query.limit(limit)

        response = query.execute()
        data = response.data or []
        return {"data": data, "count": response.count or len(data)}

    @staticmethod
    def get_thread(post_id: str) -> list[dict[str, Any]]:
        """Comments of a post grouped one level deep."""
        client = SupabaseClient.get_client()
        response = (
            client.table("comments")
            .select(COMMENT_WITH_AUTHOR)
            .eq("post_id", post_id)
            .order("created_at")
            .execute()
        )
        return build_thread(response.data or [])

    @staticmethod
    def _fetch_post(post_id: str) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        try:
            response = (
                client.table("posts")
                .select("id, user_id")
                .eq("id", post_id)
                .single()
                .execute()
            )
        except Exception as e:
            if is_no_rows_error(e):
                raise NotFoundError("Post", post_id)
            raise
        if not response.data:
            raise NotFoundError("Post", post_id)
        return response.data

    @staticmethod
    def resolve_parent(post_id: str, parent_id: str | None) -> str | None:
        """
        Normalise a reply target to its top-level comment.

        Raises:
            NotFoundError: If the parent comment doesn't exist
            ValidationFailedError: If the parent belongs to another post
        """
        if not parent_id:
            return None

        client = SupabaseClient.get_client()
        current = parent_id
        for _ in range(MAX_PARENT_HOPS):
            response = (
                client.table("comments")
                .select("id, post_id, parent_id")
                .eq("id", current)
                .limit(1)
                .execute()
            )
            if not response.data:
                raise NotFoundError("Comment", current)
            parent = response.data[0]
            if str(parent.get("post_id")) != str(post_id):
                raise ValidationFailedError(
                    "parent_id belongs to a different post",
                    errors={"parent_id": parent_id},
                )
            if not parent.get("parent_id"):
                return str(parent["id"])
            current = str(parent["parent_id"])

        raise ValidationFailedError("Comment thread is too deep", errors={"parent_id": parent_id})

    @staticmethod
    def create_comment(
        user_id: UUID | str,
        post_id: str,
        content: str,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Add a comment (or reply) and notify the post owner.

        Raises:
            ValidationFailedError: If content is empty
            NotFoundError: If the post or parent comment doesn't exist
        """
        content = (content or "").strip()
        if not content:
            raise ValidationFailedError("content is required", errors={"content": "empty"})

        user_id = normalize_uuid(user_id)
        post = CommentService._fetch_post(post_id)
        root_id = CommentService.resolve_parent(post_id, parent_id)

        client = SupabaseClient.get_client()
        response = (
            client.table("comments")
            .insert({
                "post_id": post_id,
                "user_id": user_id,
                "content": content,
                "parent_id": root_id,
            })
            .execute()
        )
        if not response.data:
            raise SupabaseClientError("Insert returned no data", code="CREATE_COMMENT_FAILED")
        comment = response.data[0]
        logger.info(f"User {user_id} commented on post {post_id}")

        owner_id = str(post.get("user_id") or "")
        if owner_id and owner_id != user_id:
            CommentService._notify_owner(owner_id, user_id, post_id, comment)

        return comment

    @staticmethod
    def _notify_owner(owner_id: str, commenter_id: str, post_id: str, comment: dict[str, Any]) -> None:
        try:
            profile = SupabaseClient.fetch_profile(commenter_id) or {}
            name = profile.get("username") or profile.get("full_name") or "Someone"
            NotificationService.create(
                owner_id,
                NotificationType.POST_COMMENT.value,
                title="New comment",
                message=f"{name} commented on your post",
                data={
                    "post_id": post_id,
                    "comment_id": comment.get("id"),
                    "commenter_id": commenter_id,
                },
            )
        except SupabaseClientError as e:
            logger.error(f"Failed to notify post owner {owner_id}: {e}")
