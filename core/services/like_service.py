# =============================================================================
# core/services/like_service.py - Post Likes
# =============================================================================
# Clients update the like button optimistically; the toggle returns the
# authoritative state and count so the client can reconcile or roll back.
# =============================================================================

import logging
from uuid import UUID

from app.exceptions import NotFoundError
from core.models.notification import NotificationType
from core.models.social import LikeToggleResponse
from core.services.notification_service import NotificationService
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_unique_violation
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)


class LikeService:
    """
    Service for liking and unliking posts.
    """

    @staticmethod
    def toggle(user_id: UUID | str, post_id: str) -> LikeToggleResponse:
        """
        Like the post if the user hasn't, otherwise remove the like.

        Raises:
            NotFoundError: If the post doesn't exist
        """
        user_id = normalize_uuid(user_id)
        client = SupabaseClient.get_client()

        post = client.table("posts").select("id, user_id").eq("id", post_id).limit(1).execute()
        if not post.data:
            raise NotFoundError("Post", post_id)
        owner_id = str(post.data[0].get("user_id") or "")

        existing = (
            client.table("likes")
            .select("id")
            .eq("post_id", post_id)
            .eq("user_id", user_id)
            .execute()
        )

        if existing.data:
            client.table("likes").delete().eq("post_id", post_id).eq("user_id", user_id).execute()
            liked = False
        else:
            try:
                client.table("likes").insert({"post_id": post_id, "user_id": user_id}).execute()
            except Exception as e:
                # A concurrent like from the same user already landed
                if not is_unique_violation(e):
                    raise
            liked = True
            if owner_id and owner_id != user_id:
                LikeService._notify_owner(owner_id, user_id, post_id)

        likes_count = SupabaseClient.count("likes", eq={"post_id": post_id})
        logger.debug(f"User {user_id} {'liked' if liked else 'unliked'} post {post_id}")
        return LikeToggleResponse(post_id=post_id, liked=liked, likes_count=likes_count)

    @staticmethod
    def _notify_owner(owner_id: str, liker_id: str, post_id: str) -> None:
        try:
            profile = SupabaseClient.fetch_profile(liker_id) or {}
            name = profile.get("username") or profile.get("full_name") or "Someone"
            NotificationService.create(
                owner_id,
                NotificationType.POST_LIKE.value,
                title="New like",
                message=f"{name} liked your post",
                data={"post_id": post_id, "liker_id": liker_id},
            )
        except SupabaseClientError as e:
            logger.error(f"Failed to notify post owner {owner_id}: {e}")
