# =============================================================================
# core/services/saved_post_service.py - Saved Posts
# =============================================================================
# Saving is idempotent: saving an already-saved post returns the existing
# row, and a unique-violation from a concurrent save is resolved by
# re-reading. Duplicate rows from older clients are tolerated.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from lib.supabase_client import SupabaseClient, is_unique_violation
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

TABLE = "saved_post"


class SavedPostService:
    """
    Service for a user's saved posts.
    """

    @staticmethod
    def _existing(user_id: str, post_id: str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table(TABLE)
            .select("*")
            .eq("post_id", post_id)
            .eq("user_id", user_id)
            .execute()
        )
        return response.data or []

    @staticmethod
    def is_saved(user_id: UUID | str, post_id: str) -> bool:
        return bool(SavedPostService._existing(normalize_uuid(user_id), post_id))

    @staticmethod
    def save(user_id: UUID | str, post_id: str) -> dict[str, Any]:
        """
        Save a post for the user.

        Returns:
            {"data": row} or {"data": row, "isAlreadySaved": True}
        """
        user_id = normalize_uuid(user_id)
        existing = SavedPostService._existing(user_id, post_id)
        if existing:
            return {"data": existing[0], "isAlreadySaved": True}

        client = SupabaseClient.get_client()
        try:
            response = client.table(TABLE).insert({"post_id": post_id, "user_id": user_id}).execute()
        except Exception as e:
            if not is_unique_violation(e):
                raise
            # Lost a race with another save of the same post
            existing = SavedPostService._existing(user_id, post_id)
            if existing:
                return {"data": existing[0], "isAlreadySaved": True}
            raise

        logger.info(f"User {user_id} saved post {post_id}")
        return {"data": response.data[0] if response.data else None}

    @staticmethod
    def unsave(user_id: UUID | str, post_id: str) -> int:
        """Remove every saved row for the post. Returns rows removed."""
        client = SupabaseClient.get_client()
        response = (
            client.table(TABLE)
            .delete()
            .eq("post_id", post_id)
            .eq("user_id", normalize_uuid(user_id))
            .execute()
        )
        return len(response.data or [])

    @staticmethod
    def list_saved(user_id: UUID | str) -> list[dict[str, Any]]:
        """Saved posts with the post embedded, newest save first."""
        client = SupabaseClient.get_client()
        response = (
            client.table(TABLE)
            .select("*, post:posts(*)")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []
