# =============================================================================
# tests/test_social.py - Comments, Likes and Saved Posts
# =============================================================================
# Services run against the in-memory Supabase from conftest.py.
# =============================================================================

from unittest.mock import patch

import pytest

from app.exceptions import NotFoundError, ValidationFailedError
from core.services.comment_service import CommentService, build_thread, find_root_id
from core.services.like_service import LikeService
from core.services.saved_post_service import SavedPostService


# =============================================================================
# Threading helpers
# =============================================================================

class TestFindRootId:

    def test_top_level_is_its_own_root(self):
        assert find_root_id("a", {"a": None}) == "a"

    def test_follows_chain(self):
        parents = {"a": None, "b": "a", "c": "b"}
        assert find_root_id("c", parents) == "a"

    def test_missing_link_returns_none(self):
        assert find_root_id("c", {"c": "ghost"}) is None

    def test_cycle_returns_none(self):
        assert find_root_id("a", {"a": "b", "b": "a"}) is None


class TestBuildThread:
    """Grouping comments one level deep."""

    def test_groups_replies_under_root(self):
        comments = [
            {"id": "r2", "parent_id": "c1", "created_at": "2025-01-01T10:03:00Z"},
            {"id": "c1", "parent_id": None, "created_at": "2025-01-01T10:00:00Z"},
            {"id": "r1", "parent_id": "c1", "created_at": "2025-01-01T10:01:00Z"},
            {"id": "c2", "parent_id": None, "created_at": "2025-01-01T10:02:00Z"},
        ]

        thread = build_thread(comments)

        assert [t["id"] for t in thread] == ["c1", "c2"]
        assert [r["id"] for r in thread[0]["replies"]] == ["r1", "r2"]
        assert thread[1]["replies"] == []

    def test_legacy_nested_reply_flattened(self):
        comments = [
            {"id": "c1", "parent_id": None, "created_at": "2025-01-01T10:00:00Z"},
            {"id": "r1", "parent_id": "c1", "created_at": "2025-01-01T10:01:00Z"},
            {"id": "rr1", "parent_id": "r1", "created_at": "2025-01-01T10:02:00Z"},
        ]

        thread = build_thread(comments)

        assert len(thread) == 1
        assert [r["id"] for r in thread[0]["replies"]] == ["r1", "rr1"]

    def test_orphan_promoted_to_top_level(self):
        comments = [
            {"id": "c1", "parent_id": None, "created_at": "2025-01-01T10:00:00Z"},
            {"id": "o1", "parent_id": "deleted", "created_at": "2025-01-01T10:05:00Z"},
        ]

        thread = build_thread(comments)

        assert [t["id"] for t in thread] == ["c1", "o1"]

    def test_empty(self):
        assert build_thread([]) == []


# =============================================================================
# CommentService
# =============================================================================

class TestCommentService:
    """Creating and listing comments."""

    @pytest.fixture
    def post(self, fake_db, other_user_id):
        [post] = fake_db.seed("posts", {"user_id": other_user_id, "content": "My E30 build"})
        return post

    def test_create_comment_notifies_owner(self, fake_db, post, user_id, other_user_id):
        fake_db.seed("profiles", {"id": user_id, "username": "sam"})

        comment = CommentService.create_comment(user_id, post["id"], "  Looks great  ")

        assert comment["content"] == "Looks great"
        assert comment["parent_id"] is None
        [notification] = fake_db.rows("notifications")
        assert notification["user_id"] == other_user_id
        assert notification["type"] == "post_comment"
        assert notification["message"] == "sam commented on your post"
        assert notification["data"]["comment_id"] == comment["id"]

    def test_own_post_not_notified(self, fake_db, user_id):
        [post] = fake_db.seed("posts", {"user_id": user_id})

        CommentService.create_comment(user_id, post["id"], "bump")

        assert fake_db.rows("notifications") == []

    def test_empty_content_rejected(self, fake_db, post, user_id):
        with pytest.raises(ValidationFailedError):
            CommentService.create_comment(user_id, post["id"], "   ")
        assert fake_db.rows("comments") == []

    def test_unknown_post(self, fake_db, user_id):
        with pytest.raises(NotFoundError):
            CommentService.create_comment(user_id, "missing-post", "hello")

    def test_reply_to_reply_attaches_to_root(self, fake_db, post, user_id):
        [root] = fake_db.seed("comments", {"post_id": post["id"], "parent_id": None, "content": "root"})
        [reply] = fake_db.seed("comments", {"post_id": post["id"], "parent_id": root["id"], "content": "reply"})

        created = CommentService.create_comment(user_id, post["id"], "nested", parent_id=reply["id"])

        assert created["parent_id"] == root["id"]

    def test_parent_on_other_post_rejected(self, fake_db, post, user_id):
        [other_post] = fake_db.seed("posts", {"user_id": user_id})
        [parent] = fake_db.seed("comments", {"post_id": other_post["id"], "parent_id": None})

        with pytest.raises(ValidationFailedError):
            CommentService.create_comment(user_id, post["id"], "hi", parent_id=parent["id"])

    def test_missing_parent(self, fake_db, post, user_id):
        with pytest.raises(NotFoundError):
            CommentService.create_comment(user_id, post["id"], "hi", parent_id="ghost")

    def test_notification_failure_keeps_comment(self, fake_db, post, user_id):
        from lib.supabase_client import SupabaseClientError

        with patch(
            "core.services.comment_service.NotificationService.create",
            side_effect=SupabaseClientError("insert failed"),
        ):
            comment = CommentService.create_comment(user_id, post["id"], "still here")

        assert fake_db.rows("comments")[0]["id"] == comment["id"]

    def test_list_comments_order_limit_and_count(self, fake_db, post):
        fake_db.seed(
            "comments",
            {"post_id": post["id"], "content": "first", "created_at": "2025-01-01T10:00:00Z"},
            {"post_id": post["id"], "content": "second", "created_at": "2025-01-01T11:00:00Z"},
            {"post_id": post["id"], "content": "third", "created_at": "2025-01-01T12:00:00Z"},
            {"post_id": "other", "content": "elsewhere"},
        )

        newest = CommentService.list_comments(post["id"], limit=2)
        oldest = CommentService.list_comments(post["id"], ascending=True)

        assert [c["content"] for c in newest["data"]] == ["third", "second"]
        assert newest["count"] == 3
        assert [c["content"] for c in oldest["data"]] == ["first", "second", "third"]


# =============================================================================
# LikeService
# =============================================================================

class TestLikeService:
    """Toggling likes."""

    def test_like_then_unlike(self, fake_db, user_id, other_user_id):
        [post] = fake_db.seed("posts", {"user_id": other_user_id})
        fake_db.seed("likes", {"post_id": post["id"], "user_id": "someone-else"})

        liked = LikeService.toggle(user_id, post["id"])
        unliked = LikeService.toggle(user_id, post["id"])

        assert (liked.liked, liked.likes_count) == (True, 2)
        assert (unliked.liked, unliked.likes_count) == (False, 1)

    def test_like_notifies_owner_once(self, fake_db, user_id, other_user_id):
        [post] = fake_db.seed("posts", {"user_id": other_user_id})

        LikeService.toggle(user_id, post["id"])
        LikeService.toggle(user_id, post["id"])

        notifications = fake_db.rows("notifications")
        assert len(notifications) == 1
        assert notifications[0]["type"] == "post_like"
        assert notifications[0]["data"]["post_id"] == post["id"]

    def test_liking_own_post_no_notification(self, fake_db, user_id):
        [post] = fake_db.seed("posts", {"user_id": user_id})

        LikeService.toggle(user_id, post["id"])

        assert fake_db.rows("notifications") == []

    def test_concurrent_duplicate_like_is_liked(self, fake_db, user_id, other_user_id):
        [post] = fake_db.seed("posts", {"user_id": other_user_id})
        fake_db.seed("likes", {"post_id": post["id"], "user_id": "in-flight"})
        # The insert collides with a row the existence check didn't see
        fake_db.unique["likes"] = [("post_id",)]

        result = LikeService.toggle(user_id, post["id"])

        assert result.liked is True
        assert result.likes_count == 1

    def test_unknown_post(self, fake_db, user_id):
        with pytest.raises(NotFoundError):
            LikeService.toggle(user_id, "nope")


# =============================================================================
# SavedPostService
# =============================================================================

class TestSavedPostService:
    """Idempotent saving."""

    def test_save_twice_returns_existing(self, fake_db, user_id):
        first = SavedPostService.save(user_id, "p1")
        second = SavedPostService.save(user_id, "p1")

        assert "isAlreadySaved" not in first
        assert second["isAlreadySaved"] is True
        assert second["data"]["id"] == first["data"]["id"]
        assert len(fake_db.rows("saved_post")) == 1

    def test_is_saved(self, fake_db, user_id, other_user_id):
        fake_db.seed("saved_post", {"user_id": other_user_id, "post_id": "p1"})

        assert SavedPostService.is_saved(user_id, "p1") is False
        SavedPostService.save(user_id, "p1")
        assert SavedPostService.is_saved(user_id, "p1") is True

    def test_unsave_removes_duplicates(self, fake_db, user_id):
        fake_db.seed(
            "saved_post",
            {"user_id": user_id, "post_id": "p1"},
            {"user_id": user_id, "post_id": "p1"},
            {"user_id": user_id, "post_id": "p2"},
        )

        assert SavedPostService.unsave(user_id, "p1") == 2
        assert [r["post_id"] for r in fake_db.rows("saved_post")] == ["p2"]

    def test_unsave_missing_is_zero(self, fake_db, user_id):
        assert SavedPostService.unsave(user_id, "p1") == 0

    def test_unique_violation_resolved_by_reread(self, fake_db, user_id):
        [row] = fake_db.seed("saved_post", {"user_id": user_id, "post_id": "p1"})
        fake_db.unique["saved_post"] = [("user_id", "post_id")]

        calls = {"n": 0}
        original = SavedPostService._existing

        def first_miss(uid, pid):
            calls["n"] += 1
            return [] if calls["n"] == 1 else original(uid, pid)

        with patch.object(SavedPostService, "_existing", side_effect=first_miss):
            result = SavedPostService.save(user_id, "p1")

        assert result == {"data": row, "isAlreadySaved": True}

    def test_list_saved_newest_first(self, fake_db, user_id):
        fake_db.seed(
            "saved_post",
            {"user_id": user_id, "post_id": "old", "created_at": "2025-01-01T00:00:00Z"},
            {"user_id": user_id, "post_id": "new", "created_at": "2025-02-01T00:00:00Z"},
        )

        assert [r["post_id"] for r in SavedPostService.list_saved(user_id)] == ["new", "old"]
