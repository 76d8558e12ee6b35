# =============================================================================
# tests/test_tasks.py - Celery Task Tests
# =============================================================================
# Tasks are run in-process through Task.run; no broker is involved.
# =============================================================================

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from celery.exceptions import Retry

from app.config import settings
from core.models.notification import PushResult
from lib.supabase_client import SupabaseClientError
from workers.tasks import (
    _retry_or_give_up,
    dispatch_push_notification,
    retry_countdown,
    send_reminders,
)
from workers.celery_app import celery_app

PAYLOAD = {"title": "New like", "message": "Sam liked your post", "type": "post_like", "url": "/social/post/p1"}


class RetryRequested(Exception):
    pass


def fake_task(retries: int, max_retries: int = 3):
    calls = []

    def retry(countdown):
        calls.append(countdown)
        return RetryRequested(countdown)

    return SimpleNamespace(request=SimpleNamespace(retries=retries), max_retries=max_retries, retry=retry, calls=calls)


class TestRetryPolicy:
    """Exponential backoff, then give up quietly."""

    def test_countdown_doubles(self):
        assert [retry_countdown(n) for n in range(4)] == [30, 60, 120, 240]

    def test_retries_while_budget_left(self):
        task = fake_task(retries=1)

        with pytest.raises(RetryRequested):
            _retry_or_give_up(task, "u1", "fcm down")

        assert task.calls == [60]

    def test_gives_up_after_last_retry(self):
        task = fake_task(retries=3)

        result = _retry_or_give_up(task, "u1", "fcm down")

        assert result == {"success": False, "error": "fcm down", "retries": 3}
        assert task.calls == []


class TestRetryBudget:
    """Task annotations as applied by the worker app."""

    def test_dispatch_uses_configured_max_retries(self):
        task = celery_app.tasks["workers.tasks.dispatch_push_notification"]

        assert settings.PUSH_MAX_RETRIES == 5
        assert task.max_retries == settings.PUSH_MAX_RETRIES

    def test_retries_until_configured_budget(self):
        budget = celery_app.tasks["workers.tasks.dispatch_push_notification"].max_retries
        task = fake_task(retries=budget - 1, max_retries=budget)

        with pytest.raises(RetryRequested):
            _retry_or_give_up(task, "u1", "fcm down")

        assert task.calls == [retry_countdown(budget - 1)]


class TestDispatchPushNotification:

    def test_success_returns_result(self):
        result = PushResult(success=True, sent=2, failed=0, total=2)
        with patch("core.services.push_service.PushService.send_to_user", return_value=result) as send:
            response = dispatch_push_notification.run("u1", PAYLOAD)

        assert response == result.to_response()
        user_id, notification = send.call_args.args
        assert user_id == "u1"
        assert notification.url == "/social/post/p1"

    def test_malformed_payload_dropped(self):
        with patch("core.services.push_service.PushService.send_to_user") as send:
            response = dispatch_push_notification.run("u1", {"title": "t", "data": "not-a-dict"})

        assert response == {"success": False, "error": "Invalid notification payload"}
        send.assert_not_called()

    def test_lookup_failure_retries(self):
        with patch(
            "core.services.push_service.PushService.send_to_user",
            side_effect=SupabaseClientError("connection reset"),
        ):
            with pytest.raises(Retry):
                dispatch_push_notification.run("u1", PAYLOAD)

    def test_all_sends_failed_retries(self):
        failed = PushResult(success=False, message="All push notifications failed", sent=0, failed=2, total=2)
        with patch("core.services.push_service.PushService.send_to_user", return_value=failed):
            with pytest.raises(Retry):
                dispatch_push_notification.run("u1", PAYLOAD)

    def test_no_subscriptions_is_not_retried(self):
        nothing = PushResult(success=True, message="No subscriptions found")
        with patch("core.services.push_service.PushService.send_to_user", return_value=nothing):
            response = dispatch_push_notification.run("u1", PAYLOAD)

        assert response["success"] is True


class TestSendReminders:

    def test_runs_requested_batch(self, fake_db):
        fake_db.rpc_results["send_abandoned_cart_reminders"] = [{"notifications_sent": 7}]

        result = send_reminders.run("abandoned_cart")

        assert fake_db.rpc_calls == ["send_abandoned_cart_reminders"]
        assert result["notifications_sent"] == 7
