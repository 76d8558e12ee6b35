# =============================================================================
# tests/test_push.py - FCM Client and Push Delivery Tests
# =============================================================================
# The FCM HTTP API is replaced with httpx.MockTransport; PushService is
# tested with a recording FCM double from conftest.py.
# =============================================================================

import json
from unittest.mock import patch

import httpx
import pytest

from app.exceptions import ValidationFailedError
from core.models.notification import PushNotification
from core.services.push_service import (
    MSG_ALL_FAILED,
    MSG_DISABLED,
    MSG_NO_SUBSCRIPTIONS,
    MSG_NO_TOKENS,
    MSG_NO_VALID_AFTER_FILTER,
    MSG_NOT_CONFIGURED,
    PushService,
    extract_token,
)
from lib.fcm import FcmClient, FcmError, TOKEN_URL, build_data_payload


# =============================================================================
# Data payload
# =============================================================================

class TestBuildDataPayload:
    """Every FCM data value must be a string."""

    def test_defaults(self):
        payload = build_data_payload(None, None, None, None, now_ms=1700000000000)

        assert payload == {
            "type": "general",
            "url": "/",
            "title": "New Notification",
            "message": "",
            "tag": "notification_general_1700000000000",
        }

    def test_extra_data_stringified(self):
        payload = build_data_payload(
            "post_like", "New like", "Sam liked your post", "/social/post/p1",
            data={"post_id": "p1", "count": 3, "flag": True, "meta": {"a": 1}, "gone": None},
            now_ms=1,
        )

        assert payload["post_id"] == "p1"
        assert payload["count"] == "3"
        assert payload["flag"] == "true"
        assert json.loads(payload["meta"]) == {"a": 1}
        assert "gone" not in payload
        assert all(isinstance(v, str) for v in payload.values())

    def test_custom_tag_kept(self):
        payload = build_data_payload("test", "t", "m", "/", data={"tag": "dedupe-1"})
        assert payload["tag"] == "dedupe-1"


# =============================================================================
# FcmClient
# =============================================================================

def make_client(handler) -> FcmClient:
    client = FcmClient(
        project_id="motorhub-test",
        client_email="push@motorhub-test.iam.gserviceaccount.com",
        private_key="unused",
        http=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    client._build_assertion = lambda now: "signed-assertion"
    return client


class TestFcmClient:
    """Token exchange, sending and error mapping."""

    def test_send_exchanges_and_caches_token(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3600})
            assert request.headers["Authorization"] == "Bearer ya29.token"
            body = json.loads(request.content)
            assert body["message"]["token"] == "device-1"
            assert body["message"]["webpush"]["fcm_options"]["link"] == "/events/e1"
            return httpx.Response(200, json={"name": "projects/motorhub-test/messages/1"})

        client = make_client(handler)
        first = client.send("device-1", {"title": "hi"}, link="/events/e1")
        client.send("device-1", {"title": "again"}, link="/events/e1")

        assert first == "projects/motorhub-test/messages/1"
        assert calls.count(TOKEN_URL) == 1

    def test_unregistered_token_is_invalid(self):
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
            return httpx.Response(404, json={
                "error": {
                    "status": "NOT_FOUND",
                    "message": "Requested entity was not found.",
                    "details": [{"errorCode": "UNREGISTERED"}],
                }
            })

        with pytest.raises(FcmError) as exc_info:
            make_client(handler).send("dead-token", {})

        assert exc_info.value.status == "UNREGISTERED"
        assert exc_info.value.token_invalid is True

    def test_server_error_keeps_token(self):
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
            return httpx.Response(503, text="unavailable")

        with pytest.raises(FcmError) as exc_info:
            make_client(handler).send("device", {})

        assert exc_info.value.token_invalid is False

    def test_token_exchange_failure(self):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        with pytest.raises(FcmError) as exc_info:
            make_client(handler).get_access_token()

        assert exc_info.value.status == "AUTH_FAILED"


# =============================================================================
# Subscriptions
# =============================================================================

class TestExtractToken:

    @pytest.mark.parametrize("subscription,expected", [
        ({"token": "a"}, "a"),
        ({"fcmToken": "b"}, "b"),
        ("c", "c"),
        ({"endpoint": "https://push"}, None),
        ("", None),
        (None, None),
    ])
    def test_shapes(self, subscription, expected):
        assert extract_token(subscription) == expected


class TestSubscriptions:

    def test_subscribe_then_refresh(self, fake_db, user_id):
        first = PushService.subscribe(user_id, {"token": "tok-1", "platform": "web"})
        second = PushService.subscribe(user_id, {"fcmToken": "tok-1", "platform": "android"})

        assert first["message"] == "Subscription saved"
        assert second["message"] == "Subscription updated"
        assert second["id"] == first["id"]
        [row] = fake_db.rows("push_subscriptions")
        assert row["subscription"]["platform"] == "android"

    def test_bare_string_stored_as_object(self, fake_db, user_id):
        PushService.subscribe(user_id, "tok-2")
        assert fake_db.rows("push_subscriptions")[0]["subscription"] == {"token": "tok-2"}

    def test_subscribe_without_token(self, fake_db, user_id):
        with pytest.raises(ValidationFailedError):
            PushService.subscribe(user_id, {"endpoint": "https://example"})

    def test_unsubscribe_one_device(self, fake_db, user_id):
        fake_db.seed(
            "push_subscriptions",
            {"user_id": user_id, "subscription": {"token": "a"}},
            {"user_id": user_id, "subscription": {"token": "b"}},
        )

        assert PushService.unsubscribe(user_id, "a") == 1
        assert [r["subscription"]["token"] for r in fake_db.rows("push_subscriptions")] == ["b"]

    def test_unsubscribe_all_devices(self, fake_db, user_id, other_user_id):
        fake_db.seed(
            "push_subscriptions",
            {"user_id": user_id, "subscription": {"token": "a"}},
            {"user_id": user_id, "subscription": {"token": "b"}},
            {"user_id": other_user_id, "subscription": {"token": "c"}},
        )

        assert PushService.unsubscribe(user_id) == 2
        assert len(fake_db.rows("push_subscriptions")) == 1


# =============================================================================
# Delivery
# =============================================================================

@pytest.fixture
def fcm(fake_fcm):
    with patch("core.services.push_service.get_fcm_client", return_value=fake_fcm):
        yield fake_fcm


def note(type_="post_like", **data):
    return PushNotification(title="Hello", message="World", type=type_, data=data or None, url="/x")


class TestSendToUser:
    """The five outcomes of single-user delivery."""

    def test_not_configured(self, fake_db, user_id):
        with patch("core.services.push_service.get_fcm_client", return_value=None):
            result = PushService.send_to_user(user_id, note())
        assert result.success is True
        assert result.message == MSG_NOT_CONFIGURED

    def test_disabled_by_preference(self, fake_db, fcm, user_id):
        fake_db.seed("profiles", {"id": user_id, "notification_preferences": {"push_likes": False}})
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"token": "a"}})

        result = PushService.send_to_user(user_id, note())

        assert result.message == MSG_DISABLED
        assert fcm.sent == []

    def test_test_type_bypasses_preferences(self, fake_db, fcm, user_id):
        fake_db.seed("profiles", {"id": user_id, "notification_preferences": {"push_likes": False}})
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"token": "a"}})

        result = PushService.send_to_user(user_id, note("test"))

        assert result.sent == 1

    def test_no_subscriptions(self, fake_db, fcm, user_id):
        result = PushService.send_to_user(user_id, note())
        assert (result.success, result.message) == (True, MSG_NO_SUBSCRIPTIONS)

    def test_no_usable_tokens(self, fake_db, fcm, user_id):
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"endpoint": "x"}})

        result = PushService.send_to_user(user_id, note())

        assert result.success is False
        assert result.message == MSG_NO_TOKENS

    def test_partial_success_prunes_dead_token(self, fake_db, fcm, user_id):
        fake_db.seed(
            "push_subscriptions",
            {"user_id": user_id, "subscription": {"token": "good"}},
            {"user_id": user_id, "subscription": {"token": "dead"}},
        )

        def send(token, data, link="/"):
            if token == "dead":
                raise FcmError("gone", status="UNREGISTERED", token_invalid=True)
            fcm.sent.append(token)
            return "ok"

        fcm.send.side_effect = send

        result = PushService.send_to_user(user_id, note(post_id="p1"))

        assert (result.success, result.sent, result.failed, result.total) == (True, 1, 1, 2)
        assert [r["subscription"]["token"] for r in fake_db.rows("push_subscriptions")] == ["good"]

    def test_all_failed(self, fake_db, fcm, user_id):
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"token": "a"}})
        fcm.send.side_effect = FcmError("unavailable", status="UNAVAILABLE")

        result = PushService.send_to_user(user_id, note())

        assert result.success is False
        assert result.message == MSG_ALL_FAILED
        assert result.failed == 1
        # Transient failure keeps the subscription
        assert len(fake_db.rows("push_subscriptions")) == 1

    def test_payload_and_link(self, fake_db, fcm, user_id):
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": "bare-token"})

        PushService.send_to_user(user_id, note(post_id="p1"))

        [sent] = fcm.sent
        assert sent["token"] == "bare-token"
        assert sent["link"] == "/x"
        assert sent["data"]["post_id"] == "p1"
        assert sent["data"]["title"] == "Hello"


class TestSendToUsers:
    """Batch delivery applies the same preference rule per user."""

    def test_filters_each_users_preferences(self, fake_db, fcm, user_id, other_user_id):
        fake_db.seed(
            "profiles",
            {"id": user_id, "notification_preferences": {"push_events": False}},
            {"id": other_user_id, "notification_preferences": {"push_likes": False}},
        )
        fake_db.seed(
            "push_subscriptions",
            {"user_id": user_id, "subscription": {"token": "u1"}},
            {"user_id": other_user_id, "subscription": {"token": "u2"}},
        )

        result = PushService.send_to_users([user_id, other_user_id], note("event_reminder"))

        assert result.sent == 1
        assert [s["token"] for s in fcm.sent] == ["u2"]

    def test_everyone_filtered(self, fake_db, fcm, user_id):
        fake_db.seed("profiles", {"id": user_id, "notification_preferences": {"push_orders": False}})
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"token": "u1"}})

        result = PushService.send_to_users([user_id], note("order_created"))

        assert result.message == MSG_NO_VALID_AFTER_FILTER

    def test_users_without_profile_receive(self, fake_db, fcm, user_id):
        fake_db.seed("push_subscriptions", {"user_id": user_id, "subscription": {"token": "u1"}})

        result = PushService.send_to_users([user_id], note())

        assert result.sent == 1
