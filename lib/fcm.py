# =============================================================================
# lib/fcm.py - Firebase Cloud Messaging (HTTP v1) Client
# =============================================================================
# Sends data messages to individual device tokens.
#
# Authentication follows the Google service-account flow:
# 1. Sign a short-lived JWT assertion (RS256) with the account's private key
# 2. Exchange it at the OAuth token endpoint for an access token
# 3. Cache the access token until shortly before it expires
#
# Usage:
#   from lib.fcm import get_fcm_client
#   client = get_fcm_client()
#   if client:
#       client.send(token, data={"title": "Hi"}, link="/")
# =============================================================================

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any

import httpx
from jose import jwt

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
SEND_URL_TEMPLATE = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# Refresh the access token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 60

# FCM error codes that mean the device token will never work again
INVALID_TOKEN_CODES = frozenset({
    "UNREGISTERED",
    "INVALID_ARGUMENT",
    "NOT_FOUND",
})


class FcmError(ApplicationError):
    """
    Error returned by FCM for a single send.

    `token_invalid` is True when the device token should be deleted.
    """

    def __init__(self, message: str, status: str = "UNKNOWN", token_invalid: bool = False):
        super().__init__(
            message,
            code=f"FCM_{status}",
            suggestion="Remove the subscription" if token_invalid else None,
            details={"status": status},
        )
        self.status = status
        self.token_invalid = token_invalid


class FcmClient:
    """
    Minimal FCM HTTP v1 client.

    One instance is shared per process; the access token cache is guarded
    by a lock because Celery and the API thread pool may send concurrently.
    """

    def __init__(
        self,
        project_id: str,
        client_email: str,
        private_key: str,
        http: httpx.Client | None = None,
    ):
        self.project_id = project_id
        self.client_email = client_email
        self.private_key = private_key
        self._http = http or httpx.Client(timeout=10)
        self._access_token: str | None = None
        self._expires_at: float = 0
        self._lock = threading.Lock()

    @property
    def send_url(self) -> str:
        return SEND_URL_TEMPLATE.format(project_id=self.project_id)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def _build_assertion(self, now: int) -> str:
        claims = {
            "iss": self.client_email,
            "scope": FCM_SCOPE,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    def get_access_token(self) -> str:
        """
        Return a cached OAuth access token, refreshing it when needed.

        Raises:
            FcmError: If the token exchange fails
        """
        with self._lock:
            now = time.time()
            if self._access_token and now < self._expires_at - TOKEN_REFRESH_MARGIN:
                return self._access_token

            assertion = self._build_assertion(int(now))
            try:
                response = self._http.post(
                    TOKEN_URL,
                    data={
                        "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                        "assertion": assertion,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise FcmError(f"Failed to obtain FCM access token: {e}", status="AUTH_FAILED")

            payload = response.json()
            self._access_token = payload["access_token"]
            self._expires_at = now + int(payload.get("expires_in", 3600))
            logger.debug("Refreshed FCM access token")
            return self._access_token

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send(self, token: str, data: dict[str, str], link: str = "/") -> str:
        """
        Send a data message to one device token.

        Args:
            token: FCM registration token
            data: String-only data payload
            link: URL opened when a web push notification is clicked

        Returns:
            The FCM message name (e.g. "projects/x/messages/123")

        Raises:
            FcmError: If FCM rejects the message or the request fails
        """
        message = {
            "message": {
                "token": token,
                "data": data,
                "webpush": {"fcm_options": {"link": link}},
            }
        }

        try:
            response = self._http.post(
                self.send_url,
                json=message,
                headers={"Authorization": f"Bearer {self.get_access_token()}"},
            )
        except httpx.HTTPError as e:
            raise FcmError(f"FCM request failed: {e}", status="TRANSPORT")

        if response.status_code >= 400:
            raise self._error_from_response(response)

        return response.json().get("name", "")

    @staticmethod
    def _error_from_response(response: httpx.Response) -> FcmError:
        status = "UNKNOWN"
        message = f"FCM returned HTTP {response.status_code}"
        try:
            error = response.json().get("error", {})
            status = error.get("status") or status
            message = error.get("message") or message
            # The FCM-specific code lives in details[].errorCode
            for detail in error.get("details", []):
                if detail.get("errorCode"):
                    status = detail["errorCode"]
                    break
        except ValueError:
            pass

        return FcmError(message, status=status, token_invalid=status in INVALID_TOKEN_CODES)


_client: FcmClient | None = None


def get_fcm_client() -> FcmClient | None:
    """
    Get the process-wide FCM client, or None when push is not configured.
    """
    global _client

    if not settings.push_configured:
        return None

    if _client is None:
        _client = FcmClient(
            project_id=settings.FCM_PROJECT_ID,
            client_email=settings.FCM_CLIENT_EMAIL,
            private_key=settings.fcm_private_key_pem,
        )
        logger.info(f"FCM client initialized for project {settings.FCM_PROJECT_ID}")

    return _client


def build_data_payload(
    notification_type: str | None,
    title: str | None,
    message: str | None,
    url: str | None,
    data: dict[str, Any] | None = None,
    now_ms: int | None = None,
) -> dict[str, str]:
    """
    Build the string-only FCM data payload.

    Every value must be a string: dict/list values are JSON-encoded,
    other scalars go through str(), None values are dropped.
    """
    kind = notification_type or "general"
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    extra = data if isinstance(data, dict) else {}
    payload = {
        "type": kind,
        "url": url or "/",
        "title": title or "New Notification",
        "message": message or "",
        "tag": extra.get("tag") or f"notification_{kind}_{now_ms}",
    }

    for key, value in extra.items():
        if value is None:
            continue
        if isinstance(value, str):
            payload[key] = value
        elif isinstance(value, (dict, list)):
            payload[key] = json.dumps(value)
        elif isinstance(value, bool):
            payload[key] = "true" if value else "false"
        else:
            payload[key] = str(value)

    return payload
