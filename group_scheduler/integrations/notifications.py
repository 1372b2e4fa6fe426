"""
Notification delivery.

Handles sending participant notifications either to the log or to a
webhook endpoint with an HMAC signature. Delivery is fire-and-forget:
failures are logged and never reach the lifecycle.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)


def generate_signature(payload: str, secret: str) -> str:
    """
    Generate HMAC-SHA256 signature for a notification payload.

    Args:
        payload: JSON string payload
        secret: Shared secret

    Returns:
        Hex-encoded signature
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class LoggingNotifier:
    """Notifier used when no delivery channel is configured."""

    def notify(
        self,
        user_id: UUID,
        event_id: UUID,
        kind: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        logger.info(f"Notification {kind} for user {user_id} (event {event_id}): {details or {}}")


class WebhookNotifier:
    """Posts each notification to a webhook endpoint."""

    def __init__(
        self,
        url: str,
        secret: str = "",
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._url = url
        self._secret = secret
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def notify(
        self,
        user_id: UUID,
        event_id: UUID,
        kind: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Deliver one notification.

        Args:
            user_id: Recipient
            event_id: Event the notification is about
            kind: Notification kind, e.g. "event_confirmed"
            details: Extra payload data
        """
        body = {
            "kind": kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": str(user_id),
            "event_id": str(event_id),
            "data": details or {},
        }
        payload_json = json.dumps(body, default=str)

        headers = {
            "Content-Type": "application/json",
            "X-Notification-Kind": kind,
            "X-Notification-Timestamp": body["timestamp"],
        }
        if self._secret:
            headers["X-Notification-Signature"] = generate_signature(payload_json, self._secret)

        try:
            response = self._client.post(self._url, content=payload_json, headers=headers)
        except httpx.TimeoutException:
            logger.warning(f"Notification {kind} for user {user_id} timed out")
            return
        except httpx.RequestError as e:
            logger.warning(f"Notification {kind} for user {user_id} request error: {e}")
            return

        if response.is_success:
            logger.debug(f"Notification {kind} delivered to user {user_id}")
        else:
            logger.warning(
                f"Notification {kind} for user {user_id} failed: "
                f"HTTP {response.status_code}: {response.text[:200]}"
            )
