"""
gateway_pipeline.integrations.notifications.slack - Slack Webhook Channel
===========================================================================

Posts notifications to a Slack incoming webhook:

    POST {webhook_url}
    {"text": "*subject*\\nbody", "username": "...", ...}
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from gateway_pipeline.core.exceptions import NotificationError
from gateway_pipeline.integrations.notifications.base import (
    Audience,
    Notification,
    NotificationChannel,
)


logger = structlog.get_logger()


class SlackWebhookChannel(NotificationChannel):
    """Notification channel posting to a Slack incoming webhook.

    Args:
        webhook_url: Incoming-webhook URL.
        username: Display name for the messages.
        timeout: Seconds per request.
        client: Pre-built client (tests pass one with a mock transport).
    """

    def __init__(
        self,
        webhook_url: str,
        username: str = "gateway-pipeline",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._username = username
        self._timeout = timeout
        self._client = client
        self._logger = logger.bind(component="notification_channel", channel="slack")

    @property
    def channel_name(self) -> str:
        return "slack"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def format_payload(notification: Notification, username: str) -> dict[str, Any]:
        icon = ":raised_hand:" if notification.audience == Audience.APPROVAL else ":rocket:"
        text = f"{icon} *{notification.subject}*"
        if notification.body:
            text = f"{text}\n{notification.body}"
        return {"text": text, "username": username}

    async def send(self, notification: Notification) -> None:
        client = self._ensure_client()
        payload = self.format_payload(notification, self._username)
        try:
            response = await client.post(self._webhook_url, json=payload)
        except httpx.TimeoutException as e:
            self._logger.error("slack_timeout", error=str(e))
            raise NotificationError(
                message="Slack webhook timed out",
                error_code="NOTIFICATION_TIMEOUT",
                details={"subject": notification.subject},
            ) from e
        except httpx.RequestError as e:
            self._logger.error("slack_request_error", error=str(e))
            raise NotificationError(
                message=f"Slack webhook request failed: {e}",
                details={"subject": notification.subject},
            ) from e

        if response.status_code >= 400:
            raise NotificationError(
                message=f"Slack webhook returned {response.status_code}",
                details={"subject": notification.subject, "status_code": response.status_code},
            )
        self._logger.debug("slack_notification_sent", subject=notification.subject)
