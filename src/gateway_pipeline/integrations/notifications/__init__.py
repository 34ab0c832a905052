"""
gateway_pipeline.integrations.notifications - Notification Channels
=====================================================================

Available Channels:
    - NotificationChannel:          Abstract interface.
    - InMemoryNotificationChannel:  Collects notifications for tests.
    - LogNotificationChannel:       Structured log output.
    - SlackWebhookChannel:          Slack incoming webhook over httpx.
"""

from gateway_pipeline.core.config import NotificationConfig
from gateway_pipeline.core.exceptions import ConfigurationError
from gateway_pipeline.integrations.notifications.base import (
    Audience,
    Notification,
    NotificationChannel,
)
from gateway_pipeline.integrations.notifications.memory import (
    InMemoryNotificationChannel,
    LogNotificationChannel,
)
from gateway_pipeline.integrations.notifications.slack import SlackWebhookChannel


def create_notification_channel(config: NotificationConfig) -> NotificationChannel:
    """Build the channel named by ``config.provider``.

    Raises:
        ConfigurationError: If slack is selected without a webhook URL.
        ValueError: If the provider name is unknown.
    """
    if config.provider == "memory":
        return InMemoryNotificationChannel()
    if config.provider == "log":
        return LogNotificationChannel()
    if config.provider == "slack":
        if not config.slack_webhook_url:
            raise ConfigurationError(
                message="Slack notifications need notifications.slack_webhook_url",
                error_code="MISSING_WEBHOOK_URL",
            )
        return SlackWebhookChannel(
            config.slack_webhook_url,
            timeout=config.request_timeout,
        )
    raise ValueError(
        f"Unknown notification provider: '{config.provider}'. Supported: memory, log, slack"
    )


__all__ = [
    "Audience",
    "Notification",
    "NotificationChannel",
    "InMemoryNotificationChannel",
    "LogNotificationChannel",
    "SlackWebhookChannel",
    "create_notification_channel",
]
