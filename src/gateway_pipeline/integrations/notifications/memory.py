"""
gateway_pipeline.integrations.notifications.memory - In-Memory & Log Channels
================================================================================
"""

from __future__ import annotations

from typing import Optional

import structlog

from gateway_pipeline.core.exceptions import NotificationError
from gateway_pipeline.integrations.notifications.base import (
    Audience,
    Notification,
    NotificationChannel,
)


logger = structlog.get_logger()


class InMemoryNotificationChannel(NotificationChannel):
    """Keeps every delivered notification in ``sent``.

    Call ``fail_deliveries()`` to make every send raise NotificationError.
    """

    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self._failing = False

    @property
    def channel_name(self) -> str:
        return "memory"

    def fail_deliveries(self, failing: bool = True) -> None:
        self._failing = failing

    def sent_to(self, audience: Audience) -> list[Notification]:
        return [n for n in self.sent if n.audience == audience]

    async def send(self, notification: Notification) -> None:
        if self._failing:
            raise NotificationError(
                message="In-memory channel configured to fail",
                details={"subject": notification.subject},
            )
        self.sent.append(notification)


class LogNotificationChannel(NotificationChannel):
    """Writes notifications to the structured log."""

    def __init__(self, name: Optional[str] = None) -> None:
        self._logger = logger.bind(component="notification_channel", channel=name or "log")

    @property
    def channel_name(self) -> str:
        return "log"

    async def send(self, notification: Notification) -> None:
        self._logger.info(
            "notification",
            audience=notification.audience.value,
            subject=notification.subject,
            recipients=notification.recipients,
            execution_id=notification.execution_id,
            event_type=notification.event_type,
        )
