"""
gateway_pipeline.integrations.notifications.base - Notification Channels
==========================================================================

Two audiences hear from the pipeline:

    PIPELINE  → execution outcomes (email receivers in production)
    APPROVAL  → "please review commit X" requests (chat in production)

A channel delivers a Notification or raises NotificationError. The notifier
swallows those errors: delivery never changes an execution or a gate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Audience(str, Enum):
    """Who a notification is meant for."""

    PIPELINE = "pipeline"
    APPROVAL = "approval"


class Notification(BaseModel):
    """One message to deliver."""

    audience: Audience
    subject: str
    body: str = ""
    recipients: list[str] = Field(default_factory=list)
    execution_id: Optional[str] = Field(default=None)
    event_type: Optional[str] = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationChannel(ABC):
    """Abstract delivery channel."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        ...

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        """Deliver a notification.

        Raises:
            NotificationError: If delivery failed.
        """
        ...

    async def close(self) -> None:
        return None
