"""
gateway_pipeline.orchestration.notifier - Bus → Notification Bridge
=====================================================================

Subscribes to the pipeline event stream and turns the events people care
about into notifications:

    EXECUTION_SUCCEEDED / FAILED / CANCELLED  → PIPELINE audience
    APPROVAL_REQUESTED                        → APPROVAL audience

Delivery is fire-and-forget. Approval requests are delivered from a
background task so a slow channel never holds the gate open; outcomes are
delivered inline. A channel error is logged and counted; it never reaches
the orchestrator or the approval gate.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from gateway_pipeline.core.enums import EventType
from gateway_pipeline.core.exceptions import NotificationError
from gateway_pipeline.core.messages import EVENTS_CHANNEL, PipelineEvent
from gateway_pipeline.integrations.notifications.base import (
    Audience,
    Notification,
    NotificationChannel,
)
from gateway_pipeline.orchestration.message_bus import MessageBus


logger = structlog.get_logger()

OUTCOME_EVENTS = frozenset(
    {
        EventType.EXECUTION_SUCCEEDED,
        EventType.EXECUTION_FAILED,
        EventType.EXECUTION_CANCELLED,
    }
)


class PipelineNotifier:
    """Forwards execution outcomes and approval requests to a channel.

    Args:
        message_bus: Bus to listen on.
        channel: Where notifications are delivered.
        pipeline_recipients: Receivers of execution outcomes.
        approval_recipients: Receivers of approval requests. Defaults to
            the pipeline recipients.
        approval_route: Chat integration approval requests are routed
            through, recorded in their metadata.
    """

    def __init__(
        self,
        message_bus: MessageBus,
        channel: NotificationChannel,
        pipeline_recipients: Optional[list[str]] = None,
        approval_recipients: Optional[list[str]] = None,
        approval_route: Optional[str] = None,
    ) -> None:
        self._message_bus = message_bus
        self._channel = channel
        self._pipeline_recipients = list(pipeline_recipients or [])
        self._approval_recipients = list(
            approval_recipients if approval_recipients is not None else self._pipeline_recipients
        )
        self._approval_route = approval_route
        self._sent_count = 0
        self._failed_count = 0
        self._started = False
        self._pending: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(component="notifier", channel=channel.channel_name)

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def failed_count(self) -> int:
        return self._failed_count

    async def start(self) -> None:
        if self._started:
            return
        await self._message_bus.subscribe(EVENTS_CHANNEL, self.handle_event)
        self._started = True
        self._logger.info("notifier_started")

    async def stop(self) -> None:
        self._started = False
        await self.flush()
        await self._channel.close()
        self._logger.info("notifier_stopped", sent=self._sent_count, failed=self._failed_count)

    async def flush(self) -> None:
        """Wait for every background delivery still in flight."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def handle_event(self, event: PipelineEvent) -> None:
        notification = self.build_notification(event)
        if notification is None:
            return
        if notification.audience == Audience.APPROVAL:
            task = asyncio.create_task(self._deliver(event, notification))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return
        await self._deliver(event, notification)

    async def _deliver(self, event: PipelineEvent, notification: Notification) -> None:
        try:
            await self._channel.send(notification)
        except NotificationError as e:
            self._failed_count += 1
            self._logger.warning(
                "notification_delivery_failed",
                execution_id=event.execution_id,
                event_type=event.event_type.value,
                error=e.message,
            )
            return
        self._sent_count += 1

    def build_notification(self, event: PipelineEvent) -> Optional[Notification]:
        """The notification for an event, or None if nobody needs one."""
        if event.event_type in OUTCOME_EVENTS:
            return Notification(
                audience=Audience.PIPELINE,
                subject=event.describe(),
                body=self._outcome_body(event),
                recipients=self._pipeline_recipients,
                execution_id=event.execution_id,
                event_type=event.event_type.value,
                metadata=dict(event.payload),
            )
        if event.event_type == EventType.APPROVAL_REQUESTED:
            lines = [
                event.payload.get("summary") or "Approval requested",
                f"Commit: {event.commit_id}",
                f"Execution: {event.execution_id}",
            ]
            if event.payload.get("expires_at"):
                lines.append(f"Expires: {event.payload['expires_at']}")
            metadata = dict(event.payload)
            if self._approval_route:
                metadata["route"] = self._approval_route
            return Notification(
                audience=Audience.APPROVAL,
                subject=event.describe(),
                body="\n".join(lines),
                recipients=self._approval_recipients,
                execution_id=event.execution_id,
                event_type=event.event_type.value,
                metadata=metadata,
            )
        return None

    @staticmethod
    def _outcome_body(event: PipelineEvent) -> str:
        lines = [f"Execution {event.execution_id} of commit {event.commit_id}"]
        for key in ("promotion_state", "failure_kind", "recovery_hint", "failed_stage", "reason"):
            value = event.payload.get(key)
            if value:
                lines.append(f"{key.replace('_', ' ').capitalize()}: {value}")
        return "\n".join(lines)
