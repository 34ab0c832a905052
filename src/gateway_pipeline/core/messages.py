"""
gateway_pipeline.core.messages - Pipeline Event Types
=======================================================

Events are what the orchestrator publishes on the Message Bus at execution,
stage and action boundaries. The notifier and any external observer (a
dashboard, an audit sink) subscribe to them; nothing in the pipeline waits
on an event, so delivery never affects an execution.

    ┌─────────────────────────────────────────────────────────────┐
    │  PipelineEvent (envelope)                                   │
    │  ├── event_id:       Unique identifier                      │
    │  ├── event_type:     What happened                          │
    │  ├── execution_id:   Which execution it happened to         │
    │  ├── pipeline_name:  Which pipeline                         │
    │  ├── commit_id:      Version under promotion                │
    │  ├── stage_name:     Stage (stage/action events)            │
    │  ├── action_name:    Action (action events)                 │
    │  ├── payload:        Event-specific data                    │
    │  └── timestamp:      When it was created                    │
    └─────────────────────────────────────────────────────────────┘

Channel Naming Convention:
    - "pipeline:events"                 → Every event
    - "pipeline:execution:{id}"         → Events of one execution
    - "pipeline:approvals"              → Approval requested / resolved
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from gateway_pipeline.core.enums import EventType


EVENTS_CHANNEL = "pipeline:events"
APPROVALS_CHANNEL = "pipeline:approvals"

APPROVAL_EVENTS = frozenset({EventType.APPROVAL_REQUESTED, EventType.APPROVAL_RESOLVED})


def execution_channel(execution_id: str) -> str:
    """Channel carrying the events of a single execution."""
    return f"pipeline:execution:{execution_id}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineEvent(BaseModel):
    """Envelope for everything published on the message bus.

    Example:
        >>> event = PipelineEvent(
        ...     event_type=EventType.STAGE_FAILED,
        ...     execution_id="exec-123",
        ...     pipeline_name="illiad-gateway-pipeline",
        ...     stage_name="DeployToTest",
        ...     payload={"reason": "smoke test failed"},
        ... )
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    execution_id: str
    pipeline_name: str
    commit_id: Optional[str] = Field(default=None)
    stage_name: Optional[str] = Field(default=None)
    action_name: Optional[str] = Field(default=None)
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_now)

    def channels(self) -> list[str]:
        """Every channel this event is published on."""
        channels = [EVENTS_CHANNEL, execution_channel(self.execution_id)]
        if self.event_type in APPROVAL_EVENTS:
            channels.append(APPROVALS_CHANNEL)
        return channels

    def describe(self) -> str:
        """One-line human description, used for notifications."""
        where = "/".join(n for n in (self.stage_name, self.action_name) if n)
        parts = [f"[{self.pipeline_name}]", self.event_type.value.replace("_", " ")]
        if where:
            parts.append(where)
        if self.commit_id:
            parts.append(f"@ {self.commit_id}")
        reason = self.payload.get("reason")
        if reason:
            parts.append(f"- {reason}")
        return " ".join(parts)
