"""
gateway_pipeline.orchestration.message_bus - Pipeline Event Bus
=================================================================

Publish/subscribe transport for PipelineEvents. The orchestrator, the
approval manager and the error handler publish; the notifier (and any
external observer) subscribes.

    ┌──────────────┐  emit(event)   ┌──────────────┐  callback   ┌──────────┐
    │ Orchestrator │ ─────────────→ │  MessageBus  │ ──────────→ │ Notifier │
    │ Approvals    │                │              │ ──────────→ │ Observer │
    └──────────────┘                └──────────────┘             └──────────┘

Publishing never fails because of a subscriber: callback errors are logged
and swallowed so a broken observer cannot stall an execution.

Implementations:
    - MessageBus (ABC):       Abstract interface
    - InMemoryMessageBus:     Single-process delivery for dev/testing
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import structlog

from gateway_pipeline.core.exceptions import MessageBusError
from gateway_pipeline.core.messages import PipelineEvent


logger = structlog.get_logger()

EventCallback = Callable[[PipelineEvent], Awaitable[None]]


# =============================================================================
# Abstract Base Class: MessageBus
# =============================================================================
class MessageBus(ABC):
    """Abstract interface for pipeline event delivery.

    Lifecycle:
        bus = InMemoryMessageBus()
        await bus.connect()
        ...
        await bus.disconnect()
    """

    @abstractmethod
    async def publish(self, channel: str, event: PipelineEvent) -> None:
        """Deliver an event to every subscriber of one channel.

        Raises:
            MessageBusError: If the bus is not connected.
        """
        ...

    @abstractmethod
    async def subscribe(self, channel: str, callback: EventCallback) -> None:
        """Register an async callback for a channel."""
        ...

    @abstractmethod
    async def unsubscribe(self, channel: str) -> None:
        """Remove ALL callbacks registered for a channel."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    async def emit(self, event: PipelineEvent) -> None:
        """Publish an event on every channel it belongs to.

        See PipelineEvent.channels() for the routing rules.
        """
        for channel in event.channels():
            await self.publish(channel, event)


# =============================================================================
# In-Memory Implementation: InMemoryMessageBus
# =============================================================================
class InMemoryMessageBus(MessageBus):
    """In-memory message bus for development and testing.

    Callbacks are invoked directly (concurrently, via asyncio.gather) in the
    publishing coroutine. The ``published_count`` property counts publish()
    calls since the last connect(), which tests use for assertions.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[EventCallback]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._connected: bool = False
        self._published_count: int = 0
        self._logger = logger.bind(component="message_bus", impl="in_memory")

    @property
    def published_count(self) -> int:
        return self._published_count

    @property
    def is_connected(self) -> bool:
        return self._connected

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================
    async def connect(self) -> None:
        """Mark the bus ready and reset subscriptions and counters."""
        async with self._lock:
            self._subscriptions.clear()
            self._published_count = 0
            self._connected = True
        self._logger.info("message_bus_connected")

    async def disconnect(self) -> None:
        """Drop every subscription. Safe to call more than once."""
        async with self._lock:
            self._subscriptions.clear()
            self._connected = False
        self._logger.info("message_bus_disconnected")

    # =========================================================================
    # Core Operations
    # =========================================================================
    async def publish(self, channel: str, event: PipelineEvent) -> None:
        self._ensure_connected()

        async with self._lock:
            # Copy so a callback that unsubscribes doesn't change iteration.
            callbacks = list(self._subscriptions.get(channel, []))
            self._published_count += 1

        # Lock released before callbacks run; subscribers may do slow I/O.
        if callbacks:
            results = await asyncio.gather(
                *(cb(event) for cb in callbacks),
                return_exceptions=True,
            )
            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    self._logger.error(
                        "subscriber_callback_error",
                        channel=channel,
                        event_id=event.event_id,
                        event_type=event.event_type.value,
                        error=str(result),
                        callback_index=i,
                    )

        self._logger.debug(
            "event_published",
            channel=channel,
            event_type=event.event_type.value,
            execution_id=event.execution_id,
            subscriber_count=len(callbacks),
        )

    async def subscribe(self, channel: str, callback: EventCallback) -> None:
        self._ensure_connected()
        async with self._lock:
            if channel not in self._subscriptions:
                self._subscriptions[channel] = []
            self._subscriptions[channel].append(callback)

        self._logger.debug(
            "channel_subscribed",
            channel=channel,
            total_subscribers=len(self._subscriptions.get(channel, [])),
        )

    async def unsubscribe(self, channel: str) -> None:
        self._ensure_connected()
        async with self._lock:
            removed = self._subscriptions.pop(channel, [])
        self._logger.debug(
            "channel_unsubscribed",
            channel=channel,
            removed_callbacks=len(removed),
        )

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise MessageBusError(
                message="Message bus is not connected. Call connect() first.",
                error_code="BUS_NOT_CONNECTED",
            )
