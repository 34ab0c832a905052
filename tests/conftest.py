"""
Shared Test Fixtures for gateway-pipeline
===========================================

Reusable pytest fixtures, organised by layer:

    1. Configuration fixtures
    2. Infrastructure fixtures (ArtifactStore)
    3. Orchestration fixtures (MessageBus, StateManager, ErrorHandler)
    4. Integration fixtures (source, deploy, smoke tests, notifications)
    5. Facade fixtures (GatewayPipeline, approval polling)

Every fixture uses in-memory implementations; nothing touches the network.
"""

from __future__ import annotations

import asyncio

import pytest

from gateway_pipeline.core.config import (
    NotificationConfig,
    PipelineConfig,
    SmokeTestConfig,
    SourceConfig,
)
from gateway_pipeline.core.enums import ApprovalState
from gateway_pipeline.core.models import SourceEvent
from gateway_pipeline.core.state import ApprovalRequest
from gateway_pipeline.facade import GatewayPipeline
from gateway_pipeline.infrastructure.artifact_store import InMemoryArtifactStore
from gateway_pipeline.integrations.deploy.memory import InMemoryDeployBackend
from gateway_pipeline.integrations.notifications.memory import InMemoryNotificationChannel
from gateway_pipeline.integrations.smoke.memory import InMemorySmokeTestRunner
from gateway_pipeline.integrations.source.memory import InMemorySourceProvider
from gateway_pipeline.orchestration.error_handler import ErrorHandler
from gateway_pipeline.orchestration.message_bus import InMemoryMessageBus
from gateway_pipeline.orchestration.state_manager import InMemoryStateManager


SERVICE_REPO = "illiad-gateway"
BLUEPRINTS_REPO = "usurper-blueprints"
BRANCH = "master"


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config():
    """Pipeline configuration wired to in-memory collaborators."""
    return PipelineConfig(
        source=SourceConfig(provider="memory"),
        smoke_tests=SmokeTestConfig(runner="memory"),
        notifications=NotificationConfig(
            provider="memory",
            email_receivers=["team@nd.edu"],
        ),
    )


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def artifact_store():
    """Fresh InMemoryArtifactStore."""
    return InMemoryArtifactStore()


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
async def message_bus():
    """Connected InMemoryMessageBus."""
    bus = InMemoryMessageBus()
    await bus.connect()
    yield bus
    await bus.disconnect()


@pytest.fixture
def state_manager():
    """Fresh InMemoryStateManager."""
    return InMemoryStateManager()


@pytest.fixture
def error_handler():
    return ErrorHandler()


# =============================================================================
# Integrations
# =============================================================================

@pytest.fixture
def source_provider():
    """Source provider seeded with one commit on each repository."""
    provider = InMemorySourceProvider()
    provider.push(
        BLUEPRINTS_REPO,
        BRANCH,
        "bp-001",
        files={"deploy/gateway.yml": "stack: illiad-gateway"},
        message="Blueprints baseline",
    )
    provider.push(
        SERVICE_REPO,
        BRANCH,
        "abc123",
        files={"src/web.py": "def handler(event, context): ..."},
        message="Add web endpoint",
    )
    return provider


@pytest.fixture
def deploy_backend():
    return InMemoryDeployBackend()


@pytest.fixture
def smoke_runner():
    return InMemorySmokeTestRunner()


@pytest.fixture
def notification_channel():
    return InMemoryNotificationChannel()


@pytest.fixture
def push_event():
    """Push of commit abc123 to the tracked service branch."""
    return SourceEvent(repository=SERVICE_REPO, branch=BRANCH, commit_id="abc123")


# =============================================================================
# Facade
# =============================================================================

@pytest.fixture
async def pipeline(config, source_provider, deploy_backend, smoke_runner, notification_channel):
    """Initialized GatewayPipeline over in-memory collaborators."""
    gateway = GatewayPipeline(
        config,
        source_provider=source_provider,
        deploy_backend=deploy_backend,
        smoke_test_runner=smoke_runner,
        notification_channel=notification_channel,
    )
    await gateway.initialize()
    yield gateway
    await gateway.shutdown()


@pytest.fixture
def await_approval():
    """Poll until an execution's approval request is PENDING.

    Usage:
        request = await await_approval(pipeline, execution.execution_id)
    """

    async def _wait(gateway: GatewayPipeline, execution_id: str, timeout: float = 2.0) -> ApprovalRequest:
        async def _poll() -> ApprovalRequest:
            while True:
                request = await gateway.get_approval(execution_id)
                if request is not None and request.state == ApprovalState.PENDING:
                    return request
                await asyncio.sleep(0.01)

        return await asyncio.wait_for(_poll(), timeout)

    return _wait
