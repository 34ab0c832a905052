"""
gateway_pipeline.facade - Gateway Pipeline Top-Level Facade
=============================================================

The single entry point: builds every component from configuration (or takes
injected ones), manages their lifecycle and exposes the public API.

    ┌──────────────────────────────────────────────────┐
    │              GatewayPipeline (Facade)            │
    │                                                  │
    │  ┌────────────────────────────────────────────┐  │
    │  │         Orchestration Layer                │  │
    │  │  Orchestrator, ApprovalManager, Notifier   │  │
    │  │  MessageBus, StateManager, PolicyEngine    │  │
    │  └─────────────────────┬──────────────────────┘  │
    │                        │                         │
    │  ┌─────────────────────▼──────────────────────┐  │
    │  │            Action Layer                    │  │
    │  │  Source, BuildAndDeploy, SmokeTest,        │  │
    │  │  ApprovalGate                              │  │
    │  └─────────────────────┬──────────────────────┘  │
    │                        │                         │
    │  ┌─────────────────────▼──────────────────────┐  │
    │  │     Infrastructure & Integration Layer     │  │
    │  │  ArtifactStore, SourceProvider,            │  │
    │  │  DeployBackend, SmokeTestRunner,           │  │
    │  │  NotificationChannel                       │  │
    │  └────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────┘

Usage:
    >>> async with GatewayPipeline(load_config()) as pipeline:
    ...     execution = await pipeline.start(event)
    ...     await pipeline.decide(DecisionRequest(
    ...         execution_id=execution.execution_id,
    ...         decision=Decision.APPROVE,
    ...         actor="reviewer@nd.edu",
    ...     ))
    ...     final = await pipeline.wait(execution.execution_id)
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from gateway_pipeline.actions import (
    ApprovalGateAction,
    BuildAndDeployAction,
    SmokeTestAction,
    SourceAction,
)
from gateway_pipeline.core.config import PipelineConfig
from gateway_pipeline.core.exceptions import TriggerError
from gateway_pipeline.core.models import DecisionRequest, PipelineDefinition, SourceEvent
from gateway_pipeline.core.state import ApprovalRequest, PipelineExecution
from gateway_pipeline.infrastructure.artifact_store import (
    Artifact,
    ArtifactStore,
    InMemoryArtifactStore,
)
from gateway_pipeline.integrations.deploy import DeployBackend, create_deploy_backend
from gateway_pipeline.integrations.notifications import (
    NotificationChannel,
    create_notification_channel,
)
from gateway_pipeline.integrations.smoke import SmokeTestRunner, create_smoke_test_runner
from gateway_pipeline.integrations.source import SourceProvider, create_source_provider
from gateway_pipeline.orchestration.action_coordinator import ActionCoordinator
from gateway_pipeline.orchestration.approvals import ApprovalManager
from gateway_pipeline.orchestration.error_handler import ErrorHandler
from gateway_pipeline.orchestration.message_bus import InMemoryMessageBus, MessageBus
from gateway_pipeline.orchestration.notifier import PipelineNotifier
from gateway_pipeline.orchestration.orchestrator import PipelineOrchestrator
from gateway_pipeline.orchestration.policy_engine import (
    PolicyEngine,
    create_default_policy_engine,
)
from gateway_pipeline.orchestration.state_manager import (
    InMemoryStateManager,
    JsonFileStateManager,
    StateManager,
)
from gateway_pipeline.topology import build_default_pipeline


logger = structlog.get_logger()


class GatewayPipeline:
    """Top-level facade for the gateway deployment pipeline.

    Lifecycle:
        1. ``GatewayPipeline(config)``  - wire components
        2. ``await initialize()``       - connect bus and state, start notifier
        3. trigger / start / decide / cancel / rerun ...
        4. ``await shutdown()``         - stop running executions, disconnect

    Every collaborator can be injected; anything not injected is built from
    the configuration.

    Example:
        >>> pipeline = GatewayPipeline(config, source_provider=InMemorySourceProvider())
        >>> await pipeline.initialize()
        >>> execution = await pipeline.start(event)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        definition: Optional[PipelineDefinition] = None,
        message_bus: Optional[MessageBus] = None,
        state_manager: Optional[StateManager] = None,
        artifact_store: Optional[ArtifactStore] = None,
        policy_engine: Optional[PolicyEngine] = None,
        source_provider: Optional[SourceProvider] = None,
        deploy_backend: Optional[DeployBackend] = None,
        smoke_test_runner: Optional[SmokeTestRunner] = None,
        notification_channel: Optional[NotificationChannel] = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._definition = definition or build_default_pipeline(self._config)

        # --- Infrastructure ---
        self._artifact_store = artifact_store or InMemoryArtifactStore()

        # --- Orchestration ---
        self._message_bus = message_bus or InMemoryMessageBus()
        if state_manager is not None:
            self._state_manager = state_manager
        elif self._config.state_dir:
            self._state_manager = JsonFileStateManager(self._config.state_dir)
        else:
            self._state_manager = InMemoryStateManager()
        self._policy_engine = policy_engine or create_default_policy_engine(self._artifact_store)
        self._error_handler = ErrorHandler()
        self._approvals = ApprovalManager(
            self._state_manager,
            self._message_bus,
            timeout_seconds=self._config.approval.timeout_seconds,
        )

        # --- Integrations ---
        self._source_provider = source_provider or create_source_provider(self._config.source)
        self._deploy_backend = deploy_backend or create_deploy_backend(
            self._config.deploy, self._config.service
        )
        self._smoke_test_runner = smoke_test_runner or create_smoke_test_runner(
            self._config.smoke_tests
        )
        self._notifier = PipelineNotifier(
            self._message_bus,
            notification_channel or create_notification_channel(self._config.notifications),
            pipeline_recipients=self._config.notifications.email_receivers,
            approval_route=self._config.notifications.slack_notify_stack_name,
        )

        # --- Actions ---
        self._coordinator = ActionCoordinator()
        self._coordinator.register_executor(SourceAction(self._source_provider))
        self._coordinator.register_executor(
            BuildAndDeployAction(self._deploy_backend, self._config.service)
        )
        self._coordinator.register_executor(SmokeTestAction(self._smoke_test_runner))
        self._coordinator.register_executor(ApprovalGateAction(self._approvals))

        self._orchestrator = PipelineOrchestrator(
            definition=self._definition,
            coordinator=self._coordinator,
            artifact_store=self._artifact_store,
            state_manager=self._state_manager,
            message_bus=self._message_bus,
            policy_engine=self._policy_engine,
            error_handler=self._error_handler,
            approvals=self._approvals,
        )

        self._initialized = False
        self._logger = logger.bind(component="gateway_pipeline", pipeline=self._definition.name)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def definition(self) -> PipelineDefinition:
        return self._definition

    @property
    def orchestrator(self) -> PipelineOrchestrator:
        return self._orchestrator

    @property
    def approvals(self) -> ApprovalManager:
        return self._approvals

    @property
    def message_bus(self) -> MessageBus:
        return self._message_bus

    @property
    def state_manager(self) -> StateManager:
        return self._state_manager

    @property
    def artifact_store(self) -> ArtifactStore:
        return self._artifact_store

    @property
    def error_handler(self) -> ErrorHandler:
        return self._error_handler

    @property
    def notifier(self) -> PipelineNotifier:
        return self._notifier

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Connect the bus and the state store, then start the notifier.

        Idempotent.
        """
        if self._initialized:
            self._logger.debug("pipeline_already_initialized")
            return

        self._logger.info("pipeline_initializing")
        await self._message_bus.connect()
        await self._state_manager.connect()
        await self._notifier.start()
        self._initialized = True
        self._logger.info(
            "pipeline_initialized",
            stages=[s.name for s in self._definition.stages],
            policies=self._policy_engine.policy_count,
        )

    async def shutdown(self) -> None:
        """Stop running executions and release every resource. Idempotent."""
        if not self._initialized:
            self._logger.debug("pipeline_not_initialized_skipping_shutdown")
            return

        self._logger.info("pipeline_shutting_down")
        await self._orchestrator.shutdown()
        await self._coordinator.close()
        await self._notifier.stop()
        await self._state_manager.disconnect()
        await self._message_bus.disconnect()
        self._initialized = False
        self._logger.info("pipeline_shutdown_complete")

    async def __aenter__(self) -> GatewayPipeline:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Executions
    # =========================================================================

    async def trigger(self, event: SourceEvent) -> PipelineExecution:
        """Run an execution for the event to its terminal state.

        With an approval gate in the pipeline this only returns once someone
        decides; use ``start`` when the decision comes from the same process.
        """
        self._ensure_initialized()
        return await self._orchestrator.trigger(event)

    async def start(self, event: SourceEvent) -> PipelineExecution:
        """Start an execution in the background and return its first snapshot."""
        self._ensure_initialized()
        return await self._orchestrator.start(event)

    async def handle_push(self, event: SourceEvent) -> Optional[PipelineExecution]:
        """Webhook entry point: start an execution for tracked pushes only.

        Returns:
            The started execution, or None if the push is not a trigger.
        """
        self._ensure_initialized()
        try:
            return await self._orchestrator.start(event)
        except TriggerError as e:
            self._logger.info(
                "push_ignored",
                repository=event.repository,
                branch=event.branch,
                commit_id=event.commit_id,
                reason=e.message,
            )
            return None

    async def wait(self, execution_id: str) -> PipelineExecution:
        self._ensure_initialized()
        return await self._orchestrator.wait(execution_id)

    async def cancel(self, execution_id: str) -> PipelineExecution:
        self._ensure_initialized()
        return await self._orchestrator.cancel(execution_id)

    async def rerun(self, execution_id: str) -> PipelineExecution:
        self._ensure_initialized()
        return await self._orchestrator.rerun(execution_id)

    async def get_execution(self, execution_id: str) -> Optional[PipelineExecution]:
        return await self._orchestrator.get_execution(execution_id)

    async def list_executions(self, commit_id: Optional[str] = None) -> list[PipelineExecution]:
        return await self._orchestrator.list_executions(commit_id=commit_id)

    # =========================================================================
    # Approvals
    # =========================================================================

    async def decide(self, decision: DecisionRequest) -> ApprovalRequest:
        """Apply a reviewer's decision to an execution's pending approval.

        Raises:
            DecisionError: APPROVAL_NOT_FOUND or APPROVAL_ALREADY_RESOLVED.
        """
        self._ensure_initialized()
        request = await self._approvals.resolve(decision)
        self._logger.info(
            "decision_applied",
            execution_id=decision.execution_id,
            decision=decision.decision.value,
            actor=decision.actor,
        )
        return request

    async def get_approval(self, execution_id: str) -> Optional[ApprovalRequest]:
        return await self._approvals.get_for_execution(execution_id)

    async def list_pending_approvals(self) -> list[ApprovalRequest]:
        return await self._approvals.list_pending()

    # =========================================================================
    # Artifacts
    # =========================================================================

    async def get_artifact(self, execution_id: str, name: str) -> Optional[Artifact]:
        return await self._artifact_store.get(execution_id, name)

    async def list_artifacts(self, execution_id: str) -> list[Artifact]:
        return await self._artifact_store.list_by_execution(execution_id)

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "GatewayPipeline has not been initialized. "
                "Call await pipeline.initialize() or use 'async with GatewayPipeline() as pipeline:'"
            )

    def __repr__(self) -> str:
        return (
            f"GatewayPipeline("
            f"pipeline={self._definition.name!r}, "
            f"initialized={self._initialized}, "
            f"running={self._orchestrator.running_count})"
        )
