"""
gateway_pipeline.orchestration.orchestrator - Pipeline Orchestrator
=====================================================================

Drives one execution per source event through the pipeline's stages.

Execution Model:
    Stages run strictly in declaration order. Inside a stage, actions are
    grouped by run order; groups run in ascending order and the actions of
    one group run concurrently. The first failing group halts the stage and
    the execution; everything that did not run is marked SKIPPED.

    ┌────────────────────────────────────────────────────────────────┐
    │ Source        [SourceAppCode ∥ SourceInfraCode]                │
    │      ↓                                                         │
    │ DeployToTest  [Build_and_Deploy] → [SmokeTests] → [Approval]   │
    │      ↓                                                         │
    │ DeployToProd  [Build_and_Deploy] → [SmokeTests]                │
    └────────────────────────────────────────────────────────────────┘

    Before every group the PolicyEngine is enforced. A denial fails the
    execution (kind POLICY) without starting the group.

    After an action succeeds its result is applied to the execution:
        - exported variables are stored as "<Action>.<Variable>"
        - a build-and-deploy records the environment's deployment
        - the promotion state advances one step

Lifecycle:
    trigger(event)   → run to a terminal state and return it
    start(event)     → schedule the run as a task, return at once
    wait(id)         → await a scheduled run
    cancel(id)       → stop at the next group boundary (CANCELLED)
    rerun(id)        → new execution of a terminal one's source event

The live PipelineExecution is owned by this class and mutated in place; the
StateManager receives a copy after every change.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from gateway_pipeline.actions.base import ActionContext
from gateway_pipeline.core.enums import (
    ActionKind,
    EventType,
    ExecutionStatus,
    FailureKind,
)
from gateway_pipeline.core.exceptions import (
    ExecutionError,
    MessageBusError,
    PolicyViolationError,
    StateError,
    TriggerError,
)
from gateway_pipeline.core.messages import PipelineEvent
from gateway_pipeline.core.models import (
    ActionDefinition,
    ActionResult,
    PipelineDefinition,
    SourceEvent,
    StageDefinition,
)
from gateway_pipeline.core.promotion import next_promotion_state, requires_transition
from gateway_pipeline.core.state import EnvironmentDeployment, PipelineExecution, StageState
from gateway_pipeline.infrastructure.artifact_store import ArtifactStore
from gateway_pipeline.orchestration.action_coordinator import ActionCoordinator
from gateway_pipeline.orchestration.approvals import ApprovalManager
from gateway_pipeline.orchestration.error_handler import ErrorHandler
from gateway_pipeline.orchestration.message_bus import MessageBus
from gateway_pipeline.orchestration.policy_engine import PolicyEngine
from gateway_pipeline.orchestration.state_manager import StateManager


logger = structlog.get_logger()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineOrchestrator:
    """Runs pipeline executions.

    Args:
        definition: The pipeline to run. Validated on construction.
        coordinator: Dispatches actions to executors.
        artifact_store: Shared by every action of an execution.
        state_manager: Receives a snapshot after every change.
        message_bus: Receives execution, stage and action events.
        policy_engine: Gates every run-order group.
        error_handler: Classifies and records failures.
        approvals: Resolved on cancellation.

    Raises:
        TopologyError: If the definition is structurally invalid.
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        coordinator: ActionCoordinator,
        artifact_store: ArtifactStore,
        state_manager: StateManager,
        message_bus: MessageBus,
        policy_engine: PolicyEngine,
        error_handler: ErrorHandler,
        approvals: ApprovalManager,
    ) -> None:
        definition.validate_topology()
        self._definition = definition
        self._coordinator = coordinator
        self._artifact_store = artifact_store
        self._state_manager = state_manager
        self._message_bus = message_bus
        self._policy_engine = policy_engine
        self._error_handler = error_handler
        self._approvals = approvals

        self._live: dict[str, PipelineExecution] = {}
        self._tasks: dict[str, asyncio.Task[PipelineExecution]] = {}
        self._logger = logger.bind(component="orchestrator", pipeline=definition.name)

    @property
    def definition(self) -> PipelineDefinition:
        return self._definition

    @property
    def running_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    # =========================================================================
    # Triggering
    # =========================================================================

    def is_tracked(self, event: SourceEvent) -> bool:
        """Whether the event matches a webhook-triggered source action."""
        return any(
            a.repository == event.repository and a.branch == event.branch
            for a in self._definition.webhook_sources()
        )

    async def trigger(self, event: SourceEvent) -> PipelineExecution:
        """Create an execution for the event and run it to completion.

        Raises:
            TriggerError: If the event is not a tracked trigger source.
        """
        execution = await self._create(event)
        await self._run(execution)
        return execution.model_copy(deep=True)

    async def start(self, event: SourceEvent) -> PipelineExecution:
        """Create an execution and run it in the background.

        Returns:
            Snapshot of the freshly created (PENDING) execution.
        """
        execution = await self._create(event)
        self._schedule(execution)
        return execution.model_copy(deep=True)

    async def rerun(self, execution_id: str) -> PipelineExecution:
        """Run a terminal execution's source event again as a new execution.

        Raises:
            ExecutionError: EXECUTION_NOT_FOUND, or EXECUTION_NOT_TERMINAL
                while the original is still running.
        """
        original = await self._require(execution_id)
        if not original.is_terminal:
            raise ExecutionError(
                message=f"Execution '{execution_id}' is {original.status.value}; only finished executions can be re-run",
                execution_id=execution_id,
                error_code="EXECUTION_NOT_TERMINAL",
            )
        execution = await self._create(original.source_event, rerun_of=execution_id)
        self._schedule(execution)
        return execution.model_copy(deep=True)

    async def wait(self, execution_id: str) -> PipelineExecution:
        """Wait for a scheduled execution and return its final snapshot."""
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.wait([task])
        return await self._require(execution_id)

    async def cancel(self, execution_id: str) -> PipelineExecution:
        """Request cancellation; honoured at the next group boundary.

        In-flight actions finish. A pending approval is rejected on behalf
        of the system so the gate returns at once.

        Raises:
            ExecutionError: EXECUTION_NOT_FOUND, or EXECUTION_ALREADY_FINISHED.
        """
        execution = self._live.get(execution_id)
        if execution is None:
            stored = await self._require(execution_id)
            raise ExecutionError(
                message=f"Execution '{execution_id}' already finished as {stored.status.value}",
                execution_id=execution_id,
                error_code="EXECUTION_ALREADY_FINISHED",
            )

        execution.cancel_requested = True
        await self._save(execution)
        self._logger.info("execution_cancel_requested", execution_id=execution_id)
        await self._approvals.cancel(execution_id)
        return execution.model_copy(deep=True)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_execution(self, execution_id: str) -> Optional[PipelineExecution]:
        return await self._state_manager.get_execution(execution_id)

    async def list_executions(self, commit_id: Optional[str] = None) -> list[PipelineExecution]:
        return await self._state_manager.list_executions(commit_id=commit_id)

    async def shutdown(self) -> None:
        """Cancel every running execution task and wait for them to settle."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._logger.info("orchestrator_shutdown", cancelled_tasks=len(tasks))

    # =========================================================================
    # Execution
    # =========================================================================

    async def _create(
        self, event: SourceEvent, rerun_of: Optional[str] = None
    ) -> PipelineExecution:
        if not self.is_tracked(event):
            raise TriggerError(
                message=f"{event.repository}@{event.branch} does not trigger {self._definition.name}",
                repository=event.repository,
                branch=event.branch,
            )
        execution = PipelineExecution.create(self._definition, event, rerun_of=rerun_of)
        self._live[execution.execution_id] = execution
        await self._save(execution)
        self._logger.info(
            "execution_created",
            execution_id=execution.execution_id,
            commit_id=execution.commit_id,
            rerun_of=rerun_of,
        )
        return execution

    def _schedule(self, execution: PipelineExecution) -> None:
        task = asyncio.create_task(
            self._run(execution), name=f"execution-{execution.execution_id}"
        )
        self._tasks[execution.execution_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(execution.execution_id, None))

    async def _run(self, execution: PipelineExecution) -> PipelineExecution:
        log = self._logger.bind(execution_id=execution.execution_id, commit_id=execution.commit_id)
        execution.status = ExecutionStatus.IN_PROGRESS
        execution.started_at = _now()
        await self._save(execution)
        await self._emit(execution, EventType.EXECUTION_STARTED, rerun_of=execution.rerun_of)
        log.info("execution_started")

        try:
            for stage in self._definition.stages:
                if not await self._run_stage(execution, stage):
                    break
        except asyncio.CancelledError:
            self._error_handler.record_failure(
                execution,
                kind=FailureKind.CANCELLED,
                reason="Orchestrator shut down while the execution was running",
                error_code="EXECUTION_INTERRUPTED",
                stage_name=execution.current_stage,
            )
            await self._approvals.cancel(
                execution.execution_id, comment="Orchestrator shut down"
            )
            await self._finish(execution)
            raise
        except Exception as e:
            log.exception("execution_crashed", error=str(e))
            self._error_handler.record_exception(execution, e, stage_name=execution.current_stage)
            await self._finish(execution)
            return execution

        await self._finish(execution)
        return execution

    async def _finish(self, execution: PipelineExecution) -> None:
        """Settle the final status, mark unrun work SKIPPED, publish the outcome."""
        if execution.failure is None:
            execution.status = ExecutionStatus.SUCCEEDED
            event_type = EventType.EXECUTION_SUCCEEDED
        elif execution.failure.kind == FailureKind.CANCELLED:
            execution.status = ExecutionStatus.CANCELLED
            event_type = EventType.EXECUTION_CANCELLED
        else:
            execution.status = ExecutionStatus.FAILED
            event_type = EventType.EXECUTION_FAILED

        halted = (
            ExecutionStatus.CANCELLED
            if execution.status == ExecutionStatus.CANCELLED
            else ExecutionStatus.FAILED
        )
        for stage in execution.stages:
            if stage.status == ExecutionStatus.IN_PROGRESS:
                stage.status = halted
                stage.completed_at = _now()
            for action in stage.actions:
                if action.status == ExecutionStatus.PENDING:
                    action.status = ExecutionStatus.SKIPPED
                elif action.status == ExecutionStatus.IN_PROGRESS:
                    action.status = halted
                    action.completed_at = _now()
            if stage.status == ExecutionStatus.PENDING:
                stage.status = ExecutionStatus.SKIPPED

        execution.current_stage = None
        execution.completed_at = _now()
        self._live.pop(execution.execution_id, None)
        await self._save(execution)

        payload: dict[str, Any] = {
            "promotion_state": execution.promotion_state.value,
            "duration_seconds": execution.duration_seconds,
        }
        if execution.failure is not None:
            payload.update(
                failure_kind=execution.failure.kind.value,
                recovery_hint=execution.failure.hint.value,
                failed_stage=execution.failure.stage_name,
                reason=execution.failure.reason,
            )
        await self._emit(execution, event_type, **payload)
        self._logger.info(
            "execution_finished",
            execution_id=execution.execution_id,
            status=execution.status.value,
            promotion_state=execution.promotion_state.value,
            duration_seconds=execution.duration_seconds,
        )

    async def _run_stage(self, execution: PipelineExecution, stage: StageDefinition) -> bool:
        """Run one stage. Returns False if the execution must halt."""
        state = execution.stage(stage.name)
        state.status = ExecutionStatus.IN_PROGRESS
        state.started_at = _now()
        execution.current_stage = stage.name
        await self._save(execution)
        await self._emit(execution, EventType.STAGE_STARTED, stage_name=stage.name)

        for run_order, group in stage.run_order_groups():
            if execution.cancel_requested:
                self._error_handler.record_failure(
                    execution,
                    kind=FailureKind.CANCELLED,
                    reason="Cancelled by operator",
                    error_code="EXECUTION_CANCELLED",
                    stage_name=stage.name,
                )
                await self._halt_stage(execution, state, ExecutionStatus.CANCELLED)
                return False

            try:
                await self._policy_engine.enforce(
                    {
                        "execution": execution,
                        "stage": stage,
                        "run_order": run_order,
                        "group": group,
                    }
                )
            except PolicyViolationError as e:
                self._error_handler.record_failure(
                    execution,
                    kind=FailureKind.POLICY,
                    reason=e.message,
                    error_code=e.error_code,
                    stage_name=stage.name,
                )
                await self._halt_stage(execution, state, ExecutionStatus.FAILED)
                return False

            results = await asyncio.gather(
                *(self._run_action(execution, stage, action) for action in group)
            )
            failed = [r for r in results if not r.succeeded]
            if failed:
                if execution.cancel_requested:
                    self._error_handler.record_failure(
                        execution,
                        kind=FailureKind.CANCELLED,
                        reason="Cancelled by operator",
                        error_code="EXECUTION_CANCELLED",
                        stage_name=stage.name,
                    )
                for result in failed:
                    self._error_handler.record_failure(
                        execution,
                        kind=result.failure_kind or FailureKind.INTERNAL,
                        reason=result.error_message or "Action failed",
                        error_code=result.error_code,
                        stage_name=stage.name,
                        action_name=result.action_name,
                    )
                halted = (
                    ExecutionStatus.CANCELLED
                    if execution.failure.kind == FailureKind.CANCELLED
                    else ExecutionStatus.FAILED
                )
                await self._halt_stage(execution, state, halted)
                return False

        state.status = ExecutionStatus.SUCCEEDED
        state.completed_at = _now()
        await self._save(execution)
        await self._emit(execution, EventType.STAGE_SUCCEEDED, stage_name=stage.name)
        return True

    async def _halt_stage(
        self, execution: PipelineExecution, state: StageState, status: ExecutionStatus
    ) -> None:
        state.status = status
        state.completed_at = _now()
        for action in state.actions:
            if action.status == ExecutionStatus.PENDING:
                action.status = ExecutionStatus.SKIPPED
        await self._save(execution)
        await self._emit(
            execution,
            EventType.STAGE_FAILED,
            stage_name=state.name,
            status=status.value,
            reason=execution.failure.reason if execution.failure else None,
        )

    async def _run_action(
        self,
        execution: PipelineExecution,
        stage: StageDefinition,
        action: ActionDefinition,
    ) -> ActionResult:
        state = execution.action(stage.name, action.name)
        state.status = ExecutionStatus.IN_PROGRESS
        state.started_at = _now()
        await self._save(execution)
        await self._emit(
            execution, EventType.ACTION_STARTED, stage_name=stage.name, action_name=action.name
        )

        context = ActionContext(execution, stage, action, self._artifact_store)
        result = await self._coordinator.dispatch(context)
        if result.succeeded:
            result = await self._apply_result(execution, action, result)

        state.result = result
        state.status = result.status
        state.completed_at = _now()
        await self._save(execution)

        if result.succeeded:
            await self._emit(
                execution,
                EventType.ACTION_SUCCEEDED,
                stage_name=stage.name,
                action_name=action.name,
                duration_seconds=result.duration_seconds,
            )
        else:
            await self._emit(
                execution,
                EventType.ACTION_FAILED,
                stage_name=stage.name,
                action_name=action.name,
                error_code=result.error_code,
                reason=result.error_message,
            )
        return result

    async def _apply_result(
        self,
        execution: PipelineExecution,
        action: ActionDefinition,
        result: ActionResult,
    ) -> ActionResult:
        """Fold a successful result into the execution.

        Returns the result, or a FAILED copy if the promotion step turned
        out to be illegal.
        """
        if requires_transition(action.kind):
            try:
                target = next_promotion_state(
                    execution.promotion_state, action.kind, action.environment
                )
            except StateError as e:
                return result.model_copy(
                    update={
                        "status": ExecutionStatus.FAILED,
                        "error_message": e.message,
                        "error_code": e.error_code,
                        "failure_kind": FailureKind.INTERNAL,
                    }
                )
        else:
            target = None

        for name, value in result.variables.items():
            execution.variables[f"{action.name}.{name}"] = value

        if action.kind == ActionKind.BUILD_AND_DEPLOY:
            execution.deployments[action.environment.value] = EnvironmentDeployment(
                environment=action.environment,
                version=result.output["version"],
                endpoint=result.output["endpoint"],
                role=result.output.get("role"),
            )

        if target is not None:
            previous = execution.promotion_state
            execution.promotion_state = target
            self._logger.info(
                "promotion_advanced",
                execution_id=execution.execution_id,
                previous=previous.value,
                current=target.value,
                action=action.name,
            )
            await self._emit(
                execution,
                EventType.PROMOTION_ADVANCED,
                action_name=action.name,
                previous=previous.value,
                current=target.value,
            )
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require(self, execution_id: str) -> PipelineExecution:
        execution = await self._state_manager.get_execution(execution_id)
        if execution is None:
            raise ExecutionError(
                message=f"Execution '{execution_id}' not found",
                execution_id=execution_id,
                error_code="EXECUTION_NOT_FOUND",
            )
        return execution

    async def _save(self, execution: PipelineExecution) -> None:
        await self._state_manager.save_execution(execution)

    async def _emit(
        self,
        execution: PipelineExecution,
        event_type: EventType,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        **payload: Any,
    ) -> None:
        event = PipelineEvent(
            event_type=event_type,
            execution_id=execution.execution_id,
            pipeline_name=execution.pipeline_name,
            commit_id=execution.commit_id,
            stage_name=stage_name,
            action_name=action_name,
            payload=payload,
        )
        try:
            await self._message_bus.emit(event)
        except MessageBusError as e:
            self._logger.warning(
                "event_publish_failed",
                execution_id=execution.execution_id,
                event_type=event_type.value,
                error=e.message,
            )
