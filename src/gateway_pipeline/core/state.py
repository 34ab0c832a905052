"""
gateway_pipeline.core.state - Execution State Models
======================================================

Run-time snapshots persisted by the StateManager. The orchestrator owns the
live PipelineExecution and saves a copy after every change, so the store
always holds the latest consistent picture of every execution.

    PipelineExecution
        ├── stages: list[StageState]
        │       └── actions: list[ActionState] ── result: ActionResult
        ├── deployments: dict[env, EnvironmentDeployment]
        ├── variables: "Action.Variable" → value
        └── failure: FailureRecord (once halted)

    ApprovalRequest   (stored separately, one per gated execution)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from gateway_pipeline.core.enums import (
    ActionKind,
    ApprovalState,
    Environment,
    ExecutionStatus,
    FailureKind,
    PromotionState,
    RecoveryHint,
)
from gateway_pipeline.core.models import ActionResult, PipelineDefinition, SourceEvent


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _execution_id() -> str:
    return f"exec-{uuid4()}"


def _approval_id() -> str:
    return f"appr-{uuid4()}"


# =============================================================================
# Action & Stage State
# =============================================================================
class ActionState(BaseModel):
    """Run-time state of one action within one execution."""

    name: str
    kind: ActionKind
    run_order: int = Field(default=1, ge=1)
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)
    result: Optional[ActionResult] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)


class StageState(BaseModel):
    """Run-time state of one stage within one execution."""

    name: str
    environment: Optional[Environment] = Field(default=None)
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)
    actions: list[ActionState] = Field(default_factory=list)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    def action(self, name: str) -> Optional[ActionState]:
        for action in self.actions:
            if action.name == name:
                return action
        return None


# =============================================================================
# Approval Request
# =============================================================================
# Created PENDING when the approval action starts and resolved exactly once.
# A resolved request is never modified again.
# =============================================================================
class ApprovalRequest(BaseModel):
    """A request for a human decision on one execution.

    Attributes:
        request_id: Unique request identifier.
        execution_id: Execution the request gates.
        stage_name / action_name: Where the gate sits.
        commit_id: Version under review.
        state: PENDING until resolved; every other state is terminal.
        summary: Text shown to reviewers.
        decided_by: Actor who resolved the request.
        comment: Reviewer's comment.
        created_at / resolved_at / expires_at: Timestamps (UTC).
    """

    request_id: str = Field(default_factory=_approval_id)
    execution_id: str
    stage_name: str
    action_name: str
    commit_id: Optional[str] = Field(default=None)
    state: ApprovalState = Field(default=ApprovalState.PENDING)
    summary: Optional[str] = Field(default=None)
    decided_by: Optional[str] = Field(default=None)
    comment: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_now)
    resolved_at: Optional[datetime] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None)

    @property
    def is_pending(self) -> bool:
        return self.state == ApprovalState.PENDING


class EnvironmentDeployment(BaseModel):
    """The version currently deployed to one environment by an execution."""

    environment: Environment
    version: str
    endpoint: str
    role: Optional[str] = Field(default=None)
    deployed_at: datetime = Field(default_factory=_now)


class FailureRecord(BaseModel):
    """Why an execution halted and what an operator can do about it."""

    kind: FailureKind
    hint: RecoveryHint
    reason: str
    error_code: Optional[str] = Field(default=None)
    stage_name: Optional[str] = Field(default=None)
    action_name: Optional[str] = Field(default=None)
    recorded_at: datetime = Field(default_factory=_now)


# =============================================================================
# Pipeline Execution
# =============================================================================
# The master record for one run of the pipeline against one commit.
# =============================================================================
class PipelineExecution(BaseModel):
    """One run of the pipeline, triggered by one source event.

    Attributes:
        execution_id: Unique execution identifier.
        pipeline_name: Pipeline that ran.
        source_event: The triggering push.
        commit_id: Version identity carried through every stage.
        status: Overall execution status.
        promotion_state: How far the commit has been promoted.
        stages: Per-stage state in pipeline order.
        current_stage: Name of the stage being executed.
        variables: Exported action variables, keyed "Action.Variable".
        deployments: What this execution deployed, per environment.
        failure: Why the execution halted (None unless FAILED/CANCELLED).
        error_log: Every error recorded during the execution.
        rerun_of: Execution this one re-runs, if operator-initiated.
        cancel_requested: Set by cancel(); honoured at group boundaries.
    """

    execution_id: str = Field(default_factory=_execution_id)
    pipeline_name: str
    source_event: SourceEvent
    commit_id: str
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)
    promotion_state: PromotionState = Field(default=PromotionState.NOT_DEPLOYED)
    stages: list[StageState] = Field(default_factory=list)
    current_stage: Optional[str] = Field(default=None)
    variables: dict[str, str] = Field(default_factory=dict)
    deployments: dict[str, EnvironmentDeployment] = Field(default_factory=dict)
    failure: Optional[FailureRecord] = Field(default=None)
    error_log: list[dict[str, Any]] = Field(default_factory=list)
    rerun_of: Optional[str] = Field(default=None)
    cancel_requested: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_now)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    @classmethod
    def create(
        cls,
        definition: PipelineDefinition,
        event: SourceEvent,
        rerun_of: Optional[str] = None,
    ) -> PipelineExecution:
        """Build a fresh execution with every stage and action PENDING."""
        stages = [
            StageState(
                name=stage.name,
                environment=stage.environment,
                actions=[
                    ActionState(name=a.name, kind=a.kind, run_order=a.run_order)
                    for a in stage.actions
                ],
            )
            for stage in definition.stages
        ]
        return cls(
            pipeline_name=definition.name,
            source_event=event,
            commit_id=event.commit_id,
            stages=stages,
            rerun_of=rerun_of,
        )

    def stage(self, name: str) -> Optional[StageState]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def action(self, stage_name: str, action_name: str) -> Optional[ActionState]:
        stage = self.stage(stage_name)
        return stage.action(action_name) if stage else None

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            ExecutionStatus.SUCCEEDED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )

    @property
    def failed_stage(self) -> Optional[str]:
        for stage in self.stages:
            if stage.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED):
                return stage.name
        return None

    @property
    def failed_action(self) -> Optional[str]:
        """Qualified name ("Stage/Action") of the first failed action."""
        for stage in self.stages:
            for action in stage.actions:
                if action.status == ExecutionStatus.FAILED:
                    return f"{stage.name}/{action.name}"
        return None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Elapsed time from start to completion, None while running."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def deployment(self, environment: Environment) -> Optional[EnvironmentDeployment]:
        return self.deployments.get(environment.value)
