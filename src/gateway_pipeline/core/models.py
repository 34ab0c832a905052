"""
gateway_pipeline.core.models - Core Data Models
=================================================

The definition-side models of the pipeline: what the pipeline looks like
and what flows into and out of a single action. Run-time snapshots live in
core/state.py.

Model Hierarchy:
    SourceEvent         → A push to a tracked repository
    ActionDefinition    → One unit of work (source, deploy, test, approval)
    StageDefinition     → An ordered set of actions bound to an environment
    PipelineDefinition  → The ordered list of stages
    ActionResult        → What happened when an action ran
    DecisionRequest     → A reviewer's decision on an approval request
    DeployRequest       → What a build-and-deploy action asks a backend for
    DeployOutcome       → What the backend reports back

Data Flow:
    ┌──────────────┐  SourceEvent   ┌──────────────┐  ActionContext  ┌──────────┐
    │  Webhook /   │ ─────────────→ │  Pipeline    │ ──────────────→ │  Action  │
    │  Facade      │                │  Orchestrator│ ←────────────── │ Executor │
    └──────────────┘                └──────────────┘   ActionResult  └──────────┘
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from gateway_pipeline.core.enums import (
    ActionKind,
    Decision,
    Environment,
    ExecutionStatus,
    FailureKind,
    SourceTrigger,
)
from gateway_pipeline.core.exceptions import TopologyError


def _generate_id() -> str:
    """Generate a unique identifier using UUID4."""
    return str(uuid4())


def _now() -> datetime:
    """Current UTC timestamp. Every timestamp in the pipeline is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Source Event
# =============================================================================
# The input to an execution. The commit id is the version identity carried
# all the way to the production deployment.
# =============================================================================
class SourceEvent(BaseModel):
    """A push to a source repository.

    Attributes:
        repository: Repository that received the push.
        branch: Branch that was pushed.
        commit_id: Revision identifier of the pushed commit.
        pushed_at: When the push happened (UTC).
        pusher: Who pushed, if known.
    """

    repository: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    commit_id: str = Field(..., min_length=1)
    pushed_at: datetime = Field(default_factory=_now)
    pusher: Optional[str] = Field(default=None)


# =============================================================================
# Action Definition
# =============================================================================
# `run_order` groups actions inside a stage: every action with run order k
# must succeed before any action with run order > k starts. Actions sharing
# a run order run concurrently.
#
# Environment variable values may reference a variable exported by an
# earlier action using "#{ActionName.Variable}", e.g.
#     {"VERSION": "#{SourceAppCode.CommitId}"}
# =============================================================================
class ActionDefinition(BaseModel):
    """One unit of work inside a stage.

    Attributes:
        name: Action name, unique within its stage.
        kind: What the action does.
        run_order: Ordering group inside the stage (ascending, >= 1).
        environment: Environment the action targets (deploy / smoke test).
        inputs: Artifact names the action reads.
        outputs: Artifact names the action writes (it becomes their only writer).
        repository / branch / trigger: Source settings (source actions only).
        environment_variables: Variables handed to the action, resolved
            against earlier actions' exported variables before it runs.
        additional_information: Text shown to reviewers (approval only).
        config: Free-form executor settings.
    """

    name: str = Field(..., min_length=1)
    kind: ActionKind
    run_order: int = Field(default=1, ge=1)
    environment: Optional[Environment] = Field(default=None)
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    repository: Optional[str] = Field(default=None)
    branch: Optional[str] = Field(default=None)
    trigger: SourceTrigger = Field(default=SourceTrigger.NONE)
    environment_variables: dict[str, str] = Field(default_factory=dict)
    additional_information: Optional[str] = Field(default=None)
    config: dict[str, Any] = Field(default_factory=dict)


class StageDefinition(BaseModel):
    """An ordered set of actions.

    Attributes:
        name: Stage name, unique within the pipeline.
        actions: Actions in declaration order.
        environment: Environment the stage deploys to, if any.
        role: Permission scope the stage's actions run under.
    """

    name: str = Field(..., min_length=1)
    actions: list[ActionDefinition] = Field(default_factory=list)
    environment: Optional[Environment] = Field(default=None)
    role: Optional[str] = Field(default=None)

    def run_order_groups(self) -> list[tuple[int, list[ActionDefinition]]]:
        """Group actions by run order, ascending.

        Within a group, actions keep their declaration order.

        Returns:
            List of (run_order, actions) pairs.
        """
        groups: dict[int, list[ActionDefinition]] = defaultdict(list)
        for action in self.actions:
            groups[action.run_order].append(action)
        return [(order, groups[order]) for order in sorted(groups)]

    def get_action(self, name: str) -> Optional[ActionDefinition]:
        for action in self.actions:
            if action.name == name:
                return action
        return None


# =============================================================================
# Pipeline Definition
# =============================================================================
# Built once at startup (see topology.py) and validated before any
# execution is created. The stage list is explicit and ordered.
# =============================================================================
class PipelineDefinition(BaseModel):
    """The full ordered pipeline.

    Attributes:
        name: Pipeline name.
        stages: Stages in execution order.
    """

    name: str = Field(..., min_length=1)
    stages: list[StageDefinition] = Field(default_factory=list)

    def get_stage(self, name: str) -> Optional[StageDefinition]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def webhook_sources(self) -> list[ActionDefinition]:
        """Source actions whose pushes start new executions."""
        return [
            action
            for stage in self.stages
            for action in stage.actions
            if action.kind == ActionKind.SOURCE
            and action.trigger == SourceTrigger.WEBHOOK
        ]

    def validate_topology(self) -> None:
        """Check the structural rules every pipeline must satisfy.

        Rules:
            - At least one stage; stage names unique; action names unique
              within a stage.
            - Every artifact has exactly one producing action.
            - Every input is produced by an earlier stage or an earlier
              run-order group of the same stage.
            - An action bound to an environment sits in a stage bound to
              the same environment, and such a stage declares a role.
            - At most one approval per stage, alone at the stage's
              highest run order.
            - At least one webhook-triggered source action.

        Raises:
            TopologyError: On the first rule that is broken.
        """
        if not self.stages:
            raise TopologyError(
                message=f"Pipeline '{self.name}' has no stages",
                error_code="EMPTY_PIPELINE",
            )

        seen_stages: set[str] = set()
        producers: dict[str, str] = {}

        for stage in self.stages:
            if stage.name in seen_stages:
                raise TopologyError(
                    message=f"Duplicate stage name '{stage.name}'",
                    error_code="DUPLICATE_STAGE",
                    details={"stage": stage.name},
                )
            seen_stages.add(stage.name)

            if not stage.actions:
                raise TopologyError(
                    message=f"Stage '{stage.name}' has no actions",
                    error_code="EMPTY_STAGE",
                    details={"stage": stage.name},
                )
            if stage.environment is not None and not stage.role:
                raise TopologyError(
                    message=f"Stage '{stage.name}' deploys but declares no role",
                    error_code="MISSING_ROLE",
                    details={"stage": stage.name},
                )

            action_names = [a.name for a in stage.actions]
            duplicates = {n for n in action_names if action_names.count(n) > 1}
            if duplicates:
                raise TopologyError(
                    message=f"Duplicate action names in stage '{stage.name}'",
                    error_code="DUPLICATE_ACTION",
                    details={"stage": stage.name, "actions": sorted(duplicates)},
                )

            self._check_approvals(stage)

            # Inputs may only come from earlier stages or earlier groups, so
            # outputs of a group are registered after the group's inputs are
            # checked.
            for _, group in stage.run_order_groups():
                for action in group:
                    if (
                        action.environment is not None
                        and action.environment != stage.environment
                    ):
                        raise TopologyError(
                            message=(
                                f"Action '{action.name}' targets {action.environment.value} "
                                f"but stage '{stage.name}' is bound to "
                                f"{stage.environment.value if stage.environment else 'nothing'}"
                            ),
                            error_code="ENVIRONMENT_MISMATCH",
                            details={"stage": stage.name, "action": action.name},
                        )
                    for artifact in action.inputs:
                        if artifact not in producers:
                            raise TopologyError(
                                message=(
                                    f"Action '{stage.name}/{action.name}' reads "
                                    f"'{artifact}' before anything produces it"
                                ),
                                error_code="UNPRODUCED_INPUT",
                                details={"artifact": artifact, "action": action.name},
                            )
                for action in group:
                    for artifact in action.outputs:
                        if artifact in producers:
                            raise TopologyError(
                                message=f"Artifact '{artifact}' has more than one producer",
                                error_code="DUPLICATE_PRODUCER",
                                details={
                                    "artifact": artifact,
                                    "producers": [
                                        producers[artifact],
                                        f"{stage.name}/{action.name}",
                                    ],
                                },
                            )
                        producers[artifact] = f"{stage.name}/{action.name}"

        if not self.webhook_sources():
            raise TopologyError(
                message=f"Pipeline '{self.name}' has no webhook-triggered source",
                error_code="NO_TRIGGER",
            )

    @staticmethod
    def _check_approvals(stage: StageDefinition) -> None:
        approvals = [a for a in stage.actions if a.kind == ActionKind.APPROVAL]
        if not approvals:
            return
        if len(approvals) > 1:
            raise TopologyError(
                message=f"Stage '{stage.name}' has more than one approval",
                error_code="MULTIPLE_APPROVALS",
                details={"stage": stage.name},
            )
        approval = approvals[0]
        if stage.environment != Environment.TEST:
            raise TopologyError(
                message=(
                    f"Approval '{approval.name}' is only allowed in the test stage, "
                    f"not '{stage.name}'"
                ),
                error_code="APPROVAL_OUTSIDE_TEST",
                details={
                    "stage": stage.name,
                    "environment": stage.environment.value if stage.environment else None,
                },
            )
        highest = max(a.run_order for a in stage.actions)
        peers = [a for a in stage.actions if a.run_order == approval.run_order]
        if approval.run_order != highest or len(peers) > 1:
            raise TopologyError(
                message=(
                    f"Approval '{approval.name}' must be the only action at the "
                    f"highest run order of stage '{stage.name}'"
                ),
                error_code="APPROVAL_NOT_LAST",
                details={"stage": stage.name, "run_order": approval.run_order},
            )


# =============================================================================
# Action Result
# =============================================================================
class ActionResult(BaseModel):
    """The outcome of running one action.

    Attributes:
        action_name: Name of the action that ran.
        status: SUCCEEDED or FAILED.
        output: Executor-specific output data (endpoint, check results, ...).
        variables: Variables exported for later actions
            (referenced as "#{ActionName.Variable}").
        error_message: Human-readable failure description.
        error_code: Machine-readable failure code.
        failure_kind: Classification of the failure.
        duration_seconds: Wall-clock duration of the action.
        completed_at: When the action finished.
    """

    action_name: str
    status: ExecutionStatus
    output: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, str] = Field(default_factory=dict)
    error_message: Optional[str] = Field(default=None)
    error_code: Optional[str] = Field(default=None)
    failure_kind: Optional[FailureKind] = Field(default=None)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    completed_at: datetime = Field(default_factory=_now)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCEEDED


class DecisionRequest(BaseModel):
    """A decision submitted through the external decision API.

    Attributes:
        execution_id: Execution whose approval request is being decided.
        decision: APPROVE or REJECT.
        actor: Who decided.
        comment: Free-text justification.
    """

    execution_id: str = Field(..., min_length=1)
    decision: Decision
    actor: str = Field(default="unknown")
    comment: Optional[str] = Field(default=None)


# =============================================================================
# Deployment Payloads
# =============================================================================
# Exchanged between the build-and-deploy action and a DeployBackend. The
# manifest is opaque to the pipeline; see service.py for its shape.
# =============================================================================
class DeployRequest(BaseModel):
    """A request to build and deploy one version to one environment."""

    environment: Environment
    version: str = Field(..., min_length=1)
    role: Optional[str] = Field(default=None)
    manifest: dict[str, Any] = Field(default_factory=dict)
    artifacts: dict[str, int] = Field(
        default_factory=dict,
        description="Artifact name → version that was read",
    )
    variables: dict[str, str] = Field(default_factory=dict)


class DeployOutcome(BaseModel):
    """What a backend reports after a successful deployment."""

    endpoint: str = Field(..., min_length=1)
    resources: dict[str, Any] = Field(default_factory=dict)
    deployment_id: str = Field(default_factory=_generate_id)
