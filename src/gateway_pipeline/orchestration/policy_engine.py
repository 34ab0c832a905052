"""
gateway_pipeline.orchestration.policy_engine - Gate Evaluation & Enforcement
==============================================================================

The Policy Engine is the gatekeeper the orchestrator consults before every
run-order group starts. Each gate rule of the pipeline is a Policy; the group
starts only when every registered policy allows it.

    ┌──────────────┐  "may group k of   ┌─────────────────────┐
    │ Orchestrator │ ── stage S start?" │  Policy Engine      │
    │              │ ─────────────────→ │  ┌───────────────┐  │
    │              │ ←── ok / raises ── │  │ PriorStages   │  │
    └──────────────┘                    │  │ RunOrder      │  │
           │ (only if ok)               │  │ PromotionGate │  │
           ↓                            │  │ PromotionOrder│  │
    ┌──────────────┐                    │  │ Artifacts     │  │
    │ Action group │                    │  └───────────────┘  │
    └──────────────┘                    └─────────────────────┘

Context Keys (provided by the orchestrator):
    execution:  PipelineExecution snapshot
    stage:      StageDefinition about to run
    run_order:  Run order of the group
    group:      list[ActionDefinition] in the group

Policies treat a missing context key as "not applicable" and allow. A policy
that raises is recorded as a denial (fail-closed).

Built-in Policies:
    1. PriorStagesSucceededPolicy - Earlier stages all SUCCEEDED
    2. RunOrderPolicy             - Lower run-order groups all SUCCEEDED
    3. PromotionGatePolicy        - Prod stages need an APPROVED promotion
    4. PromotionOrderPolicy       - Each action's promotion step is legal now
    5. ArtifactsAvailablePolicy   - Every input artifact has been produced
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import BaseModel, Field

from gateway_pipeline.core.enums import Environment, ExecutionStatus, PromotionState
from gateway_pipeline.core.exceptions import PolicyViolationError, StateError
from gateway_pipeline.core.promotion import next_promotion_state, requires_transition
from gateway_pipeline.infrastructure.artifact_store import ArtifactStore


logger = structlog.get_logger()


# =============================================================================
# Policy Result
# =============================================================================
class PolicyResult(BaseModel):
    """Result of a single policy evaluation.

    Attributes:
        allowed: Whether the policy lets the group start.
        policy_name: Name of the policy that produced this result.
        reason: Human-readable explanation.
        metadata: Additional context about the evaluation.
    """

    allowed: bool = Field(description="Whether the action is permitted by this policy")
    policy_name: str = Field(description="Name of the policy that produced this result")
    reason: str = Field(default="")
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Abstract Base Class: Policy
# =============================================================================
class Policy(ABC):
    """Abstract base class for all gate policies.

    Example:
        >>> class FreezeWindowPolicy(Policy):
        ...     @property
        ...     def name(self) -> str:
        ...         return "FreezeWindowPolicy"
        ...
        ...     @property
        ...     def description(self) -> str:
        ...         return "Blocks prod deployments during a change freeze"
        ...
        ...     async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        ...         return PolicyResult(allowed=True, policy_name=self.name)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique policy name (PascalCase, matching the class name)."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @abstractmethod
    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """Evaluate the policy against a context.

        Args:
            context: See the module docstring for the keys provided.

        Returns:
            PolicyResult with allowed=True to let the group start.
        """
        ...

    def _not_applicable(self, missing: str) -> PolicyResult:
        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason=f"No '{missing}' in context; policy not applicable",
        )


# =============================================================================
# Built-in Policy: PriorStagesSucceededPolicy
# =============================================================================
class PriorStagesSucceededPolicy(Policy):
    """A stage may start only after every earlier stage succeeded."""

    @property
    def name(self) -> str:
        return "PriorStagesSucceededPolicy"

    @property
    def description(self) -> str:
        return "Every stage before the current one must have succeeded"

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        execution = context.get("execution")
        stage = context.get("stage")
        if execution is None or stage is None:
            return self._not_applicable("execution" if execution is None else "stage")

        for stage_state in execution.stages:
            if stage_state.name == stage.name:
                break
            if stage_state.status != ExecutionStatus.SUCCEEDED:
                return PolicyResult(
                    allowed=False,
                    policy_name=self.name,
                    reason=(
                        f"Stage '{stage_state.name}' is {stage_state.status.value}; "
                        f"'{stage.name}' cannot start"
                    ),
                    metadata={"blocking_stage": stage_state.name},
                )

        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason=f"All stages before '{stage.name}' succeeded",
        )


# =============================================================================
# Built-in Policy: RunOrderPolicy
# =============================================================================
# Group k+1 never starts while any action at a lower run order is pending,
# running or failed.
# =============================================================================
class RunOrderPolicy(Policy):
    """Lower run-order groups of the same stage must all have succeeded."""

    @property
    def name(self) -> str:
        return "RunOrderPolicy"

    @property
    def description(self) -> str:
        return "Every action with a lower run order in the stage must have succeeded"

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        execution = context.get("execution")
        stage = context.get("stage")
        run_order = context.get("run_order")
        if execution is None or stage is None or run_order is None:
            return self._not_applicable("execution/stage/run_order")

        stage_state = execution.stage(stage.name)
        blocking = [
            a.name
            for a in (stage_state.actions if stage_state else [])
            if a.run_order < run_order and a.status != ExecutionStatus.SUCCEEDED
        ]
        if blocking:
            return PolicyResult(
                allowed=False,
                policy_name=self.name,
                reason=(
                    f"Run order {run_order} of '{stage.name}' is blocked by "
                    f"{', '.join(blocking)}"
                ),
                metadata={"blocking_actions": blocking, "run_order": run_order},
            )
        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason=f"Everything before run order {run_order} succeeded",
        )


# =============================================================================
# Built-in Policy: PromotionGatePolicy
# =============================================================================
class PromotionGatePolicy(Policy):
    """A stage bound to PROD starts only once the commit is APPROVED.

    Args:
        environment: Environment the gate protects.
        required_state: Promotion state the execution must be in.
    """

    def __init__(
        self,
        environment: Environment = Environment.PROD,
        required_state: PromotionState = PromotionState.APPROVED,
    ) -> None:
        self._environment = environment
        self._required_state = required_state

    @property
    def name(self) -> str:
        return "PromotionGatePolicy"

    @property
    def description(self) -> str:
        return (
            f"Stages bound to {self._environment.value} require promotion "
            f"state {self._required_state.value}"
        )

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        execution = context.get("execution")
        stage = context.get("stage")
        if execution is None or stage is None:
            return self._not_applicable("execution/stage")
        if stage.environment != self._environment:
            return PolicyResult(
                allowed=True,
                policy_name=self.name,
                reason=f"Stage '{stage.name}' is not bound to {self._environment.value}",
            )

        # Only the first group needs the approved state; later groups run
        # after the stage itself has moved the promotion forward.
        first_order = min(a.run_order for a in stage.actions)
        if context.get("run_order", first_order) != first_order:
            return PolicyResult(
                allowed=True,
                policy_name=self.name,
                reason="Gate already passed for this stage",
            )

        if execution.promotion_state != self._required_state:
            return PolicyResult(
                allowed=False,
                policy_name=self.name,
                reason=(
                    f"Stage '{stage.name}' requires {self._required_state.value}, "
                    f"commit is {execution.promotion_state.value}"
                ),
                metadata={
                    "promotion_state": execution.promotion_state.value,
                    "required_state": self._required_state.value,
                },
            )
        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason=f"Commit is {self._required_state.value}",
        )


class PromotionOrderPolicy(Policy):
    """Every action in the group must be the next legal promotion step."""

    @property
    def name(self) -> str:
        return "PromotionOrderPolicy"

    @property
    def description(self) -> str:
        return "Actions may only run when their promotion transition is legal"

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        execution = context.get("execution")
        group = context.get("group")
        if execution is None or group is None:
            return self._not_applicable("execution/group")

        for action in group:
            if not requires_transition(action.kind):
                continue
            try:
                next_promotion_state(execution.promotion_state, action.kind, action.environment)
            except StateError as e:
                return PolicyResult(
                    allowed=False,
                    policy_name=self.name,
                    reason=f"Action '{action.name}': {e.message}",
                    metadata=e.details,
                )
        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason="Every promotion step in the group is legal",
        )


class ArtifactsAvailablePolicy(Policy):
    """Every input artifact of the group must exist in the artifact store."""

    def __init__(self, artifact_store: ArtifactStore) -> None:
        self._artifact_store = artifact_store

    @property
    def name(self) -> str:
        return "ArtifactsAvailablePolicy"

    @property
    def description(self) -> str:
        return "Input artifacts must have been produced before an action reads them"

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        execution = context.get("execution")
        group = context.get("group")
        if execution is None or group is None:
            return self._not_applicable("execution/group")

        missing = []
        for action in group:
            for artifact in action.inputs:
                if not await self._artifact_store.exists(execution.execution_id, artifact):
                    missing.append(f"{action.name}:{artifact}")
        if missing:
            return PolicyResult(
                allowed=False,
                policy_name=self.name,
                reason=f"Missing input artifacts: {', '.join(missing)}",
                metadata={"missing": missing},
            )
        return PolicyResult(
            allowed=True,
            policy_name=self.name,
            reason="All input artifacts are available",
        )


# =============================================================================
# Policy Engine
# =============================================================================
# Three evaluation modes:
#   evaluate_all(context) → list[PolicyResult]
#   enforce(context)      → raises PolicyViolationError on the first denial
#   check(context)        → bool
# =============================================================================
class PolicyEngine:
    """Registry of policies plus evaluation and enforcement.

    Policies are evaluated sequentially in registration order.

    Example:
        >>> engine = PolicyEngine()
        >>> engine.register_policy(PriorStagesSucceededPolicy())
        >>> await engine.enforce({"execution": execution, "stage": stage})
    """

    def __init__(self) -> None:
        self._policies: list[Policy] = []
        self._logger = logger.bind(component="policy_engine")

    @property
    def policies(self) -> list[Policy]:
        """Copy of the registered policies, in registration order."""
        return list(self._policies)

    @property
    def policy_count(self) -> int:
        return len(self._policies)

    def register_policy(self, policy: Policy) -> None:
        self._policies.append(policy)
        self._logger.info(
            "policy_registered",
            policy_name=policy.name,
            policy_description=policy.description,
            total_policies=len(self._policies),
        )

    def unregister_policy(self, policy_name: str) -> bool:
        """Remove the FIRST policy with the given name.

        Returns:
            True if a policy was removed.
        """
        for i, policy in enumerate(self._policies):
            if policy.name == policy_name:
                self._policies.pop(i)
                self._logger.info(
                    "policy_unregistered",
                    policy_name=policy_name,
                    total_policies=len(self._policies),
                )
                return True

        self._logger.warning("policy_not_found_for_unregister", policy_name=policy_name)
        return False

    async def evaluate_all(self, context: dict[str, Any]) -> list[PolicyResult]:
        """Evaluate every registered policy.

        A policy that raises counts as a denial.
        """
        results: list[PolicyResult] = []
        for policy in self._policies:
            try:
                result = await policy.evaluate(context)
            except Exception as exc:
                self._logger.error(
                    "policy_evaluation_error",
                    policy_name=policy.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                result = PolicyResult(
                    allowed=False,
                    policy_name=policy.name,
                    reason=f"Policy evaluation failed with error: {exc}",
                    metadata={"error": str(exc), "error_type": type(exc).__name__},
                )
            else:
                self._logger.debug(
                    "policy_evaluated",
                    policy_name=policy.name,
                    allowed=result.allowed,
                    reason=result.reason,
                )
            results.append(result)
        return results

    async def enforce(self, context: dict[str, Any]) -> None:
        """Raise on the first denying policy.

        Raises:
            PolicyViolationError: With the denying policy's name and reason.
        """
        for result in await self.evaluate_all(context):
            if not result.allowed:
                self._logger.warning(
                    "policy_violation_enforced",
                    policy_name=result.policy_name,
                    reason=result.reason,
                )
                raise PolicyViolationError(
                    message=f"Policy '{result.policy_name}' denied the action: {result.reason}",
                    policy_name=result.policy_name,
                    violation_details=result.reason,
                    details=dict(result.metadata),
                )

    async def check(self, context: dict[str, Any]) -> bool:
        """True only if every registered policy allows."""
        results = await self.evaluate_all(context)
        return all(r.allowed for r in results)


def create_default_policy_engine(artifact_store: ArtifactStore) -> PolicyEngine:
    """Policy engine with every built-in gate registered."""
    engine = PolicyEngine()
    engine.register_policy(PriorStagesSucceededPolicy())
    engine.register_policy(RunOrderPolicy())
    engine.register_policy(PromotionGatePolicy())
    engine.register_policy(PromotionOrderPolicy())
    engine.register_policy(ArtifactsAvailablePolicy(artifact_store))
    return engine
