"""
gateway_pipeline.actions.base - Abstract Action Executor
==========================================================

Every action kind (source, build-and-deploy, smoke test, approval) has one
executor. BaseAction implements the lifecycle they share as a template
method; executors only implement ``_execute``.

    ┌─────────────────────────────────────────────────────┐
    │  BaseAction.execute(context)      ← Public API      │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ 1. _validate(context)        ← Override this │   │
    │  │ 2. Resolve #{Action.Var} environment vars    │   │
    │  │ 3. _execute(context)         ← Override this │   │
    │  │ 4. Time it, return ActionResult              │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Nothing an executor raises escapes ``execute``: an ActionError becomes a
FAILED result carrying its failure kind, any other exception a FAILED
result of kind INTERNAL. Task cancellation (asyncio.CancelledError) is
the one thing that propagates.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from gateway_pipeline.core.enums import ActionKind, ExecutionStatus, FailureKind
from gateway_pipeline.core.exceptions import ActionError
from gateway_pipeline.core.models import ActionDefinition, ActionResult, StageDefinition
from gateway_pipeline.core.state import PipelineExecution
from gateway_pipeline.infrastructure.artifact_store import ArtifactStore


logger = structlog.get_logger()

_VARIABLE_PATTERN = re.compile(r"#\{([A-Za-z0-9_\-]+)\.([A-Za-z0-9_]+)\}")


def resolve_environment_variables(
    definitions: dict[str, str],
    variables: dict[str, str],
    action_name: Optional[str] = None,
) -> dict[str, str]:
    """Substitute ``#{Action.Variable}`` references.

    Args:
        definitions: Variable name → value template.
        variables: Exported variables keyed "Action.Variable".
        action_name: Action being resolved for (error context).

    Returns:
        Variable name → resolved value.

    Raises:
        ActionError: VARIABLE_UNRESOLVED if a reference has no value.

    Example:
        >>> resolve_environment_variables(
        ...     {"VERSION": "#{SourceAppCode.CommitId}"},
        ...     {"SourceAppCode.CommitId": "abc123"},
        ... )
        {'VERSION': 'abc123'}
    """
    resolved: dict[str, str] = {}
    for name, template in definitions.items():
        def substitute(match: re.Match[str]) -> str:
            key = f"{match.group(1)}.{match.group(2)}"
            if key not in variables:
                raise ActionError(
                    message=f"Variable {match.group(0)} is not defined",
                    action_name=action_name,
                    error_code="VARIABLE_UNRESOLVED",
                    details={"variable": name, "reference": key},
                )
            return variables[key]

        resolved[name] = _VARIABLE_PATTERN.sub(substitute, template)
    return resolved


# =============================================================================
# Action Context
# =============================================================================
class ActionContext:
    """Everything an executor may look at while running one action.

    Attributes:
        execution: Snapshot of the execution the action belongs to.
        stage: Definition of the enclosing stage.
        action: Definition of the action.
        artifact_store: Where input artifacts are read and outputs written.
        environment_variables: Resolved before ``_execute`` is called.
    """

    def __init__(
        self,
        execution: PipelineExecution,
        stage: StageDefinition,
        action: ActionDefinition,
        artifact_store: ArtifactStore,
    ) -> None:
        self.execution = execution
        self.stage = stage
        self.action = action
        self.artifact_store = artifact_store
        self.environment_variables: dict[str, str] = {}

    @property
    def execution_id(self) -> str:
        return self.execution.execution_id

    @property
    def qualified_name(self) -> str:
        """"Stage/Action", the identity used for artifact ownership."""
        return f"{self.stage.name}/{self.action.name}"


# =============================================================================
# Base Action
# =============================================================================
class BaseAction(ABC):
    """Abstract base class for every action executor.

    Subclasses set ``kind`` and implement ``_execute``.

    Example:
        >>> class NoopAction(BaseAction):
        ...     kind = ActionKind.SMOKE_TEST
        ...     async def _execute(self, context):
        ...         return self._create_result(context, output={"noop": True})
    """

    kind: ActionKind

    def __init__(self) -> None:
        self._execution_count = 0
        self._failure_count = 0
        self._logger = logger.bind(component="action", action_kind=self.kind.value)

    @property
    def execution_count(self) -> int:
        return self._execution_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def execute(self, context: ActionContext) -> ActionResult:
        """Run one action and report its outcome. Never raises ActionError."""
        self._execution_count += 1
        started = time.monotonic()
        log = self._logger.bind(
            execution_id=context.execution_id,
            action=context.qualified_name,
        )
        log.info("action_execution_starting")

        try:
            problems = self._validate(context)
            if problems:
                raise ActionError(
                    message=f"Action {context.qualified_name} is misconfigured: {'; '.join(problems)}",
                    stage_name=context.stage.name,
                    action_name=context.action.name,
                    error_code="ACTION_VALIDATION_FAILED",
                    details={"problems": problems},
                )
            context.environment_variables = resolve_environment_variables(
                context.action.environment_variables,
                context.execution.variables,
                action_name=context.action.name,
            )
            result = await self._execute(context)
        except ActionError as e:
            self._failure_count += 1
            log.warning(
                "action_execution_failed",
                error_code=e.error_code,
                failure_kind=e.failure_kind.value,
                error=e.message,
            )
            result = self._failed_result(context, e.message, e.error_code, e.failure_kind, e.details)
        except Exception as e:
            self._failure_count += 1
            log.error("action_execution_crashed", error=str(e), error_type=type(e).__name__)
            result = self._failed_result(
                context,
                f"{type(e).__name__}: {e}",
                "ACTION_CRASHED",
                FailureKind.INTERNAL,
            )

        result.duration_seconds = time.monotonic() - started
        log.info(
            "action_execution_completed",
            status=result.status.value,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    def _validate(self, context: ActionContext) -> list[str]:
        """Return configuration problems; empty when the action can run."""
        if context.action.kind != self.kind:
            return [f"executor for {self.kind.value} cannot run {context.action.kind.value}"]
        return []

    @abstractmethod
    async def _execute(self, context: ActionContext) -> ActionResult:
        """Do the work. Raise an ActionError subclass on failure."""
        ...

    async def close(self) -> None:
        """Release collaborator resources."""
        return None

    def _create_result(
        self,
        context: ActionContext,
        output: Optional[dict[str, Any]] = None,
        variables: Optional[dict[str, str]] = None,
    ) -> ActionResult:
        return ActionResult(
            action_name=context.action.name,
            status=ExecutionStatus.SUCCEEDED,
            output=output or {},
            variables=variables or {},
        )

    def _failed_result(
        self,
        context: ActionContext,
        message: str,
        error_code: str,
        failure_kind: FailureKind,
        details: Optional[dict[str, Any]] = None,
    ) -> ActionResult:
        return ActionResult(
            action_name=context.action.name,
            status=ExecutionStatus.FAILED,
            output={"error_details": details or {}},
            error_message=message,
            error_code=error_code,
            failure_kind=failure_kind,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r})"
