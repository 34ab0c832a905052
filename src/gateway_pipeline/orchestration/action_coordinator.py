"""
gateway_pipeline.orchestration.action_coordinator - Action Dispatch
=====================================================================

Registry of action executors, one per action kind, and the single point
through which the orchestrator runs an action.

    ┌──────────────┐  dispatch(context)  ┌────────────────────────┐
    │ Orchestrator │ ──────────────────→ │   ActionCoordinator    │
    │              │ ←── ActionResult ── │  ┌─ Executors ──────┐  │
    └──────────────┘                     │  │ source           │  │
                                         │  │ build_and_deploy │  │
                                         │  │ smoke_test       │  │
                                         │  │ approval         │  │
                                         │  └──────────────────┘  │
                                         └────────────────────────┘

Dispatch never raises for an action-level problem: an unregistered kind
becomes a FAILED result (NO_EXECUTOR) like any other failure.
"""

from __future__ import annotations

from typing import Optional

import structlog

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.enums import ActionKind, ExecutionStatus, FailureKind
from gateway_pipeline.core.exceptions import ConfigurationError
from gateway_pipeline.core.models import ActionResult


logger = structlog.get_logger()


class ActionCoordinator:
    """Maps action kinds to executors and dispatches actions to them.

    Example:
        >>> coordinator = ActionCoordinator()
        >>> coordinator.register_executor(SmokeTestAction(runner))
        >>> result = await coordinator.dispatch(context)
    """

    def __init__(self) -> None:
        self._executors: dict[ActionKind, BaseAction] = {}
        self._dispatch_count = 0
        self._logger = logger.bind(component="action_coordinator")

    @property
    def executor_count(self) -> int:
        return len(self._executors)

    @property
    def dispatch_count(self) -> int:
        return self._dispatch_count

    def register_executor(self, executor: BaseAction) -> None:
        """Register the executor for its kind.

        Raises:
            ConfigurationError: If the kind already has an executor.
        """
        if executor.kind in self._executors:
            raise ConfigurationError(
                message=f"An executor for '{executor.kind.value}' is already registered",
                error_code="EXECUTOR_ALREADY_REGISTERED",
                details={"kind": executor.kind.value},
            )
        self._executors[executor.kind] = executor
        self._logger.info(
            "executor_registered",
            kind=executor.kind.value,
            executor=type(executor).__name__,
            total_executors=len(self._executors),
        )

    def get_executor(self, kind: ActionKind) -> Optional[BaseAction]:
        return self._executors.get(kind)

    async def dispatch(self, context: ActionContext) -> ActionResult:
        """Run one action on the executor registered for its kind."""
        self._dispatch_count += 1
        executor = self._executors.get(context.action.kind)
        if executor is None:
            self._logger.error(
                "no_executor_for_action",
                kind=context.action.kind.value,
                action=context.qualified_name,
            )
            return ActionResult(
                action_name=context.action.name,
                status=ExecutionStatus.FAILED,
                error_message=f"No executor registered for '{context.action.kind.value}'",
                error_code="NO_EXECUTOR",
                failure_kind=FailureKind.INTERNAL,
            )

        self._logger.debug(
            "dispatching_action",
            execution_id=context.execution_id,
            action=context.qualified_name,
            executor=type(executor).__name__,
        )
        return await executor.execute(context)

    async def close(self) -> None:
        """Close every executor, logging (not raising) individual failures."""
        for kind, executor in list(self._executors.items()):
            try:
                await executor.close()
            except Exception as e:
                self._logger.error("executor_close_failed", kind=kind.value, error=str(e))
        self._executors.clear()
