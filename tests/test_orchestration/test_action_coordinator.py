"""
Tests for gateway_pipeline.orchestration.action_coordinator
=============================================================

What's Being Tested:
    - Executor registration (one per kind)
    - Dispatch to the executor of the action's kind
    - Missing executor → FAILED result, never an exception
    - close() closes every executor
"""

import pytest

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.config import PipelineConfig
from gateway_pipeline.core.enums import ActionKind, ExecutionStatus, FailureKind
from gateway_pipeline.core.exceptions import ConfigurationError
from gateway_pipeline.core.models import ActionResult, SourceEvent
from gateway_pipeline.core.state import PipelineExecution
from gateway_pipeline.infrastructure.artifact_store import InMemoryArtifactStore
from gateway_pipeline.orchestration.action_coordinator import ActionCoordinator
from gateway_pipeline.topology import build_default_pipeline


DEFINITION = build_default_pipeline(PipelineConfig())


class _RecordingSmokeTest(BaseAction):
    kind = ActionKind.SMOKE_TEST

    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def _execute(self, context: ActionContext) -> ActionResult:
        return self._create_result(context, output={"ran": context.qualified_name})

    async def close(self) -> None:
        self.closed = True


class _BrokenClose(_RecordingSmokeTest):
    kind = ActionKind.APPROVAL

    async def close(self) -> None:
        raise RuntimeError("close failed")


def _context(stage_name: str, action_name: str) -> ActionContext:
    event = SourceEvent(repository="illiad-gateway", branch="master", commit_id="abc123")
    stage = DEFINITION.get_stage(stage_name)
    return ActionContext(
        execution=PipelineExecution.create(DEFINITION, event),
        stage=stage,
        action=stage.get_action(action_name),
        artifact_store=InMemoryArtifactStore(),
    )


class TestActionCoordinator:

    def test_register(self) -> None:
        coordinator = ActionCoordinator()
        executor = _RecordingSmokeTest()
        coordinator.register_executor(executor)
        assert coordinator.executor_count == 1
        assert coordinator.get_executor(ActionKind.SMOKE_TEST) is executor
        assert coordinator.get_executor(ActionKind.SOURCE) is None

    def test_duplicate_kind_is_rejected(self) -> None:
        coordinator = ActionCoordinator()
        coordinator.register_executor(_RecordingSmokeTest())
        with pytest.raises(ConfigurationError) as exc_info:
            coordinator.register_executor(_RecordingSmokeTest())
        assert exc_info.value.error_code == "EXECUTOR_ALREADY_REGISTERED"

    async def test_dispatch(self) -> None:
        coordinator = ActionCoordinator()
        coordinator.register_executor(_RecordingSmokeTest())

        result = await coordinator.dispatch(_context("DeployToTest", "SmokeTests"))

        assert result.succeeded
        assert result.output["ran"] == "DeployToTest/SmokeTests"
        assert coordinator.dispatch_count == 1

    async def test_dispatch_without_executor(self) -> None:
        coordinator = ActionCoordinator()
        result = await coordinator.dispatch(_context("DeployToTest", "Build_and_Deploy"))
        assert result.status == ExecutionStatus.FAILED
        assert result.error_code == "NO_EXECUTOR"
        assert result.failure_kind == FailureKind.INTERNAL

    async def test_close_closes_everything(self) -> None:
        coordinator = ActionCoordinator()
        healthy = _RecordingSmokeTest()
        coordinator.register_executor(_BrokenClose())
        coordinator.register_executor(healthy)

        await coordinator.close()

        assert healthy.closed
        assert coordinator.executor_count == 0
