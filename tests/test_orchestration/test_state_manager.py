"""
Tests for gateway_pipeline.orchestration.state_manager
========================================================

What's Being Tested:
    - Execution CRUD:    save, get, list (optionally by commit)
    - Approval CRUD:     save, get, list (optionally by state)
    - Lookup:            get_approval_for_execution
    - Isolation:         stored snapshots are copies
    - JsonFileStateManager: the same contract on disk, plus read errors

Both implementations run the same contract tests via a parametrized fixture.
"""

from datetime import timedelta

import pytest

from gateway_pipeline.core.config import PipelineConfig
from gateway_pipeline.core.enums import ApprovalState, ExecutionStatus
from gateway_pipeline.core.exceptions import StateError
from gateway_pipeline.core.models import SourceEvent
from gateway_pipeline.core.state import ApprovalRequest, PipelineExecution
from gateway_pipeline.orchestration.state_manager import (
    InMemoryStateManager,
    JsonFileStateManager,
    StateManager,
)
from gateway_pipeline.topology import build_default_pipeline


# =============================================================================
# Helpers
# =============================================================================
_DEFINITION = build_default_pipeline(PipelineConfig())


def _make_execution(commit_id: str = "abc123") -> PipelineExecution:
    event = SourceEvent(repository="illiad-gateway", branch="master", commit_id=commit_id)
    return PipelineExecution.create(_DEFINITION, event)


def _make_approval(execution_id: str = "exec-1", **kwargs) -> ApprovalRequest:
    return ApprovalRequest(
        execution_id=execution_id,
        stage_name="DeployToTest",
        action_name="ManualApprovalOfTestEnvironment",
        **kwargs,
    )


@pytest.fixture(params=["memory", "json"])
async def manager(request, tmp_path) -> StateManager:
    if request.param == "memory":
        sm: StateManager = InMemoryStateManager()
    else:
        sm = JsonFileStateManager(tmp_path / "state")
    await sm.connect()
    yield sm
    await sm.disconnect()


# =============================================================================
# Test: Executions
# =============================================================================
class TestExecutions:

    async def test_save_and_get(self, manager) -> None:
        execution = _make_execution()
        await manager.save_execution(execution)
        assert await manager.get_execution(execution.execution_id) == execution

    async def test_get_unknown_returns_none(self, manager) -> None:
        assert await manager.get_execution("exec-missing") is None

    async def test_save_overwrites(self, manager) -> None:
        execution = _make_execution()
        await manager.save_execution(execution)
        execution.status = ExecutionStatus.SUCCEEDED
        await manager.save_execution(execution)
        stored = await manager.get_execution(execution.execution_id)
        assert stored.status == ExecutionStatus.SUCCEEDED

    async def test_stored_snapshot_is_a_copy(self, manager) -> None:
        execution = _make_execution()
        await manager.save_execution(execution)
        execution.status = ExecutionStatus.FAILED
        stored = await manager.get_execution(execution.execution_id)
        assert stored.status == ExecutionStatus.PENDING

    async def test_list_by_commit(self, manager) -> None:
        first = _make_execution("abc123")
        second = _make_execution("def456")
        third = _make_execution("abc123")
        for execution in (first, second, third):
            await manager.save_execution(execution)

        assert len(await manager.list_executions()) == 3
        ids = {e.execution_id for e in await manager.list_executions(commit_id="abc123")}
        assert ids == {first.execution_id, third.execution_id}


# =============================================================================
# Test: Approvals
# =============================================================================
class TestApprovals:

    async def test_save_and_get(self, manager) -> None:
        request = _make_approval()
        await manager.save_approval(request)
        assert await manager.get_approval(request.request_id) == request

    async def test_list_by_state(self, manager) -> None:
        await manager.save_approval(_make_approval("exec-1"))
        await manager.save_approval(_make_approval("exec-2", state=ApprovalState.APPROVED))

        pending = await manager.list_approvals(ApprovalState.PENDING)
        assert [r.execution_id for r in pending] == ["exec-1"]
        assert len(await manager.list_approvals()) == 2

    async def test_get_for_execution_returns_latest(self, manager) -> None:
        new = _make_approval("exec-1")
        old = _make_approval(
            "exec-1",
            state=ApprovalState.EXPIRED,
            created_at=new.created_at - timedelta(minutes=5),
        )
        await manager.save_approval(old)
        await manager.save_approval(new)

        found = await manager.get_approval_for_execution("exec-1")
        assert found.request_id == new.request_id
        assert await manager.get_approval_for_execution("exec-9") is None


# =============================================================================
# Test: JsonFileStateManager specifics
# =============================================================================
class TestJsonFileStateManager:

    async def test_writes_one_document_per_record(self, tmp_path) -> None:
        sm = JsonFileStateManager(tmp_path)
        await sm.connect()
        execution = _make_execution()
        await sm.save_execution(execution)
        assert (sm.root / "executions" / f"{execution.execution_id}.json").exists()

    async def test_survives_a_restart(self, tmp_path) -> None:
        execution = _make_execution()
        first = JsonFileStateManager(tmp_path)
        await first.connect()
        await first.save_execution(execution)

        second = JsonFileStateManager(tmp_path)
        await second.connect()
        assert await second.get_execution(execution.execution_id) == execution

    async def test_approvals_read_back_as_approval_requests(self, tmp_path) -> None:
        request = ApprovalRequest(execution_id="exec-1", stage_name="S", action_name="A")
        first = JsonFileStateManager(tmp_path)
        await first.connect()
        await first.save_approval(request)

        second = JsonFileStateManager(tmp_path)
        await second.connect()
        loaded = await second.get_approval(request.request_id)
        assert isinstance(loaded, ApprovalRequest)
        assert loaded == request
        assert await second.get_approval("appr-missing") is None

    async def test_corrupt_document_raises_state_error(self, tmp_path) -> None:
        sm = JsonFileStateManager(tmp_path)
        await sm.connect()
        (tmp_path / "executions" / "exec-bad.json").write_text("{not json")
        with pytest.raises(StateError) as exc_info:
            await sm.get_execution("exec-bad")
        assert exc_info.value.error_code == "STATE_READ_FAILED"

    async def test_unusable_directory(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        sm = JsonFileStateManager(blocker / "state")
        with pytest.raises(StateError) as exc_info:
            await sm.connect()
        assert exc_info.value.error_code == "STATE_DIR_UNAVAILABLE"
