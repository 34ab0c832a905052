"""
Tests for gateway_pipeline.orchestration.approvals - ApprovalManager
======================================================================

What's Being Tested:
    - request():  PENDING request persisted and announced on the bus
    - wait():     returns once resolved; expires after the timeout
    - resolve():  exactly-once; second decision raises and changes nothing
    - cancel():   a pending request is rejected by the system, including
                  one opened after the execution was cancelled
    - Queries:    get / get_for_execution / list_pending

All tests are async (pytest-asyncio with asyncio_mode=auto).
"""

import asyncio

import pytest

from gateway_pipeline.core.config import PipelineConfig
from gateway_pipeline.core.enums import ApprovalState, EventType
from gateway_pipeline.core.exceptions import DecisionError
from gateway_pipeline.core.messages import APPROVALS_CHANNEL, PipelineEvent
from gateway_pipeline.core.models import DecisionRequest, SourceEvent
from gateway_pipeline.core.state import PipelineExecution
from gateway_pipeline.orchestration.approvals import (
    CANCEL_ACTOR,
    EXPIRY_ACTOR,
    ApprovalManager,
)
from gateway_pipeline.topology import build_default_pipeline


# =============================================================================
# Helpers
# =============================================================================
def _execution() -> PipelineExecution:
    definition = build_default_pipeline(PipelineConfig())
    event = SourceEvent(repository="illiad-gateway", branch="master", commit_id="abc123")
    return PipelineExecution.create(definition, event)


async def _open(manager: ApprovalManager, execution: PipelineExecution):
    return await manager.request(
        execution,
        "DeployToTest",
        "ManualApprovalOfTestEnvironment",
        summary="Approve abc123 for promotion",
    )


@pytest.fixture
def approvals(state_manager, message_bus) -> ApprovalManager:
    return ApprovalManager(state_manager, message_bus)


@pytest.fixture
async def approval_events(message_bus) -> list[PipelineEvent]:
    events: list[PipelineEvent] = []

    async def _record(event: PipelineEvent) -> None:
        events.append(event)

    await message_bus.subscribe(APPROVALS_CHANNEL, _record)
    return events


# =============================================================================
# Test: Requesting
# =============================================================================
class TestRequest:

    async def test_creates_pending_request(self, approvals, state_manager) -> None:
        execution = _execution()
        request = await _open(approvals, execution)

        assert request.state == ApprovalState.PENDING
        assert request.commit_id == "abc123"
        assert request.expires_at is None
        assert await state_manager.get_approval(request.request_id) == request

    async def test_announces_request(self, approvals, approval_events) -> None:
        execution = _execution()
        request = await _open(approvals, execution)

        assert len(approval_events) == 1
        event = approval_events[0]
        assert event.event_type == EventType.APPROVAL_REQUESTED
        assert event.pipeline_name == execution.pipeline_name
        assert event.payload["request_id"] == request.request_id
        assert event.payload["summary"] == "Approve abc123 for promotion"

    async def test_timeout_sets_expiry(self, state_manager, message_bus) -> None:
        manager = ApprovalManager(state_manager, message_bus, timeout_seconds=60)
        request = await _open(manager, _execution())
        assert request.expires_at is not None
        assert (request.expires_at - request.created_at).total_seconds() == 60


# =============================================================================
# Test: Waiting & Resolving
# =============================================================================
class TestResolve:

    async def test_approve_releases_waiter(self, approvals, approval_events) -> None:
        execution = _execution()
        request = await _open(approvals, execution)
        waiter = asyncio.create_task(approvals.wait(request.request_id))
        await asyncio.sleep(0)

        resolved = await approvals.resolve(
            DecisionRequest(
                execution_id=execution.execution_id,
                decision="approve",
                actor="qa@nd.edu",
                comment="Looks good",
            )
        )
        result = await asyncio.wait_for(waiter, 1.0)

        assert resolved.state == ApprovalState.APPROVED
        assert result.decided_by == "qa@nd.edu"
        assert result.comment == "Looks good"
        assert result.resolved_at is not None
        assert approval_events[-1].event_type == EventType.APPROVAL_RESOLVED
        assert approval_events[-1].payload["state"] == "approved"

    async def test_reject(self, approvals) -> None:
        execution = _execution()
        await _open(approvals, execution)
        resolved = await approvals.resolve(
            DecisionRequest(execution_id=execution.execution_id, decision="reject", actor="qa")
        )
        assert resolved.state == ApprovalState.REJECTED

    async def test_second_decision_is_refused(self, approvals) -> None:
        execution = _execution()
        request = await _open(approvals, execution)
        await approvals.resolve(
            DecisionRequest(execution_id=execution.execution_id, decision="approve", actor="a")
        )

        with pytest.raises(DecisionError) as exc_info:
            await approvals.resolve(
                DecisionRequest(execution_id=execution.execution_id, decision="reject", actor="b")
            )
        assert exc_info.value.error_code == "APPROVAL_ALREADY_RESOLVED"
        assert exc_info.value.details["state"] == "approved"

        stored = await approvals.get(request.request_id)
        assert stored.state == ApprovalState.APPROVED
        assert stored.decided_by == "a"

    async def test_unknown_execution(self, approvals) -> None:
        with pytest.raises(DecisionError) as exc_info:
            await approvals.resolve(DecisionRequest(execution_id="exec-missing", decision="approve"))
        assert exc_info.value.error_code == "APPROVAL_NOT_FOUND"

    async def test_wait_on_resolved_request_returns_immediately(self, approvals) -> None:
        execution = _execution()
        request = await _open(approvals, execution)
        await approvals.resolve(
            DecisionRequest(execution_id=execution.execution_id, decision="approve")
        )
        result = await asyncio.wait_for(approvals.wait(request.request_id), 1.0)
        assert result.state == ApprovalState.APPROVED

    async def test_wait_on_unknown_request(self, approvals) -> None:
        with pytest.raises(DecisionError):
            await approvals.wait("appr-missing")

    async def test_reloaded_request_can_still_be_decided(self, state_manager, message_bus) -> None:
        """A fresh manager over the same store can wait on and resolve old requests."""
        execution = _execution()
        request = await _open(ApprovalManager(state_manager, message_bus), execution)

        restarted = ApprovalManager(state_manager, message_bus)
        waiter = asyncio.create_task(restarted.wait(request.request_id))
        await asyncio.sleep(0)
        await restarted.resolve(
            DecisionRequest(execution_id=execution.execution_id, decision="approve")
        )
        assert (await asyncio.wait_for(waiter, 1.0)).state == ApprovalState.APPROVED


# =============================================================================
# Test: Expiry & Cancellation
# =============================================================================
class TestExpiryAndCancel:

    async def test_request_expires(self, state_manager, message_bus) -> None:
        manager = ApprovalManager(state_manager, message_bus, timeout_seconds=0.05)
        execution = _execution()
        request = await _open(manager, execution)

        result = await asyncio.wait_for(manager.wait(request.request_id), 1.0)

        assert result.state == ApprovalState.EXPIRED
        assert result.decided_by == EXPIRY_ACTOR
        with pytest.raises(DecisionError) as exc_info:
            await manager.resolve(
                DecisionRequest(execution_id=execution.execution_id, decision="approve")
            )
        assert exc_info.value.details["state"] == "expired"

    async def test_cancel_rejects_pending_request(self, approvals) -> None:
        execution = _execution()
        request = await _open(approvals, execution)
        waiter = asyncio.create_task(approvals.wait(request.request_id))
        await asyncio.sleep(0)

        cancelled = await approvals.cancel(execution.execution_id)
        result = await asyncio.wait_for(waiter, 1.0)

        assert cancelled.state == ApprovalState.REJECTED
        assert result.decided_by == CANCEL_ACTOR

    async def test_cancel_without_request_is_a_no_op(self, approvals) -> None:
        assert await approvals.cancel("exec-missing") is None

    async def test_request_after_cancel_is_rejected_at_once(self, approvals) -> None:
        execution = _execution()
        assert await approvals.cancel(execution.execution_id) is None
        execution.cancel_requested = True

        request = await _open(approvals, execution)
        resolved = await asyncio.wait_for(approvals.wait(request.request_id), 1.0)

        assert resolved.state == ApprovalState.REJECTED
        assert resolved.decided_by == CANCEL_ACTOR
        assert await approvals.list_pending() == []

    async def test_cancel_comment_is_recorded(self, approvals) -> None:
        execution = _execution()
        await _open(approvals, execution)

        cancelled = await approvals.cancel(execution.execution_id, comment="Orchestrator shut down")

        assert cancelled.comment == "Orchestrator shut down"


class TestQueries:

    async def test_list_pending_and_lookup(self, approvals) -> None:
        first, second = _execution(), _execution()
        await _open(approvals, first)
        await _open(approvals, second)
        await approvals.resolve(DecisionRequest(execution_id=first.execution_id, decision="reject"))

        pending = await approvals.list_pending()
        assert [r.execution_id for r in pending] == [second.execution_id]
        found = await approvals.get_for_execution(first.execution_id)
        assert found.state == ApprovalState.REJECTED
