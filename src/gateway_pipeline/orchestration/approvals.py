"""
gateway_pipeline.orchestration.approvals - Manual Approval Gate
=================================================================

The ApprovalManager owns every ApprovalRequest. The approval action asks it
for a request and waits; humans (through the facade) resolve it.

    ApprovalGateAction                 ApprovalManager              Reviewer
          │  request(execution, ...)         │                          │
          │ ───────────────────────────────→ │ ── APPROVAL_REQUESTED ─→ │
          │  wait(request_id)                │                          │
          │ ───────────────────────────────→ │ ←── resolve(decision) ── │
          │ ←────── APPROVED / REJECTED ──── │ ── APPROVAL_RESOLVED ──→ │
          │         / EXPIRED                │                          │

Rules:
    - A request is resolved exactly once. Deciding on a resolved request
      raises DecisionError(APPROVAL_ALREADY_RESOLVED) and changes nothing.
    - With a timeout configured, a request nobody decides on becomes
      EXPIRED; without one the gate waits indefinitely.
    - Cancelling an execution resolves its pending request as REJECTED,
      including a request opened after the cancel was requested.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from gateway_pipeline.core.enums import ApprovalState, Decision, EventType
from gateway_pipeline.core.exceptions import DecisionError
from gateway_pipeline.core.messages import PipelineEvent
from gateway_pipeline.core.models import DecisionRequest
from gateway_pipeline.core.state import ApprovalRequest, PipelineExecution
from gateway_pipeline.orchestration.message_bus import MessageBus
from gateway_pipeline.orchestration.state_manager import StateManager


logger = structlog.get_logger()

CANCEL_ACTOR = "system:cancel"
EXPIRY_ACTOR = "system:timeout"


class ApprovalManager:
    """Creates, waits on and resolves approval requests.

    Args:
        state_manager: Where requests are persisted.
        message_bus: Where APPROVAL_REQUESTED / APPROVAL_RESOLVED go.
        timeout_seconds: How long a request stays open. None waits forever.
    """

    def __init__(
        self,
        state_manager: StateManager,
        message_bus: MessageBus,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._state_manager = state_manager
        self._message_bus = message_bus
        self._timeout_seconds = timeout_seconds
        self._waiters: dict[str, asyncio.Future[ApprovalRequest]] = {}
        self._pipeline_names: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="approval_manager")

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self._timeout_seconds

    # =========================================================================
    # Requesting & Waiting
    # =========================================================================

    async def request(
        self,
        execution: PipelineExecution,
        stage_name: str,
        action_name: str,
        summary: Optional[str] = None,
    ) -> ApprovalRequest:
        """Open a PENDING approval request for an execution."""
        now = datetime.now(timezone.utc)
        request = ApprovalRequest(
            execution_id=execution.execution_id,
            stage_name=stage_name,
            action_name=action_name,
            commit_id=execution.commit_id,
            summary=summary,
            created_at=now,
            expires_at=(
                now + timedelta(seconds=self._timeout_seconds)
                if self._timeout_seconds is not None
                else None
            ),
        )
        await self._state_manager.save_approval(request)
        self._waiters[request.request_id] = asyncio.get_running_loop().create_future()
        self._pipeline_names[request.request_id] = execution.pipeline_name

        self._logger.info(
            "approval_requested",
            request_id=request.request_id,
            execution_id=execution.execution_id,
            commit_id=execution.commit_id,
            expires_at=request.expires_at.isoformat() if request.expires_at else None,
        )
        await self._emit(request, EventType.APPROVAL_REQUESTED)

        # cancel() may have run before this request existed.
        if execution.cancel_requested:
            await self.cancel(execution.execution_id)
        return request

    async def wait(self, request_id: str) -> ApprovalRequest:
        """Block until the request is resolved or expires.

        Returns:
            The resolved request (APPROVED, REJECTED or EXPIRED).
        """
        request = await self._state_manager.get_approval(request_id)
        if request is None:
            raise DecisionError(
                message=f"Approval request '{request_id}' not found",
                execution_id="",
                error_code="APPROVAL_NOT_FOUND",
                details={"request_id": request_id},
            )
        if not request.is_pending:
            return request

        waiter = self._waiters.get(request_id)
        if waiter is None:
            # Reloaded after a restart: nobody holds a future for it yet.
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[request_id] = waiter

        timeout = None
        if request.expires_at is not None:
            timeout = max(0.0, (request.expires_at - datetime.now(timezone.utc)).total_seconds())

        try:
            return await asyncio.wait_for(asyncio.shield(waiter), timeout)
        except asyncio.TimeoutError:
            expired = await self._finalize(
                request_id,
                ApprovalState.EXPIRED,
                actor=EXPIRY_ACTOR,
                comment="No decision before the approval timed out",
            )
            if expired is not None:
                return expired
            # A decision landed between the timeout and the lock.
            return await waiter

    # =========================================================================
    # Resolving
    # =========================================================================

    async def resolve(self, decision: DecisionRequest) -> ApprovalRequest:
        """Apply a human decision to an execution's approval request.

        Raises:
            DecisionError: APPROVAL_NOT_FOUND if the execution has no request,
                APPROVAL_ALREADY_RESOLVED if its request is not PENDING.
        """
        request = await self._state_manager.get_approval_for_execution(decision.execution_id)
        if request is None:
            raise DecisionError(
                message=f"Execution '{decision.execution_id}' has no approval request",
                execution_id=decision.execution_id,
                error_code="APPROVAL_NOT_FOUND",
            )

        state = (
            ApprovalState.APPROVED
            if decision.decision == Decision.APPROVE
            else ApprovalState.REJECTED
        )
        resolved = await self._finalize(
            request.request_id, state, actor=decision.actor, comment=decision.comment
        )
        if resolved is None:
            current = await self._state_manager.get_approval(request.request_id)
            raise DecisionError(
                message=(
                    f"Approval request '{request.request_id}' is already "
                    f"{current.state.value if current else 'resolved'}"
                ),
                execution_id=decision.execution_id,
                error_code="APPROVAL_ALREADY_RESOLVED",
                details={
                    "request_id": request.request_id,
                    "state": current.state.value if current else None,
                },
            )
        return resolved

    async def cancel(
        self, execution_id: str, comment: str = "Execution cancelled"
    ) -> Optional[ApprovalRequest]:
        """Reject the execution's pending request, if it has one."""
        request = await self._state_manager.get_approval_for_execution(execution_id)
        if request is None or not request.is_pending:
            return None
        return await self._finalize(
            request.request_id,
            ApprovalState.REJECTED,
            actor=CANCEL_ACTOR,
            comment=comment,
        )

    async def _finalize(
        self,
        request_id: str,
        state: ApprovalState,
        actor: str,
        comment: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        """Move a PENDING request to a terminal state.

        Returns:
            The resolved request, or None if it was no longer PENDING.
        """
        async with self._lock:
            request = await self._state_manager.get_approval(request_id)
            if request is None or not request.is_pending:
                return None
            request.state = state
            request.decided_by = actor
            request.comment = comment
            request.resolved_at = datetime.now(timezone.utc)
            await self._state_manager.save_approval(request)

        waiter = self._waiters.pop(request_id, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(request)

        self._logger.info(
            "approval_resolved",
            request_id=request_id,
            execution_id=request.execution_id,
            state=state.value,
            decided_by=actor,
        )
        await self._emit(request, EventType.APPROVAL_RESOLVED)
        self._pipeline_names.pop(request_id, None)
        return request

    # =========================================================================
    # Queries
    # =========================================================================

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        return await self._state_manager.get_approval(request_id)

    async def get_for_execution(self, execution_id: str) -> Optional[ApprovalRequest]:
        return await self._state_manager.get_approval_for_execution(execution_id)

    async def list_pending(self) -> list[ApprovalRequest]:
        return await self._state_manager.list_approvals(state=ApprovalState.PENDING)

    async def _emit(self, request: ApprovalRequest, event_type: EventType) -> None:
        await self._message_bus.emit(
            PipelineEvent(
                event_type=event_type,
                execution_id=request.execution_id,
                pipeline_name=self._pipeline_names.get(request.request_id, ""),
                commit_id=request.commit_id,
                stage_name=request.stage_name,
                action_name=request.action_name,
                payload={
                    "request_id": request.request_id,
                    "state": request.state.value,
                    "summary": request.summary,
                    "decided_by": request.decided_by,
                    "comment": request.comment,
                    "expires_at": request.expires_at.isoformat() if request.expires_at else None,
                },
            )
        )
