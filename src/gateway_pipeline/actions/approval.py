"""
gateway_pipeline.actions.approval - Manual Approval Action
============================================================

Holds the execution until a human approves or rejects the commit that was
just verified in the test environment.

    APPROVED  → SUCCEEDED (promotion moves to APPROVED)
    REJECTED  → ApprovalRejectedError
    EXPIRED   → ApprovalExpiredError
"""

from __future__ import annotations

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.enums import ActionKind, ApprovalState
from gateway_pipeline.core.exceptions import ApprovalExpiredError, ApprovalRejectedError
from gateway_pipeline.core.models import ActionResult
from gateway_pipeline.orchestration.approvals import ApprovalManager


class ApprovalGateAction(BaseAction):
    """Executor for APPROVAL actions."""

    kind = ActionKind.APPROVAL

    def __init__(self, approvals: ApprovalManager) -> None:
        super().__init__()
        self._approvals = approvals

    async def _execute(self, context: ActionContext) -> ActionResult:
        summary = context.action.additional_information or (
            f"Approve {context.execution.commit_id} for promotion"
        )
        request = await self._approvals.request(
            context.execution,
            stage_name=context.stage.name,
            action_name=context.action.name,
            summary=summary,
        )
        resolved = await self._approvals.wait(request.request_id)

        details = {
            "request_id": resolved.request_id,
            "decided_by": resolved.decided_by,
            "comment": resolved.comment,
        }
        if resolved.state == ApprovalState.REJECTED:
            raise ApprovalRejectedError(
                message=f"Rejected by {resolved.decided_by}",
                stage_name=context.stage.name,
                action_name=context.action.name,
                details=details,
            )
        if resolved.state == ApprovalState.EXPIRED:
            raise ApprovalExpiredError(
                message="Approval request expired without a decision",
                stage_name=context.stage.name,
                action_name=context.action.name,
                details=details,
            )

        return self._create_result(
            context,
            output={**details, "state": resolved.state.value},
        )
