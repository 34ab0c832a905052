"""
gateway_pipeline.orchestration.error_handler - Failure Classification
=======================================================================

Every halt of an execution goes through the ErrorHandler, which:

    1. Classifies the failure (FailureKind)
    2. Attaches a recovery hint for operators (RecoveryHint)
    3. Records it on the execution (failure + error_log)
    4. Keeps a process-wide failure log for inspection

The pipeline never retries an action on its own. Recovery is either a new
push (RETRIGGER) or an operator-initiated re-run (OPERATOR_RERUN); deliberate
halts such as a rejection or a cancellation need nothing (NONE).

    Failure kind            → Recovery hint
    ─────────────────────────────────────────
    SOURCE_FETCH            → RETRIGGER
    BUILD                   → OPERATOR_RERUN
    SMOKE_TEST              → OPERATOR_RERUN
    POLICY                  → OPERATOR_RERUN
    INTERNAL                → OPERATOR_RERUN
    APPROVAL_REJECTED       → NONE
    APPROVAL_EXPIRED        → NONE
    CANCELLED               → NONE
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from gateway_pipeline.core.enums import FailureKind, RecoveryHint
from gateway_pipeline.core.exceptions import ActionError, PipelineError
from gateway_pipeline.core.state import FailureRecord, PipelineExecution


logger = structlog.get_logger()


RECOVERY_HINTS: dict[FailureKind, RecoveryHint] = {
    FailureKind.SOURCE_FETCH: RecoveryHint.RETRIGGER,
    FailureKind.BUILD: RecoveryHint.OPERATOR_RERUN,
    FailureKind.SMOKE_TEST: RecoveryHint.OPERATOR_RERUN,
    FailureKind.POLICY: RecoveryHint.OPERATOR_RERUN,
    FailureKind.INTERNAL: RecoveryHint.OPERATOR_RERUN,
    FailureKind.APPROVAL_REJECTED: RecoveryHint.NONE,
    FailureKind.APPROVAL_EXPIRED: RecoveryHint.NONE,
    FailureKind.CANCELLED: RecoveryHint.NONE,
}


def recovery_hint_for(kind: FailureKind) -> RecoveryHint:
    return RECOVERY_HINTS.get(kind, RecoveryHint.OPERATOR_RERUN)


def failure_kind_for(error: BaseException) -> FailureKind:
    """Map an exception to a failure kind."""
    if isinstance(error, ActionError):
        return error.failure_kind
    return FailureKind.INTERNAL


# =============================================================================
# Error Handler
# =============================================================================
class ErrorHandler:
    """Classifies and records execution failures.

    Attributes:
        _failure_log: Every failure recorded since construction, newest last.
            Each entry holds the execution id, commit and FailureRecord dump.

    Example:
        >>> handler = ErrorHandler()
        >>> record = handler.record_failure(
        ...     execution,
        ...     kind=FailureKind.SMOKE_TEST,
        ...     reason="GET /test returned 502",
        ...     stage_name="DeployToTest",
        ...     action_name="SmokeTests",
        ... )
        >>> record.hint
        <RecoveryHint.OPERATOR_RERUN: 'operator_rerun'>
    """

    def __init__(self) -> None:
        self._failure_log: list[dict[str, Any]] = []
        self._logger = logger.bind(component="error_handler")

    @property
    def failure_count(self) -> int:
        return len(self._failure_log)

    def record_failure(
        self,
        execution: PipelineExecution,
        kind: FailureKind,
        reason: str,
        error_code: Optional[str] = None,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
    ) -> FailureRecord:
        """Attach a classified failure to an execution.

        The first failure recorded on an execution is the one reported as
        its cause; later records (e.g. skipped work) only go to the error log.

        Returns:
            The FailureRecord that was built.
        """
        record = FailureRecord(
            kind=kind,
            hint=recovery_hint_for(kind),
            reason=reason,
            error_code=error_code,
            stage_name=stage_name,
            action_name=action_name,
        )
        if execution.failure is None:
            execution.failure = record
        entry = record.model_dump(mode="json")
        execution.error_log.append(entry)
        self._failure_log.append(
            {
                "execution_id": execution.execution_id,
                "commit_id": execution.commit_id,
                **entry,
            }
        )

        log = self._logger.info if record.hint == RecoveryHint.NONE else self._logger.error
        log(
            "execution_failure_recorded",
            execution_id=execution.execution_id,
            commit_id=execution.commit_id,
            failure_kind=kind.value,
            recovery_hint=record.hint.value,
            stage=stage_name,
            action=action_name,
            reason=reason,
        )
        return record

    def record_exception(
        self,
        execution: PipelineExecution,
        error: BaseException,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
    ) -> FailureRecord:
        """Record an exception that escaped an action or the orchestrator."""
        error_code = error.error_code if isinstance(error, PipelineError) else None
        message = error.message if isinstance(error, PipelineError) else str(error)
        return self.record_failure(
            execution,
            kind=failure_kind_for(error),
            reason=message or type(error).__name__,
            error_code=error_code,
            stage_name=stage_name,
            action_name=action_name,
        )

    def get_failure_log(self, execution_id: Optional[str] = None) -> list[dict[str, Any]]:
        """Copy of the failure log, optionally for one execution."""
        return [
            dict(entry)
            for entry in self._failure_log
            if execution_id is None or entry["execution_id"] == execution_id
        ]
