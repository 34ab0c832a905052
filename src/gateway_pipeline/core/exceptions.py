"""
gateway_pipeline.core.exceptions - Custom Exception Hierarchy
===============================================================

Components raise and catch specific exception types that carry contextual
information instead of bare strings.

Exception Hierarchy:
    PipelineError (base)
        ├── ConfigurationError     - Invalid config, malformed YAML
        ├── TopologyError          - Invalid pipeline definition
        ├── TriggerError           - Event is not a tracked trigger source
        ├── ExecutionError         - Unknown execution / illegal lifecycle op
        ├── ArtifactError          - Single-writer and sealing violations
        ├── StateError             - Persistence, illegal promotion transition
        ├── MessageBusError        - Publish/subscribe failures
        ├── NotificationError      - Notification channel delivery failures
        ├── PolicyViolationError   - A gate refused to open
        ├── DecisionError          - Misuse of the approval decision API
        └── ActionError            - Failure of one pipeline action
                ├── SourceFetchError
                ├── BuildError
                ├── SmokeTestError
                ├── ApprovalRejectedError
                └── ApprovalExpiredError

Every ActionError subclass carries a `failure_kind`; the ErrorHandler uses it
to classify the failure and attach a recovery hint.

Usage:
    >>> from gateway_pipeline.core.exceptions import BuildError
    >>> raise BuildError(
    ...     message="Deployment rejected by backend",
    ...     stage_name="DeployToTest",
    ...     action_name="Build_and_Deploy",
    ...     details={"environment": "test"},
    ... )
"""

from __future__ import annotations

from typing import Any, Optional

from gateway_pipeline.core.enums import FailureKind


# =============================================================================
# Base Exception
# =============================================================================
# All pipeline exceptions inherit from this base class:
#
#   try:
#       await pipeline.decide(request)
#   except PipelineError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class PipelineError(Exception):
    """Base exception for all gateway pipeline errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code (UPPER_SNAKE_CASE).
        details: Arbitrary dict with additional debugging context.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception for structured logs and the error log.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration / Topology / Trigger Errors
# =============================================================================
# Raised before an execution exists. These fail fast and are never recorded
# on an execution.
# =============================================================================
class ConfigurationError(PipelineError):
    """Raised when pipeline configuration is invalid or unreadable."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class TopologyError(PipelineError):
    """Raised when a pipeline definition breaks a structural rule.

    Common Causes:
        - Duplicate stage or action names
        - An artifact consumed before any action produces it
        - An approval action that is not last in its stage
        - An action bound to a different environment than its stage

    Example:
        >>> raise TopologyError(
        ...     message="Artifact 'AppCode' has two producers",
        ...     error_code="DUPLICATE_PRODUCER",
        ...     details={"artifact": "AppCode"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_TOPOLOGY",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class TriggerError(PipelineError):
    """Raised when an event does not match any webhook-triggered source."""

    def __init__(
        self,
        message: str,
        repository: str,
        branch: str,
        error_code: str = "UNTRACKED_SOURCE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["repository"] = repository
        enriched_details["branch"] = branch

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.repository = repository
        self.branch = branch


# =============================================================================
# Execution Error
# =============================================================================
# Lifecycle misuse of the orchestrator: unknown execution ids, re-running a
# non-terminal execution, cancelling a finished one.
# =============================================================================
class ExecutionError(PipelineError):
    """Raised when an execution-level operation cannot be performed.

    Attributes:
        execution_id: ID of the execution the operation targeted.
    """

    def __init__(
        self,
        message: str,
        execution_id: str,
        error_code: str = "EXECUTION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["execution_id"] = execution_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.execution_id = execution_id


class ArtifactError(PipelineError):
    """Raised on artifact ownership or sealing violations.

    Error codes:
        ARTIFACT_NOT_FOUND, ARTIFACT_NOT_DECLARED, ARTIFACT_WRONG_PRODUCER,
        ARTIFACT_SEALED
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ARTIFACT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class StateError(PipelineError):
    """Raised when state persistence fails or a promotion transition is illegal."""

    def __init__(
        self,
        message: str,
        error_code: str = "STATE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class MessageBusError(PipelineError):
    """Raised when the message bus fails to publish or deliver events."""

    def __init__(
        self,
        message: str,
        error_code: str = "MESSAGE_BUS_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class NotificationError(PipelineError):
    """Raised when a notification channel cannot deliver a message.

    Notification is fire-and-forget from the pipeline's point of view: the
    notifier logs these and never lets them change an execution.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "NOTIFICATION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Policy Violation Error
# =============================================================================
# Raised by the PolicyEngine when a gate refuses to let a stage or a
# run-order group start.
# =============================================================================
class PolicyViolationError(PipelineError):
    """Raised when a gate policy denies a stage or run-order group.

    Attributes:
        policy_name: Name of the policy that was violated.
        violation_details: What rule was broken.

    Example:
        >>> raise PolicyViolationError(
        ...     message="Production stage requires an approved promotion",
        ...     policy_name="PromotionGatePolicy",
        ...     violation_details="promotion state is test_verified",
        ... )
    """

    def __init__(
        self,
        message: str,
        policy_name: str,
        violation_details: str = "",
        error_code: str = "POLICY_VIOLATION",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["policy_name"] = policy_name
        enriched_details["violation_details"] = violation_details

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.policy_name = policy_name
        self.violation_details = violation_details


class DecisionError(PipelineError):
    """Raised when a decision cannot be applied to an approval request.

    Error codes:
        APPROVAL_NOT_FOUND: No approval request exists for the execution.
        APPROVAL_ALREADY_RESOLVED: The request is terminal; nothing changed.
    """

    def __init__(
        self,
        message: str,
        execution_id: str,
        error_code: str = "DECISION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["execution_id"] = execution_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.execution_id = execution_id


# =============================================================================
# Action Errors
# =============================================================================
# Raised from inside an action executor. BaseAction converts them into a
# FAILED ActionResult carrying `failure_kind`; nothing above the executor
# ever sees the exception itself.
# =============================================================================
class ActionError(PipelineError):
    """Raised when a single pipeline action fails.

    Attributes:
        stage_name: Stage the action belongs to (if known).
        action_name: Name of the failing action (if known).
        failure_kind: Classification used by the ErrorHandler.

    Example:
        >>> raise ActionError(
        ...     message="Variable #{SourceAppCode.CommitId} is not defined",
        ...     action_name="Build_and_Deploy",
        ...     error_code="VARIABLE_UNRESOLVED",
        ... )
    """

    failure_kind: FailureKind = FailureKind.INTERNAL

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "ACTION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if stage_name:
            enriched_details["stage_name"] = stage_name
        if action_name:
            enriched_details["action_name"] = action_name

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.stage_name = stage_name
        self.action_name = action_name


class SourceFetchError(ActionError):
    """The version-control source could not be reached or read."""

    failure_kind = FailureKind.SOURCE_FETCH

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "SOURCE_FETCH_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, stage_name, action_name, error_code, details)


class BuildError(ActionError):
    """The build or the deployment to an environment failed."""

    failure_kind = FailureKind.BUILD

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "BUILD_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, stage_name, action_name, error_code, details)


class SmokeTestError(ActionError):
    """At least one smoke check failed, or there was nothing to check."""

    failure_kind = FailureKind.SMOKE_TEST

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "SMOKE_TEST_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, stage_name, action_name, error_code, details)


class ApprovalRejectedError(ActionError):
    """A reviewer rejected the change."""

    failure_kind = FailureKind.APPROVAL_REJECTED

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "APPROVAL_REJECTED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, stage_name, action_name, error_code, details)


class ApprovalExpiredError(ActionError):
    """Nobody decided before the approval request expired."""

    failure_kind = FailureKind.APPROVAL_EXPIRED

    def __init__(
        self,
        message: str,
        stage_name: Optional[str] = None,
        action_name: Optional[str] = None,
        error_code: str = "APPROVAL_EXPIRED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, stage_name, action_name, error_code, details)
