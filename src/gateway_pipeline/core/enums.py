"""
gateway_pipeline.core.enums - Type-Safe Enumerations
======================================================

This module defines all enumeration types used throughout the pipeline.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: ActionKind.SOURCE == "source"
    - They have human-readable representations

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  PIPELINE TOPOLOGY                                              │
    │    ActionKind: What an action does (source, deploy, test, gate) │
    │    SourceTrigger: Whether a source action starts executions     │
    │    Environment: The two deployment targets (TEST, PROD)         │
    ├─────────────────────────────────────────────────────────────────┤
    │  EXECUTION TRACKING                                             │
    │    ExecutionStatus: Lifecycle of executions, stages, actions    │
    │    PromotionState: How far one commit has been promoted         │
    │    ApprovalState / Decision: The human gate                     │
    ├─────────────────────────────────────────────────────────────────┤
    │  FAILURES & EVENTS                                              │
    │    FailureKind / RecoveryHint: Error taxonomy                   │
    │    EventType: What the message bus carries                      │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Action Kind Enumeration
# =============================================================================
# Each kind maps to one executor in actions/:
#
#   SOURCE           → actions/source.py        (fetches a repository revision)
#   BUILD_AND_DEPLOY → actions/build_deploy.py  (deploys to one environment)
#   SMOKE_TEST       → actions/smoke_test.py    (black-box checks on an endpoint)
#   APPROVAL         → actions/approval.py      (suspends for a human decision)
# =============================================================================
class ActionKind(str, Enum):
    """The kind of work a pipeline action performs.

    Usage:
        >>> ActionKind.BUILD_AND_DEPLOY.value  # "build_and_deploy"
        >>> ActionKind.SMOKE_TEST == "smoke_test"  # True
    """

    SOURCE = "source"                       # Fetch code, produce an artifact
    BUILD_AND_DEPLOY = "build_and_deploy"   # Build and deploy to an environment
    SMOKE_TEST = "smoke_test"               # Automated checks against a deployment
    APPROVAL = "approval"                   # Manual approval gate


# =============================================================================
# Execution Status Enumeration
# =============================================================================
# Shared by executions, stages and actions:
#
#   PENDING ──→ IN_PROGRESS ──→ SUCCEEDED
#      │              │
#      │              ├──→ FAILED
#      │              └──→ CANCELLED
#      └──→ SKIPPED  (never started because something earlier failed)
# =============================================================================
class ExecutionStatus(str, Enum):
    """Lifecycle status of an execution, a stage or a single action."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        """True once no further transition is possible."""
        return self in (
            ExecutionStatus.SUCCEEDED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
            ExecutionStatus.SKIPPED,
        )


# =============================================================================
# Approval Enumerations
# =============================================================================
class ApprovalState(str, Enum):
    """State of a manual approval request.

    A request starts PENDING and is resolved exactly once; every other
    state is terminal.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Decision(str, Enum):
    """A reviewer's decision submitted through the decision API."""

    APPROVE = "approve"
    REJECT = "reject"


# =============================================================================
# Environment Enumeration
# =============================================================================
class Environment(str, Enum):
    """Deployment targets a stage can be bound to."""

    TEST = "test"
    PROD = "prod"


# =============================================================================
# Promotion State Enumeration
# =============================================================================
# Tracks a single commit's journey. Transitions are strictly linear and
# live in core/promotion.py:
#
#   NOT_DEPLOYED → TEST_DEPLOYED → TEST_VERIFIED → APPROVED
#                → PROD_DEPLOYED → PROD_VERIFIED
# =============================================================================
class PromotionState(str, Enum):
    """How far one commit has progressed through the environments."""

    NOT_DEPLOYED = "not_deployed"
    TEST_DEPLOYED = "test_deployed"
    TEST_VERIFIED = "test_verified"
    APPROVED = "approved"
    PROD_DEPLOYED = "prod_deployed"
    PROD_VERIFIED = "prod_verified"


class SourceTrigger(str, Enum):
    """Whether a push to a source action's repository starts an execution."""

    WEBHOOK = "webhook"     # Push events start a new execution
    NONE = "none"           # Fetched at the latest revision, never triggers


# =============================================================================
# Failure Taxonomy
# =============================================================================
class FailureKind(str, Enum):
    """Classification of why an execution halted."""

    SOURCE_FETCH = "source_fetch"
    BUILD = "build"
    SMOKE_TEST = "smoke_test"
    APPROVAL_REJECTED = "approval_rejected"
    APPROVAL_EXPIRED = "approval_expired"
    POLICY = "policy"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class RecoveryHint(str, Enum):
    """What an operator should do about a failed execution."""

    RETRIGGER = "retrigger"             # Transient: push again or re-run
    OPERATOR_RERUN = "operator_rerun"   # Fix the cause, then re-run
    NONE = "none"                       # Deliberate halt, nothing to recover


# =============================================================================
# Event Type Enumeration
# =============================================================================
# Events published on the message bus at execution, stage and action
# boundaries. The notifier subscribes to these.
# =============================================================================
class EventType(str, Enum):
    """Types of events published by the orchestrator."""

    # --- Execution lifecycle ---
    EXECUTION_STARTED = "execution_started"
    EXECUTION_SUCCEEDED = "execution_succeeded"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"

    # --- Stage lifecycle ---
    STAGE_STARTED = "stage_started"
    STAGE_SUCCEEDED = "stage_succeeded"
    STAGE_FAILED = "stage_failed"

    # --- Action lifecycle ---
    ACTION_STARTED = "action_started"
    ACTION_SUCCEEDED = "action_succeeded"
    ACTION_FAILED = "action_failed"

    # --- Gate & promotion ---
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_RESOLVED = "approval_resolved"
    PROMOTION_ADVANCED = "promotion_advanced"
