"""
gateway_pipeline.orchestration - Orchestration Layer
======================================================

Everything that decides what runs when, and records what happened.

Components:
    - MessageBus:           Pipeline event stream (pub/sub)
    - StateManager:         Execution and approval persistence
    - ErrorHandler:         Failure classification and recovery hints
    - PolicyEngine:         Gates checked before every run-order group
    - ApprovalManager:      Manual approval requests and decisions
    - ActionCoordinator:    Action kind → executor dispatch
    - PipelineNotifier:     Event → notification bridge
    - PipelineOrchestrator: Stage, group and action sequencing
"""

from gateway_pipeline.orchestration.action_coordinator import ActionCoordinator
from gateway_pipeline.orchestration.approvals import ApprovalManager
from gateway_pipeline.orchestration.error_handler import (
    ErrorHandler,
    failure_kind_for,
    recovery_hint_for,
)
from gateway_pipeline.orchestration.message_bus import InMemoryMessageBus, MessageBus
from gateway_pipeline.orchestration.notifier import PipelineNotifier
from gateway_pipeline.orchestration.orchestrator import PipelineOrchestrator
from gateway_pipeline.orchestration.policy_engine import (
    ArtifactsAvailablePolicy,
    Policy,
    PolicyEngine,
    PolicyResult,
    PriorStagesSucceededPolicy,
    PromotionGatePolicy,
    PromotionOrderPolicy,
    RunOrderPolicy,
    create_default_policy_engine,
)
from gateway_pipeline.orchestration.state_manager import (
    InMemoryStateManager,
    JsonFileStateManager,
    StateManager,
)

__all__ = [
    # Messaging
    "MessageBus",
    "InMemoryMessageBus",
    "PipelineNotifier",
    # Persistence
    "StateManager",
    "InMemoryStateManager",
    "JsonFileStateManager",
    # Failures
    "ErrorHandler",
    "failure_kind_for",
    "recovery_hint_for",
    # Policies
    "Policy",
    "PolicyEngine",
    "PolicyResult",
    "PriorStagesSucceededPolicy",
    "RunOrderPolicy",
    "PromotionGatePolicy",
    "PromotionOrderPolicy",
    "ArtifactsAvailablePolicy",
    "create_default_policy_engine",
    # Execution
    "ApprovalManager",
    "ActionCoordinator",
    "PipelineOrchestrator",
]
