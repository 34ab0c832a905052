"""
gateway_pipeline.core - Foundation Layer
==========================================

Plain data structures and configuration every other package builds on:

    - config:      PipelineConfig and its sections, YAML loading
    - enums:       Action kinds, statuses, promotion states, event types
    - models:      Pipeline definition, source events, action results
    - state:       Execution and approval run-time records
    - promotion:   The environment promotion state machine
    - messages:    Pipeline events published on the message bus
    - exceptions:  Structured exception hierarchy
    - logging:     structlog configuration

Dependency Rule:
    core/ depends on nothing else in the gateway_pipeline package.
"""

from gateway_pipeline.core.config import PipelineConfig, get_default_config, load_config
from gateway_pipeline.core.enums import (
    ActionKind,
    ApprovalState,
    Decision,
    Environment,
    EventType,
    ExecutionStatus,
    FailureKind,
    PromotionState,
    RecoveryHint,
    SourceTrigger,
)
from gateway_pipeline.core.exceptions import (
    ActionError,
    ArtifactError,
    ConfigurationError,
    DecisionError,
    ExecutionError,
    PipelineError,
    PolicyViolationError,
    StateError,
    TopologyError,
    TriggerError,
)
from gateway_pipeline.core.models import (
    ActionDefinition,
    ActionResult,
    DecisionRequest,
    PipelineDefinition,
    SourceEvent,
    StageDefinition,
)
from gateway_pipeline.core.state import ApprovalRequest, PipelineExecution

__all__ = [
    # Config
    "PipelineConfig",
    "load_config",
    "get_default_config",
    # Enums
    "ActionKind",
    "ApprovalState",
    "Decision",
    "Environment",
    "EventType",
    "ExecutionStatus",
    "FailureKind",
    "PromotionState",
    "RecoveryHint",
    "SourceTrigger",
    # Models
    "ActionDefinition",
    "ActionResult",
    "DecisionRequest",
    "PipelineDefinition",
    "SourceEvent",
    "StageDefinition",
    "ApprovalRequest",
    "PipelineExecution",
    # Exceptions
    "PipelineError",
    "ActionError",
    "ArtifactError",
    "ConfigurationError",
    "DecisionError",
    "ExecutionError",
    "PolicyViolationError",
    "StateError",
    "TopologyError",
    "TriggerError",
]
