"""
gateway_pipeline.actions - Action Executors
=============================================

One executor per action kind:

    SOURCE            → SourceAction
    BUILD_AND_DEPLOY  → BuildAndDeployAction
    SMOKE_TEST        → SmokeTestAction
    APPROVAL          → ApprovalGateAction
"""

from gateway_pipeline.actions.approval import ApprovalGateAction
from gateway_pipeline.actions.base import ActionContext, BaseAction, resolve_environment_variables
from gateway_pipeline.actions.build_deploy import BuildAndDeployAction
from gateway_pipeline.actions.smoke_test import SmokeTestAction
from gateway_pipeline.actions.source import SourceAction

__all__ = [
    "ActionContext",
    "ApprovalGateAction",
    "BaseAction",
    "BuildAndDeployAction",
    "SmokeTestAction",
    "SourceAction",
    "resolve_environment_variables",
]
