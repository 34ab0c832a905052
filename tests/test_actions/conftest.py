"""
Fixtures shared by the action executor tests.
"""

from __future__ import annotations

from typing import Optional

import pytest

from gateway_pipeline.actions.base import ActionContext
from gateway_pipeline.core.models import PipelineDefinition, SourceEvent
from gateway_pipeline.core.state import PipelineExecution
from gateway_pipeline.topology import build_default_pipeline


@pytest.fixture
def definition(config) -> PipelineDefinition:
    return build_default_pipeline(config)


@pytest.fixture
def execution(definition, push_event) -> PipelineExecution:
    return PipelineExecution.create(definition, push_event)


@pytest.fixture
def make_context(definition, execution, artifact_store):
    """Build an ActionContext for one action of the default pipeline.

    Usage:
        context = make_context("DeployToTest", "SmokeTests")
    """

    def _make(
        stage_name: str,
        action_name: str,
        for_execution: Optional[PipelineExecution] = None,
    ) -> ActionContext:
        stage = definition.get_stage(stage_name)
        return ActionContext(
            execution=for_execution or execution,
            stage=stage,
            action=stage.get_action(action_name),
            artifact_store=artifact_store,
        )

    return _make


@pytest.fixture
def other_event() -> SourceEvent:
    return SourceEvent(repository="illiad-gateway", branch="master", commit_id="def456")
