"""
Tests for gateway_pipeline.core.messages
==========================================

PipelineEvent routing and description.
"""

from gateway_pipeline.core.enums import EventType
from gateway_pipeline.core.messages import (
    APPROVALS_CHANNEL,
    EVENTS_CHANNEL,
    PipelineEvent,
    execution_channel,
)


def _event(event_type: EventType, **kwargs) -> PipelineEvent:
    return PipelineEvent(
        event_type=event_type,
        execution_id="exec-1",
        pipeline_name="illiad-gateway-pipeline",
        **kwargs,
    )


class TestChannels:

    def test_execution_channel_name(self) -> None:
        assert execution_channel("exec-1") == "pipeline:execution:exec-1"

    def test_ordinary_event_channels(self) -> None:
        assert _event(EventType.STAGE_STARTED).channels() == [
            EVENTS_CHANNEL,
            "pipeline:execution:exec-1",
        ]

    def test_approval_events_also_go_to_approvals(self) -> None:
        assert APPROVALS_CHANNEL in _event(EventType.APPROVAL_REQUESTED).channels()
        assert APPROVALS_CHANNEL in _event(EventType.APPROVAL_RESOLVED).channels()


class TestDescribe:

    def test_includes_location_commit_and_reason(self) -> None:
        text = _event(
            EventType.STAGE_FAILED,
            stage_name="DeployToTest",
            action_name="SmokeTests",
            commit_id="abc123",
            payload={"reason": "GET /test returned 502"},
        ).describe()
        assert text == (
            "[illiad-gateway-pipeline] stage failed DeployToTest/SmokeTests "
            "@ abc123 - GET /test returned 502"
        )

    def test_minimal(self) -> None:
        assert _event(EventType.EXECUTION_STARTED).describe() == (
            "[illiad-gateway-pipeline] execution started"
        )

    def test_event_ids_are_unique(self) -> None:
        assert _event(EventType.EXECUTION_STARTED).event_id != _event(EventType.EXECUTION_STARTED).event_id
