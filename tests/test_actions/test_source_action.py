"""
Tests for gateway_pipeline.actions.source - SourceAction
==========================================================

The webhook-triggered source pins the pushed commit; the blueprints source
takes whatever is at the head of its branch.
"""

from gateway_pipeline.actions.source import SourceAction
from gateway_pipeline.core.enums import ActionKind, ExecutionStatus, FailureKind
from gateway_pipeline.core.models import ActionDefinition
from gateway_pipeline.core.state import PipelineExecution


class TestSourceAction:

    async def test_webhook_source_fetches_pushed_commit(
        self, source_provider, make_context, artifact_store, execution
    ) -> None:
        source_provider.push("illiad-gateway", "master", "newer999", files={"a.py": ""})
        result = await SourceAction(source_provider).execute(make_context("Source", "SourceAppCode"))

        assert result.status == ExecutionStatus.SUCCEEDED
        assert source_provider.fetch_calls[-1] == ("illiad-gateway", "master", "abc123")
        assert result.output["revision"] == "abc123"
        assert result.output["artifacts"] == {"AppCode": 1}
        assert result.variables["CommitId"] == "abc123"
        assert result.variables["CommitMessage"] == "Add web endpoint"

        artifact = await artifact_store.get(execution.execution_id, "AppCode")
        assert artifact.producer == "Source/SourceAppCode"
        assert artifact.files == {"src/web.py": "def handler(event, context): ..."}
        assert artifact.metadata["repository"] == "illiad-gateway"

    async def test_untriggered_source_fetches_head(self, source_provider, make_context) -> None:
        source_provider.push("usurper-blueprints", "master", "bp-002", files={"x": "y"})
        result = await SourceAction(source_provider).execute(make_context("Source", "SourceInfraCode"))

        assert source_provider.fetch_calls[-1] == ("usurper-blueprints", "master", None)
        assert result.output["revision"] == "bp-002"
        assert result.variables["RepositoryName"] == "usurper-blueprints"

    async def test_unreachable_repository(self, source_provider, make_context) -> None:
        source_provider.set_unreachable("illiad-gateway")
        result = await SourceAction(source_provider).execute(make_context("Source", "SourceAppCode"))

        assert result.status == ExecutionStatus.FAILED
        assert result.failure_kind == FailureKind.SOURCE_FETCH
        assert result.error_code == "SOURCE_UNREACHABLE"

    async def test_unknown_commit(self, source_provider, make_context, definition, other_event) -> None:
        execution = PipelineExecution.create(definition, other_event)
        result = await SourceAction(source_provider).execute(
            make_context("Source", "SourceAppCode", for_execution=execution)
        )
        assert result.error_code == "REVISION_NOT_FOUND"

    async def test_misconfigured_action(self, source_provider, make_context) -> None:
        context = make_context("Source", "SourceAppCode")
        context.action = ActionDefinition(name="Broken", kind=ActionKind.SOURCE)

        result = await SourceAction(source_provider).execute(context)

        assert result.error_code == "ACTION_VALIDATION_FAILED"
        assert result.output["error_details"]["problems"] == [
            "no repository",
            "no branch",
            "no output artifact",
        ]
