"""
gateway_pipeline.actions.source - Source Action
=================================================

Fetches one repository revision and publishes it as an artifact.

    Webhook-triggered source   → fetched at the pushed commit
    Non-triggering source      → fetched at the branch head

Exported variables (referenced as "#{<ActionName>.<Variable>}"):
    CommitId, BranchName, RepositoryName, CommitMessage
"""

from __future__ import annotations

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.enums import ActionKind, SourceTrigger
from gateway_pipeline.core.models import ActionResult
from gateway_pipeline.infrastructure.artifact_store import Artifact
from gateway_pipeline.integrations.source.base import SourceProvider


class SourceAction(BaseAction):
    """Executor for SOURCE actions.

    Args:
        provider: Version-control host to fetch from.
    """

    kind = ActionKind.SOURCE

    def __init__(self, provider: SourceProvider) -> None:
        super().__init__()
        self._provider = provider

    def _validate(self, context: ActionContext) -> list[str]:
        problems = super()._validate(context)
        action = context.action
        if not action.repository:
            problems.append("no repository")
        if not action.branch:
            problems.append("no branch")
        if not action.outputs:
            problems.append("no output artifact")
        return problems

    async def _execute(self, context: ActionContext) -> ActionResult:
        action = context.action
        revision = (
            context.execution.commit_id
            if action.trigger == SourceTrigger.WEBHOOK
            else None
        )
        snapshot = await self._provider.fetch(action.repository, action.branch, revision)

        written = {}
        for name in action.outputs:
            await context.artifact_store.declare(
                context.execution_id, name, producer=context.qualified_name
            )
            artifact = await context.artifact_store.put(
                Artifact(
                    execution_id=context.execution_id,
                    name=name,
                    producer=context.qualified_name,
                    revision=snapshot.revision,
                    files=snapshot.files,
                    metadata={
                        "repository": snapshot.repository,
                        "branch": snapshot.branch,
                        "message": snapshot.message,
                    },
                )
            )
            written[name] = artifact.version

        return self._create_result(
            context,
            output={
                "repository": snapshot.repository,
                "branch": snapshot.branch,
                "revision": snapshot.revision,
                "artifacts": written,
                "file_count": len(snapshot.files),
            },
            variables={
                "CommitId": snapshot.revision,
                "BranchName": snapshot.branch,
                "RepositoryName": snapshot.repository,
                "CommitMessage": snapshot.message or "",
            },
        )

    async def close(self) -> None:
        await self._provider.close()
