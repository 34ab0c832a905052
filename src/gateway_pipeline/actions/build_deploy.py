"""
gateway_pipeline.actions.build_deploy - Build-and-Deploy Action
=================================================================

Builds the service from its input artifacts and deploys it to the action's
environment under the stage's role.

    1. Read every input artifact (this seals them)
    2. Take the version tag from the VERSION environment variable
       (normally "#{SourceAppCode.CommitId}"), falling back to the commit id
    3. Render the service manifest for the environment
    4. DeployBackend.deploy(...) → endpoint

Output:
    environment, version, endpoint, role, stack_name, artifacts
"""

from __future__ import annotations

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.config import ServiceConfig
from gateway_pipeline.core.enums import ActionKind
from gateway_pipeline.core.exceptions import BuildError, PipelineError
from gateway_pipeline.core.models import ActionResult, DeployRequest
from gateway_pipeline.integrations.deploy.base import DeployBackend
from gateway_pipeline.service import build_service_manifest


class BuildAndDeployAction(BaseAction):
    """Executor for BUILD_AND_DEPLOY actions.

    Args:
        backend: Deploy backend doing the actual provisioning.
        service_config: Service settings used to render the manifest.
    """

    kind = ActionKind.BUILD_AND_DEPLOY

    def __init__(self, backend: DeployBackend, service_config: ServiceConfig) -> None:
        super().__init__()
        self._backend = backend
        self._service_config = service_config

    def _validate(self, context: ActionContext) -> list[str]:
        problems = super()._validate(context)
        if context.action.environment is None:
            problems.append("no target environment")
        if not context.action.inputs:
            problems.append("no input artifacts")
        return problems

    async def _execute(self, context: ActionContext) -> ActionResult:
        action = context.action
        environment = action.environment

        artifacts = {}
        for name in action.inputs:
            artifact = await context.artifact_store.read(
                context.execution_id, name, consumer=context.qualified_name
            )
            artifacts[name] = artifact.version

        version = context.environment_variables.get("VERSION") or context.execution.commit_id
        manifest = build_service_manifest(
            self._service_config,
            environment,
            version,
            extra_tags={"Pipeline": context.execution.pipeline_name},
        )
        request = DeployRequest(
            environment=environment,
            version=version,
            role=context.stage.role,
            manifest=manifest.model_dump(mode="json"),
            artifacts=artifacts,
            variables=context.environment_variables,
        )

        try:
            outcome = await self._backend.deploy(request)
        except BuildError:
            raise
        except PipelineError as e:
            raise BuildError(
                message=e.message,
                stage_name=context.stage.name,
                action_name=action.name,
                details=e.details,
            ) from e

        return self._create_result(
            context,
            output={
                "environment": environment.value,
                "version": version,
                "endpoint": outcome.endpoint,
                "role": context.stage.role,
                "stack_name": manifest.stack_name,
                "deployment_id": outcome.deployment_id,
                "artifacts": artifacts,
            },
        )

    async def close(self) -> None:
        await self._backend.close()
