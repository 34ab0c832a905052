"""
gateway_pipeline.actions.smoke_test - Smoke-Test Action
=========================================================

Runs the fixed smoke-test suite against the endpoint this execution
deployed to the action's environment. No recorded endpoint means there is
nothing to test, which is a failure, not a pass.

Input artifacts are read before the suite runs; an artifact whose revision
differs from the deployed version means the endpoint is not running the code
under test.
"""

from __future__ import annotations

from gateway_pipeline.actions.base import ActionContext, BaseAction
from gateway_pipeline.core.enums import ActionKind
from gateway_pipeline.core.exceptions import SmokeTestError
from gateway_pipeline.core.models import ActionResult
from gateway_pipeline.integrations.smoke.base import SmokeTestRunner


class SmokeTestAction(BaseAction):
    """Executor for SMOKE_TEST actions."""

    kind = ActionKind.SMOKE_TEST

    def __init__(self, runner: SmokeTestRunner) -> None:
        super().__init__()
        self._runner = runner

    def _validate(self, context: ActionContext) -> list[str]:
        problems = super()._validate(context)
        if context.action.environment is None:
            problems.append("no target environment")
        return problems

    async def _execute(self, context: ActionContext) -> ActionResult:
        environment = context.action.environment
        deployment = context.execution.deployment(environment)
        if deployment is None:
            raise SmokeTestError(
                message=f"No endpoint recorded for {environment.value}",
                stage_name=context.stage.name,
                action_name=context.action.name,
                error_code="NO_ENDPOINT",
                details={"environment": environment.value},
            )

        for name in context.action.inputs:
            artifact = await context.artifact_store.read(
                context.execution_id, name, consumer=context.qualified_name
            )
            if artifact.revision and artifact.revision != deployment.version:
                raise SmokeTestError(
                    message=(
                        f"{environment.value} runs {deployment.version}, "
                        f"but {name} is at {artifact.revision}"
                    ),
                    stage_name=context.stage.name,
                    action_name=context.action.name,
                    error_code="VERSION_MISMATCH",
                    details={
                        "artifact": name,
                        "revision": artifact.revision,
                        "version": deployment.version,
                    },
                )

        report = await self._runner.run(deployment.endpoint, environment)
        checks = [c.model_dump(mode="json") for c in report.checks]
        if not report.passed:
            failed = report.failed_checks
            summary = (
                ", ".join(f"{c.path} ({c.detail})" for c in failed)
                if failed
                else "no checks ran"
            )
            raise SmokeTestError(
                message=f"Smoke tests failed on {environment.value}: {summary}",
                stage_name=context.stage.name,
                action_name=context.action.name,
                details={"endpoint": deployment.endpoint, "checks": checks},
            )

        return self._create_result(
            context,
            output={
                "environment": environment.value,
                "endpoint": deployment.endpoint,
                "version": deployment.version,
                "checks": checks,
            },
        )

    async def close(self) -> None:
        await self._runner.close()
