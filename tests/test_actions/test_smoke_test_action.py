"""
Tests for gateway_pipeline.actions.smoke_test - SmokeTestAction
=================================================================
"""

import pytest

from gateway_pipeline.actions.smoke_test import SmokeTestAction
from gateway_pipeline.core.enums import Environment, ExecutionStatus, FailureKind
from gateway_pipeline.core.state import EnvironmentDeployment
from gateway_pipeline.infrastructure.artifact_store import Artifact


async def _seed_app_code(artifact_store, execution, revision: str) -> None:
    producer = "Source/SourceAppCode"
    await artifact_store.declare(execution.execution_id, "AppCode", producer)
    await artifact_store.put(
        Artifact(
            execution_id=execution.execution_id,
            name="AppCode",
            producer=producer,
            revision=revision,
        )
    )


@pytest.fixture
async def deployed(execution, artifact_store):
    await _seed_app_code(artifact_store, execution, "abc123")
    execution.deployments["test"] = EnvironmentDeployment(
        environment=Environment.TEST,
        version="abc123",
        endpoint="https://illiad-gateway-test.example.com",
    )
    return execution


class TestSmokeTestAction:

    async def test_passing_suite(self, deployed, make_context, smoke_runner) -> None:
        result = await SmokeTestAction(smoke_runner).execute(make_context("DeployToTest", "SmokeTests"))

        assert result.status == ExecutionStatus.SUCCEEDED
        assert result.output["version"] == "abc123"
        assert result.output["checks"][0]["path"] == "/test"
        assert smoke_runner.runs == [(Environment.TEST, "https://illiad-gateway-test.example.com")]

    async def test_failing_check(self, deployed, make_context, smoke_runner) -> None:
        smoke_runner.fail_environment(Environment.TEST)
        result = await SmokeTestAction(smoke_runner).execute(make_context("DeployToTest", "SmokeTests"))

        assert result.status == ExecutionStatus.FAILED
        assert result.failure_kind == FailureKind.SMOKE_TEST
        assert result.error_message == "Smoke tests failed on test: /test (expected 200, got 502)"
        assert result.output["error_details"]["endpoint"] == "https://illiad-gateway-test.example.com"

    async def test_other_environment_failure_does_not_leak(
        self, deployed, make_context, smoke_runner
    ) -> None:
        smoke_runner.fail_environment(Environment.PROD)
        result = await SmokeTestAction(smoke_runner).execute(make_context("DeployToTest", "SmokeTests"))
        assert result.succeeded

    async def test_nothing_deployed(self, make_context, smoke_runner) -> None:
        result = await SmokeTestAction(smoke_runner).execute(make_context("DeployToProd", "SmokeTests"))
        assert result.failure_kind == FailureKind.SMOKE_TEST
        assert result.error_code == "NO_ENDPOINT"
        assert smoke_runner.runs == []

    async def test_input_artifact_is_sealed(
        self, deployed, make_context, smoke_runner, artifact_store
    ) -> None:
        await SmokeTestAction(smoke_runner).execute(make_context("DeployToTest", "SmokeTests"))
        assert (await artifact_store.get(deployed.execution_id, "AppCode")).sealed

    async def test_version_mismatch(self, execution, artifact_store, make_context, smoke_runner) -> None:
        await _seed_app_code(artifact_store, execution, "def456")
        execution.deployments["test"] = EnvironmentDeployment(
            environment=Environment.TEST,
            version="abc123",
            endpoint="https://illiad-gateway-test.example.com",
        )

        result = await SmokeTestAction(smoke_runner).execute(make_context("DeployToTest", "SmokeTests"))

        assert result.error_code == "VERSION_MISMATCH"
        assert result.output["error_details"]["revision"] == "def456"
        assert smoke_runner.runs == []
