"""
Tests for gateway_pipeline.actions.base
=========================================

What's Being Tested:
    - resolve_environment_variables: #{Action.Var} substitution
    - BaseAction.execute: the shared lifecycle
        * validation problems → FAILED result
        * ActionError → FAILED result with its failure kind
        * any other exception → FAILED INTERNAL result
        * counters and duration
"""

import pytest

from gateway_pipeline.actions.base import (
    ActionContext,
    BaseAction,
    resolve_environment_variables,
)
from gateway_pipeline.core.enums import ActionKind, ExecutionStatus, FailureKind
from gateway_pipeline.core.exceptions import ActionError, BuildError
from gateway_pipeline.core.models import ActionResult


# =============================================================================
# Helpers: minimal executors
# =============================================================================
class _EchoBuild(BaseAction):
    """Returns the resolved environment variables as output."""

    kind = ActionKind.BUILD_AND_DEPLOY

    async def _execute(self, context: ActionContext) -> ActionResult:
        return self._create_result(
            context,
            output=dict(context.environment_variables),
            variables={"Echoed": "yes"},
        )


class _FailingBuild(BaseAction):
    kind = ActionKind.BUILD_AND_DEPLOY

    async def _execute(self, context: ActionContext) -> ActionResult:
        raise BuildError("stack rollback", error_code="STACK_ROLLBACK", details={"stack": "x"})


class _CrashingBuild(BaseAction):
    kind = ActionKind.BUILD_AND_DEPLOY

    async def _execute(self, context: ActionContext) -> ActionResult:
        raise ZeroDivisionError("division by zero")


# =============================================================================
# Test: Variable resolution
# =============================================================================
class TestResolveEnvironmentVariables:

    def test_substitutes_reference(self) -> None:
        resolved = resolve_environment_variables(
            {"VERSION": "#{SourceAppCode.CommitId}", "STAGE": "test"},
            {"SourceAppCode.CommitId": "abc123"},
        )
        assert resolved == {"VERSION": "abc123", "STAGE": "test"}

    def test_substitutes_inside_text(self) -> None:
        resolved = resolve_environment_variables(
            {"TAG": "release-#{SourceAppCode.CommitId}-#{SourceAppCode.BranchName}"},
            {"SourceAppCode.CommitId": "abc123", "SourceAppCode.BranchName": "master"},
        )
        assert resolved["TAG"] == "release-abc123-master"

    def test_unknown_reference_raises(self) -> None:
        with pytest.raises(ActionError) as exc_info:
            resolve_environment_variables(
                {"VERSION": "#{SourceAppCode.CommitId}"}, {}, action_name="Build_and_Deploy"
            )
        assert exc_info.value.error_code == "VARIABLE_UNRESOLVED"
        assert exc_info.value.details["reference"] == "SourceAppCode.CommitId"


# =============================================================================
# Test: Lifecycle
# =============================================================================
class TestBaseActionExecute:

    async def test_success_resolves_variables_first(self, make_context, execution) -> None:
        execution.variables["SourceAppCode.CommitId"] = "abc123"
        executor = _EchoBuild()

        result = await executor.execute(make_context("DeployToTest", "Build_and_Deploy"))

        assert result.status == ExecutionStatus.SUCCEEDED
        assert result.output == {"STAGE": "test", "VERSION": "abc123"}
        assert result.variables == {"Echoed": "yes"}
        assert result.duration_seconds >= 0
        assert executor.execution_count == 1
        assert executor.failure_count == 0

    async def test_unresolved_variable_fails_the_action(self, make_context) -> None:
        result = await _EchoBuild().execute(make_context("DeployToTest", "Build_and_Deploy"))
        assert result.status == ExecutionStatus.FAILED
        assert result.error_code == "VARIABLE_UNRESOLVED"
        assert result.failure_kind == FailureKind.INTERNAL

    async def test_wrong_kind_fails_validation(self, make_context) -> None:
        result = await _EchoBuild().execute(make_context("DeployToTest", "SmokeTests"))
        assert result.error_code == "ACTION_VALIDATION_FAILED"
        assert "cannot run smoke_test" in result.error_message

    async def test_action_error_keeps_its_kind(self, make_context, execution) -> None:
        execution.variables["SourceAppCode.CommitId"] = "abc123"
        executor = _FailingBuild()

        result = await executor.execute(make_context("DeployToTest", "Build_and_Deploy"))

        assert result.status == ExecutionStatus.FAILED
        assert result.failure_kind == FailureKind.BUILD
        assert result.error_code == "STACK_ROLLBACK"
        assert result.output["error_details"] == {"stack": "x"}
        assert executor.failure_count == 1

    async def test_unexpected_exception_is_internal(self, make_context, execution) -> None:
        execution.variables["SourceAppCode.CommitId"] = "abc123"
        result = await _CrashingBuild().execute(make_context("DeployToTest", "Build_and_Deploy"))
        assert result.failure_kind == FailureKind.INTERNAL
        assert result.error_code == "ACTION_CRASHED"
        assert result.error_message.startswith("ZeroDivisionError")

    def test_context_names(self, make_context) -> None:
        context = make_context("DeployToProd", "SmokeTests")
        assert context.qualified_name == "DeployToProd/SmokeTests"
        assert context.execution_id.startswith("exec-")

    def test_repr(self) -> None:
        assert repr(_EchoBuild()) == "_EchoBuild(kind='build_and_deploy')"
